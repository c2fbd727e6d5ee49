# pageleads/services/error_reporter.py
#
# Process-wide error sink: sanitize, queue (bounded, drop-oldest), flush.
#
# One instance is built in create_app() and passed to every component that
# reports. Reporting is fire-and-forget: no method here raises to the caller.

from __future__ import annotations

import re
import sys
import threading
import traceback
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from flask import got_request_exception, request

from ..utils.logger import Log


ACCESS_TOKEN_QUERY_RE = re.compile(r"(access_token=)[^&\s\"'#]+", re.IGNORECASE)
FACEBOOK_TOKEN_RE = re.compile(r"\bEAA[A-Za-z0-9]+")
BEARER_TOKEN_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)

# Compared after lower-casing and dropping "_" / "-"
SENSITIVE_CONTEXT_KEYS = {
    "accesstoken",
    "pageaccesstoken",
    "pagetoken",
    "pagetokens",
    "sessiontoken",
    "token",
    "authorization",
    "clientsecret",
    "appsecret",
    "password",
}

REDACTED = "[REDACTED]"

ErrorSink = Callable[[List[Dict[str, Any]]], None]


# -------------------------------------------------------------------
# Sanitizers
# -------------------------------------------------------------------

def sanitize_message(message: Any) -> str:
    """Strip tokens from free text (URLs in exception messages, headers)."""
    text = "" if message is None else str(message)
    text = ACCESS_TOKEN_QUERY_RE.sub(r"\1" + REDACTED, text)
    text = BEARER_TOKEN_RE.sub(r"\1" + REDACTED, text)
    text = FACEBOOK_TOKEN_RE.sub("[REDACTED_TOKEN]", text)
    return text


def _is_sensitive_key(key: Any) -> bool:
    normalized = str(key).lower().replace("_", "").replace("-", "")
    return normalized in SENSITIVE_CONTEXT_KEYS


def sanitize_context(value: Any) -> Any:
    """Recursively redact token-bearing keys and token-shaped strings."""
    if isinstance(value, dict):
        return {
            k: (REDACTED if _is_sensitive_key(k) else sanitize_context(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_context(v) for v in value]
    if isinstance(value, str):
        return sanitize_message(value)
    return value


def extract_facebook_error(error: Any) -> Dict[str, Any]:
    """
    Normalize the shapes a Facebook failure shows up in:
      - a classified GraphError (attributes)
      - {"error": {"message", "code", "type", "fbtrace_id", "error_subcode"}}
      - a flat {"message", "code", ...} dict
    """
    if error is None:
        return {}

    if hasattr(error, "code") and hasattr(error, "trace_id"):
        return {
            "message": getattr(error, "message", None) or str(error),
            "code": error.code,
            "type": getattr(error, "error_type", None),
            "fbtrace_id": error.trace_id,
            "error_subcode": getattr(error, "subcode", None),
        }

    if isinstance(error, dict):
        inner = error.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return {
                "message": inner.get("message"),
                "code": inner.get("code"),
                "type": inner.get("type"),
                "fbtrace_id": inner.get("fbtrace_id"),
                "error_subcode": inner.get("error_subcode"),
            }
        if error.get("message") and error.get("code"):
            return {
                "message": error.get("message"),
                "code": error.get("code"),
                "type": error.get("type"),
                "fbtrace_id": error.get("fbtrace_id"),
                "error_subcode": error.get("error_subcode"),
            }
        return {
            "message": error.get("message") or "Unknown Facebook Error",
            "code": error.get("code"),
            "type": error.get("type"),
        }

    return {
        "message": getattr(error, "message", None) or str(error) or "Unknown Facebook Error",
        "code": getattr(error, "code", None),
        "type": getattr(error, "type", None),
    }


# -------------------------------------------------------------------
# Sinks
# -------------------------------------------------------------------

def log_sink(batch: List[Dict[str, Any]]) -> None:
    for item in batch:
        Log.error(f"[error_reporter.py][log_sink] {item}")


def http_sink(url: str, timeout: float = 10) -> ErrorSink:
    """POST batches as {"errors": [...]} to an external collector."""
    def _send(batch: List[Dict[str, Any]]) -> None:
        response = requests.post(url, json={"errors": batch}, timeout=timeout)
        response.raise_for_status()
    return _send


# -------------------------------------------------------------------
# Reporter
# -------------------------------------------------------------------

class ErrorReporter:
    def __init__(
        self,
        *,
        max_queue_size: int = 50,
        flush_interval: float = 60.0,
        sink: Optional[ErrorSink] = None,
        environment: str = "development",
        origin: str = "server",
    ):
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        self.max_queue_size = max_queue_size
        self.flush_interval = flush_interval
        self.sink = sink or log_sink
        self.environment = environment
        self.origin = origin

        self._queue: deque = deque(maxlen=max_queue_size)
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._hooks_installed = False

    @classmethod
    def from_config(cls, config) -> "ErrorReporter":
        sink_url = config.get("ERROR_SINK_URL")
        return cls(
            max_queue_size=int(config.get("ERROR_QUEUE_MAX_SIZE", 50)),
            flush_interval=float(config.get("ERROR_FLUSH_INTERVAL", 60)),
            sink=http_sink(sink_url) if sink_url else log_sink,
            environment=config.get("APP_ENV", "development"),
        )

    # ---------------------------------------------------------------
    # Public reporting API
    # ---------------------------------------------------------------

    def report(self, error: Any, context: Optional[Dict[str, Any]] = None) -> None:
        context = dict(context or {})
        try:
            self._enqueue({
                "message": sanitize_message(self._message_of(error)),
                "stack": self._stack_of(error),
                "timestamp": self._now(),
                "url": context.pop("url", None) or self.origin,
                "type": context.pop("type", None) or "unknown",
                "context": sanitize_context(context),
            })
        except Exception as e:
            Log.error(f"[error_reporter.py][ErrorReporter][report] failed to queue error: {e}")

    def report_api_error(self, error: Any, endpoint: str, context: Optional[Dict[str, Any]] = None) -> None:
        ctx = dict(context or {})
        ctx.update({"type": "api_error", "endpoint": endpoint})
        if not isinstance(error, BaseException):
            ctx["original_error"] = error
            error = error if isinstance(error, str) else "Unknown API error"
        self.report(error, ctx)

    def report_facebook_error(self, error: Any, context: Optional[Dict[str, Any]] = None) -> None:
        try:
            fb_error = extract_facebook_error(error)
            ctx = dict(context or {})
            ctx["error_subcode"] = fb_error.get("error_subcode")
            self._enqueue({
                "message": sanitize_message(fb_error.get("message") or "Facebook API Error"),
                "stack": self._stack_of(error),
                "timestamp": self._now(),
                "url": ctx.pop("url", None) or self.origin,
                "type": "facebook_error",
                "error_code": fb_error.get("code"),
                "error_type": fb_error.get("type"),
                "trace_id": fb_error.get("fbtrace_id"),
                "context": sanitize_context(ctx),
            })
        except Exception as e:
            Log.error(f"[error_reporter.py][ErrorReporter][report_facebook_error] failed to queue error: {e}")

    def report_client_error(self, payload: Dict[str, Any], request_meta: Optional[Dict[str, Any]] = None) -> None:
        """Queue an error report posted by a browser client."""
        try:
            context = dict(payload.get("context") or {})
            context.update(request_meta or {})
            self._enqueue({
                "message": sanitize_message(payload.get("message") or "Unknown client error"),
                "stack": sanitize_message(payload["stack"]) if payload.get("stack") else None,
                "timestamp": payload.get("timestamp") or self._now(),
                "url": sanitize_message(payload.get("url") or "client"),
                "type": payload.get("name") or payload.get("type") or "client_error",
                "context": sanitize_context(context),
            })
        except Exception as e:
            Log.error(f"[error_reporter.py][ErrorReporter][report_client_error] failed to queue error: {e}")

    # ---------------------------------------------------------------
    # Queue
    # ---------------------------------------------------------------

    def _enqueue(self, item: Dict[str, Any]) -> None:
        with self._lock:
            self._queue.append(item)  # deque(maxlen) drops the oldest entry
        if self.environment == "development":
            Log.debug(f"[error_reporter.py][ErrorReporter] Error queued: {item}")

    def pending(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._queue)

    def __len__(self):
        with self._lock:
            return len(self._queue)

    def flush(self) -> int:
        """Send everything queued to the sink. Returns how many were sent."""
        with self._lock:
            if not self._queue:
                return 0
            batch = list(self._queue)
            self._queue.clear()

        try:
            self.sink(batch)
            return len(batch)
        except Exception as e:
            Log.error(f"[error_reporter.py][ErrorReporter][flush] Failed to flush errors: {e}")
            with self._lock:
                # failed batch goes back ahead of anything queued meanwhile, still capped
                merged = batch + list(self._queue)
                self._queue = deque(merged[-self.max_queue_size:], maxlen=self.max_queue_size)
            return 0

    # ---------------------------------------------------------------
    # Background flush
    # ---------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="error-reporter-flush", daemon=True
        )
        self._thread.start()
        Log.info(f"[error_reporter.py][ErrorReporter][start] flushing every {self.flush_interval}s")

    def _run(self) -> None:
        while not self._stop_event.wait(self.flush_interval):
            self.flush()

    def stop(self, flush: bool = True) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        if flush:
            self.flush()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ---------------------------------------------------------------
    # Unhandled exceptions
    # ---------------------------------------------------------------

    def capture_unhandled(self) -> None:
        """Report uncaught exceptions (main thread and worker threads), then defer to the previous hooks."""
        if self._hooks_installed:
            return

        previous_hook = sys.excepthook
        previous_thread_hook = threading.excepthook

        def _excepthook(exc_type, exc_value, exc_tb):
            self.report(exc_value, {"type": "unhandled_exception"})
            previous_hook(exc_type, exc_value, exc_tb)

        def _thread_excepthook(args):
            if args.exc_value is not None:
                self.report(args.exc_value, {
                    "type": "unhandled_thread_exception",
                    "thread": getattr(args.thread, "name", None),
                })
            previous_thread_hook(args)

        sys.excepthook = _excepthook
        threading.excepthook = _thread_excepthook
        self._hooks_installed = True

    def capture_request_exceptions(self, app) -> None:
        """Report exceptions that escape a Flask view; Flask turns these into 500s without reaching sys.excepthook."""
        def _on_request_exception(sender, exception, **extra):
            self.report(exception, {
                "type": "unhandled_exception",
                "url": request.path,
                "method": request.method,
            })

        # weak=False: the receiver is a closure with no other reference
        got_request_exception.connect(_on_request_exception, app, weak=False)

    # ---------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _message_of(error: Any) -> str:
        if isinstance(error, BaseException):
            return getattr(error, "message", None) or str(error) or error.__class__.__name__
        return str(error)

    @staticmethod
    def _stack_of(error: Any) -> Optional[str]:
        if isinstance(error, BaseException) and error.__traceback__ is not None:
            return sanitize_message(
                "".join(traceback.format_exception(type(error), error, error.__traceback__))
            )
        return None


__all__ = [
    "ErrorReporter",
    "sanitize_message",
    "sanitize_context",
    "extract_facebook_error",
    "log_sink",
    "http_sink",
]
