# pageleads/services/graph/client.py
#
# Facebook Graph API access.
#
# GraphClient is the only place that combines the retrier with the error
# classifier: one attempt = one HTTP call, classified on failure; the retry
# policy decides whether another attempt follows. No caching at this layer.

from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import requests

from ...utils.logger import Log
from ...utils.retry import RetryPolicy, DEFAULT_RETRY_POLICY, retry_with_backoff
from ..error_reporter import ErrorReporter, sanitize_message
from .errors import (
    GraphError,
    NetworkFailure,
    ParseError,
    VendorFailure,
    classify,
    extract_vendor_failure,
    parse_failure,
)

DEFAULT_GRAPH_BASE_URL = "https://graph.facebook.com"
DEFAULT_GRAPH_VERSION = "v22.0"

SCALAR_PARAM_TYPES = (str, int, float, bool)


def _param_value(key: str, value: Any) -> str:
    if not isinstance(value, SCALAR_PARAM_TYPES):
        raise TypeError(
            f"Graph query parameter '{key}' must be a scalar, got {type(value).__name__}"
        )
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class GraphRequest:
    """One logical Graph call. Every attempt sends an equivalent HTTP request built from it."""

    base_url: str
    version: str
    path: str
    token: str = field(repr=False)
    params: Tuple[Tuple[str, str], ...] = ()
    method: str = "GET"

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.version}/{self.path.lstrip('/')}"

    @property
    def query(self) -> Dict[str, str]:
        query = dict(self.params)
        query["access_token"] = self.token
        return query

    @property
    def param_keys(self) -> List[str]:
        return [key for key, _ in self.params]


@dataclass(frozen=True)
class GraphEnvelope:
    data: Any
    paging: Optional[Dict[str, Any]] = None

    @property
    def next_cursor(self) -> Optional[str]:
        paging = self.paging or {}
        if not paging.get("next"):
            return None
        return (paging.get("cursors") or {}).get("after")


class GraphClient:
    def __init__(
        self,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        version: str = DEFAULT_GRAPH_VERSION,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        reporter: Optional[ErrorReporter] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        transient_codes: Optional[Iterable[int]] = None,
        transient_subcodes: Optional[Iterable[int]] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.base_url = base_url
        self.version = version
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self.reporter = reporter
        self.session = session or requests.Session()
        self.timeout = timeout
        self.transient_codes = frozenset(transient_codes) if transient_codes is not None else None
        self.transient_subcodes = frozenset(transient_subcodes) if transient_subcodes is not None else None
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_config(cls, config, *, reporter=None, session=None) -> "GraphClient":
        return cls(
            base_url=config.get("FACEBOOK_GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL),
            version=config.get("FACEBOOK_GRAPH_VERSION", DEFAULT_GRAPH_VERSION),
            retry_policy=RetryPolicy.from_config(config),
            reporter=reporter,
            session=session,
            timeout=float(config.get("GRAPH_TIMEOUT", 30)),
            transient_codes=config.get("GRAPH_TRANSIENT_CODES"),
            transient_subcodes=config.get("GRAPH_TRANSIENT_SUBCODES"),
        )

    # ---------------------------------------------------------------
    # Request building
    # ---------------------------------------------------------------

    def build_request(
        self,
        path: str,
        token: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        fields: Optional[Sequence[str]] = None,
        method: str = "GET",
    ) -> GraphRequest:
        if not token:
            raise ValueError("An access token is required for Graph API requests")

        pairs: List[Tuple[str, str]] = []
        if fields:
            pairs.append(("fields", ",".join(fields)))
        for key, value in (params or {}).items():
            if key == "access_token":
                continue
            if key == "fields" and fields:
                continue
            pairs.append((key, _param_value(key, value)))

        return GraphRequest(
            base_url=self.base_url,
            version=self.version,
            path=path,
            token=token,
            params=tuple(pairs),
            method=method.upper(),
        )

    # ---------------------------------------------------------------
    # Single attempt
    # ---------------------------------------------------------------

    def _classify(self, failure) -> GraphError:
        return classify(
            failure,
            transient_codes=self.transient_codes,
            transient_subcodes=self.transient_subcodes,
        )

    def _send_once(self, request: GraphRequest) -> Dict[str, Any]:
        try:
            response = self.session.request(
                request.method,
                request.url,
                params=request.query,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise self._classify(NetworkFailure(reason=sanitize_message(str(e)) or e.__class__.__name__))

        status = response.status_code
        text = response.text or ""

        if status >= 400:
            raise self._classify(parse_failure(status, text))

        try:
            payload = json.loads(text)
        except ValueError:
            raise ParseError("Invalid JSON in Graph API response", status=status)

        if not isinstance(payload, dict):
            raise ParseError("Graph API response is not a JSON object", status=status)

        # Graph occasionally answers 200 with an error envelope
        if isinstance(payload.get("error"), dict):
            vendor = extract_vendor_failure(payload, status)
            if isinstance(vendor, VendorFailure):
                raise self._classify(vendor)

        return payload

    # ---------------------------------------------------------------
    # Retried execution
    # ---------------------------------------------------------------

    def execute(self, request: GraphRequest, policy: Optional[RetryPolicy] = None) -> Dict[str, Any]:
        """Send `request` with retries and return the decoded JSON object."""
        log_tag = f"[client.py][GraphClient][execute][{request.method}][{request.path}]"
        attempts = {"count": 0}

        def _attempt():
            attempts["count"] += 1
            try:
                return self._send_once(request)
            except GraphError as e:
                self._report(e, request, attempts["count"])
                raise

        try:
            return retry_with_backoff(
                _attempt,
                policy or self.retry_policy,
                sleep=self._sleep,
                rng=self._rng,
                log_tag=log_tag,
            )
        except GraphError as e:
            Log.info(
                f"{log_tag} failed after {attempts['count']} attempt(s): "
                f"code={e.code} subcode={e.subcode} transient={e.transient}"
            )
            raise

    def _report(self, error: GraphError, request: GraphRequest, attempt: int) -> None:
        if self.reporter is None:
            return
        # parameter keys only; values may carry tokens or PII
        self.reporter.report_facebook_error(error, {
            "path": request.path,
            "method": request.method,
            "param_keys": request.param_keys,
            "attempt": attempt,
            "kind": error.kind,
            "transient": error.transient,
        })

    # ---------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------

    def fetch_envelope(
        self,
        path: str,
        token: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        fields: Optional[Sequence[str]] = None,
        method: str = "GET",
        policy: Optional[RetryPolicy] = None,
    ) -> GraphEnvelope:
        request = self.build_request(path, token, params, fields=fields, method=method)
        payload = self.execute(request, policy)
        if "data" not in payload:
            error = ParseError(f"Graph API response for '{path}' has no data field")
            self._report(error, request, attempt=0)
            raise error
        return GraphEnvelope(data=payload["data"], paging=payload.get("paging"))

    def fetch(
        self,
        path: str,
        token: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        fields: Optional[Sequence[str]] = None,
        method: str = "GET",
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Return the envelope's `data` (edges such as me/accounts, {form}/leads)."""
        return self.fetch_envelope(
            path, token, params, fields=fields, method=method, policy=policy
        ).data

    def fetch_node(
        self,
        path: str,
        token: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        fields: Optional[Sequence[str]] = None,
        method: str = "GET",
        policy: Optional[RetryPolicy] = None,
    ) -> Dict[str, Any]:
        """Return the whole object for node reads that have no data wrapper (e.g. `me`)."""
        request = self.build_request(path, token, params, fields=fields, method=method)
        return self.execute(request, policy)

    def fetch_all(
        self,
        path: str,
        token: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        fields: Optional[Sequence[str]] = None,
        max_pages: int = 10,
        policy: Optional[RetryPolicy] = None,
    ) -> List[Any]:
        """Follow `paging.cursors.after` while `paging.next` is present, up to max_pages."""
        items: List[Any] = []
        page_params = dict(params or {})

        for _ in range(max(1, max_pages)):
            envelope = self.fetch_envelope(path, token, page_params, fields=fields, policy=policy)
            data = envelope.data
            if isinstance(data, list):
                items.extend(data)
            elif data is not None:
                items.append(data)

            cursor = envelope.next_cursor
            if not cursor:
                break
            page_params["after"] = cursor

        return items


__all__ = [
    "GraphClient",
    "GraphRequest",
    "GraphEnvelope",
    "DEFAULT_GRAPH_BASE_URL",
    "DEFAULT_GRAPH_VERSION",
]
