# pageleads/services/graph/errors.py
#
# Graph API failure taxonomy.
#
# Every failure is resolved once at the HTTP boundary into one of three raw
# shapes (NetworkFailure | HttpFailure | VendorFailure) and then classified
# into a GraphError. Nothing downstream re-inspects response bodies.

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from ...constants.graph_codes import (
    AUTH_ERROR_CODES,
    DEFAULT_FACEBOOK_ERROR_MESSAGE,
    FACEBOOK_ERROR_MESSAGES,
    FACEBOOK_ERROR_SUBCODE_MESSAGES,
    NOT_FOUND_ERROR_CODE,
    PERMISSION_ERROR_CODES,
    RATE_LIMIT_ERROR_CODES,
    TRANSIENT_ERROR_CODES,
    TRANSIENT_ERROR_SUBCODES,
)


# -------------------------------------------------------------------
# Exceptions
# -------------------------------------------------------------------

class GraphError(Exception):
    """
    A classified Graph API failure.

    `transient` is derived from (code, subcode) when not given explicitly;
    the message text never influences it.
    """

    kind = "graph"

    def __init__(
        self,
        message: str,
        *,
        code: int,
        subcode: Optional[int] = None,
        error_type: Optional[str] = None,
        trace_id: Optional[str] = None,
        status: Optional[int] = None,
        transient: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.error_type = error_type
        self.trace_id = trace_id
        self.status = status
        self.transient = is_transient(code, subcode) if transient is None else transient

    # Vendor errors are judged by code, bare HTTP errors by status.
    def _matches(self, codes, status: int) -> bool:
        if self.kind == "graph":
            return self.code in codes
        if self.kind == "http":
            return self.status == status
        return False

    @property
    def is_auth_error(self) -> bool:
        return self._matches(AUTH_ERROR_CODES, 401)

    @property
    def is_permission_error(self) -> bool:
        return self._matches(PERMISSION_ERROR_CODES, 403)

    @property
    def is_rate_limited(self) -> bool:
        return self._matches(RATE_LIMIT_ERROR_CODES, 429)

    @property
    def is_not_found(self) -> bool:
        return self._matches({NOT_FOUND_ERROR_CODE}, 404)

    @property
    def user_message(self) -> str:
        """Message a person can act on, independent of the raw upstream text."""
        if self.kind == "graph":
            return get_facebook_error_message(self.code, self.subcode)
        if self.is_auth_error:
            return FACEBOOK_ERROR_MESSAGES[190]
        return DEFAULT_FACEBOOK_ERROR_MESSAGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "code": self.code,
            "subcode": self.subcode,
            "type": self.error_type,
            "fbtrace_id": self.trace_id,
            "status": self.status,
            "transient": self.transient,
        }

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(code={self.code!r}, subcode={self.subcode!r}, "
            f"transient={self.transient!r}, message={self.message!r})"
        )


class NetworkError(GraphError):
    """No response was received (DNS, connect, timeout)."""

    kind = "network"

    def __init__(self, message: str):
        super().__init__(message, code=0, transient=True)


class HttpError(GraphError):
    """Non-2xx response whose body is not a Graph error envelope."""

    kind = "http"

    def __init__(self, status: int, message: Optional[str] = None):
        super().__init__(
            message or f"HTTP error! status: {status}",
            code=status,
            status=status,
            transient=status >= 500,
        )


class ParseError(GraphError):
    """The response was expected to be a JSON envelope and was not."""

    kind = "parse_error"

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message, code=status or 0, status=status, transient=False)


class PermissionValidationError(Exception):
    """
    The caller lacks account scopes or page tasks required for an operation.

    level is "account" (OAuth scopes) or "page" (page tasks such as
    ACCESS_LEAD_GEN), so the UI can give the right remediation.
    """

    def __init__(self, message: str, *, missing: Iterable[str], level: str, help_url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.missing = sorted(missing)
        self.level = level
        self.help_url = help_url
        self.transient = False

    def to_dict(self) -> Dict[str, Any]:
        payload = {"message": self.message, "level": self.level, "missing": self.missing}
        if self.help_url:
            payload["help_url"] = self.help_url
        return payload


# -------------------------------------------------------------------
# Raw failure shapes
# -------------------------------------------------------------------

@dataclass(frozen=True)
class NetworkFailure:
    reason: str


@dataclass(frozen=True)
class HttpFailure:
    status: int
    body: str = ""


@dataclass(frozen=True)
class VendorFailure:
    status: Optional[int]
    code: int
    message: str
    subcode: Optional[int] = None
    type: Optional[str] = None
    trace_id: Optional[str] = None


Failure = Union[NetworkFailure, HttpFailure, VendorFailure]


# -------------------------------------------------------------------
# Classification
# -------------------------------------------------------------------

def is_transient(
    code: Optional[int],
    subcode: Optional[int] = None,
    *,
    transient_codes: Optional[Iterable[int]] = None,
    transient_subcodes: Optional[Iterable[int]] = None,
) -> bool:
    """Pure lookup: auth and permission codes are terminal, then the code/subcode sets decide."""
    if code in AUTH_ERROR_CODES or code in PERMISSION_ERROR_CODES:
        return False
    codes = TRANSIENT_ERROR_CODES if transient_codes is None else frozenset(transient_codes)
    subcodes = TRANSIENT_ERROR_SUBCODES if transient_subcodes is None else frozenset(transient_subcodes)
    return code in codes or (subcode is not None and subcode in subcodes)


def get_facebook_error_message(code: Optional[int], subcode: Optional[int] = None) -> str:
    if code in AUTH_ERROR_CODES and subcode in FACEBOOK_ERROR_SUBCODE_MESSAGES:
        return FACEBOOK_ERROR_SUBCODE_MESSAGES[subcode]
    return FACEBOOK_ERROR_MESSAGES.get(code, DEFAULT_FACEBOOK_ERROR_MESSAGE)


def _as_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _vendor_from_dict(status: Optional[int], error: Dict[str, Any]) -> Optional[VendorFailure]:
    code = _as_int(error.get("code"))
    if code is None:
        return None
    return VendorFailure(
        status=status,
        code=code,
        message=str(error.get("message") or "Unknown Facebook Error"),
        subcode=_as_int(error.get("error_subcode")),
        type=error.get("type"),
        trace_id=error.get("fbtrace_id"),
    )


def extract_vendor_failure(payload: Any, status: Optional[int] = None) -> Optional[VendorFailure]:
    """
    Find a Graph error in an already-decoded payload.

    Accepts {"error": {...}} and the flattened {"code": ..., "message": ...}.
    """
    if not isinstance(payload, dict):
        return None
    wrapped = payload.get("error")
    if isinstance(wrapped, dict):
        return _vendor_from_dict(status, wrapped)
    if "code" in payload and "message" in payload:
        return _vendor_from_dict(status, payload)
    return None


def parse_failure(status: int, body: Optional[str]) -> Failure:
    """Resolve a failed HTTP response into HttpFailure or VendorFailure."""
    text = body or ""
    try:
        payload = json.loads(text) if text else None
    except ValueError:
        payload = None

    vendor = extract_vendor_failure(payload, status)
    if vendor is not None:
        return vendor
    return HttpFailure(status=status, body=text[:500])


def classify(
    failure: Failure,
    *,
    transient_codes: Optional[Iterable[int]] = None,
    transient_subcodes: Optional[Iterable[int]] = None,
) -> GraphError:
    if isinstance(failure, NetworkFailure):
        return NetworkError(failure.reason)

    if isinstance(failure, HttpFailure):
        return HttpError(failure.status)

    if isinstance(failure, VendorFailure):
        return GraphError(
            failure.message,
            code=failure.code,
            subcode=failure.subcode,
            error_type=failure.type,
            trace_id=failure.trace_id,
            status=failure.status,
            transient=is_transient(
                failure.code,
                failure.subcode,
                transient_codes=transient_codes,
                transient_subcodes=transient_subcodes,
            ),
        )

    raise TypeError(f"Unsupported failure shape: {type(failure).__name__}")


def classify_response(status: int, body: Optional[str], **kwargs) -> GraphError:
    return classify(parse_failure(status, body), **kwargs)


__all__ = [
    "GraphError",
    "NetworkError",
    "HttpError",
    "ParseError",
    "PermissionValidationError",
    "NetworkFailure",
    "HttpFailure",
    "VendorFailure",
    "is_transient",
    "get_facebook_error_message",
    "extract_vendor_failure",
    "parse_failure",
    "classify",
    "classify_response",
]
