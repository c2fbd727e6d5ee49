from .client import GraphClient, GraphEnvelope, GraphRequest
from .errors import (
    GraphError,
    HttpError,
    NetworkError,
    ParseError,
    PermissionValidationError,
    classify,
    classify_response,
    is_transient,
)
from .permissions import PermissionCheck, PermissionValidator


def fetch_from_graph(path, token, params=None, *, client=None):
    """Fetch `data` from a Graph edge with the application's configured client."""
    if client is None:
        from ...extensions import get_graph_client
        client = get_graph_client()
    return client.fetch(path, token, params)


def validate_facebook_permissions(token, required_scopes=None, *, validator=None):
    """True iff the token's granted scopes cover `required_scopes` (configured list by default)."""
    if validator is None:
        from ...extensions import get_permission_validator
        validator = get_permission_validator()
    return validator.validate(token, required_scopes)


__all__ = [
    "GraphClient",
    "GraphEnvelope",
    "GraphRequest",
    "GraphError",
    "HttpError",
    "NetworkError",
    "ParseError",
    "PermissionValidationError",
    "PermissionCheck",
    "PermissionValidator",
    "classify",
    "classify_response",
    "is_transient",
    "fetch_from_graph",
    "validate_facebook_permissions",
]
