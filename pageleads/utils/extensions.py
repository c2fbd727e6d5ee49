# pageleads/utils/extensions.py

import os
from flask import request, has_request_context
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .logger import Log


RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
DEFAULT_RATE_LIMIT = "60 per minute"


def _get_client_ip():
    """Safely get client IP, returns 'unknown' if outside request context."""
    if has_request_context():
        return get_remote_address() or "unknown"
    return "unknown"


def _format_time_period(seconds):
    """Convert seconds to human-readable format."""
    if seconds is None:
        return "unknown"

    seconds = int(seconds)

    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours = seconds // 3600
    return f"{hours} hour{'s' if hours != 1 else ''}"


def log_rate_limit_breach(request_limit):
    """Flask-Limiter on_breach callback: one warning line per rejected request."""
    client_ip = _get_client_ip()

    try:
        limit_amount = request_limit.limit.amount
        limit_per = _format_time_period(request_limit.limit.get_expiry())
        limit_str = f"{limit_amount} per {limit_per}"
    except AttributeError:
        limit_str = str(getattr(request_limit, "limit", "unknown"))

    Log.warning(
        f"[RATE_LIMIT_BREACH][{client_ip}] "
        f"limit={limit_str}, method={request.method}, path={request.path}, "
        f"endpoint={request.endpoint or 'unknown'}"
    )


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=RATE_LIMIT_STORAGE_URI,
    on_breach=log_rate_limit_breach,
)
