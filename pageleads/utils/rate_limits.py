# pageleads/utils/rate_limits.py
#
# Per-endpoint limits, applied to MethodView classes through `decorators = [...]`.
# A rejected request gets 429 from handle_rate_limit; it is never retried here.

from flask_limiter.util import get_remote_address

from .extensions import limiter


def pages_rate_limiter(limit_str: str = "20 per minute"):
    """Facebook pages listing (profile + me/accounts): per IP."""
    return limiter.shared_limit(
        limit_str,
        scope="facebook-pages",
        key_func=get_remote_address,
        error_message="Too many page requests. Please try again later.",
    )


def leads_rate_limiter(limit_str: str = "30 per minute"):
    """Lead, form and bulk lead reads share one bucket per IP."""
    return limiter.shared_limit(
        limit_str,
        scope="facebook-leads",
        key_func=get_remote_address,
        error_message="Too many lead requests. Please try again later.",
    )
