from .facebook import blp_facebook_pages, blp_facebook_leads
from .error_reporting_resource import blp_error_reporting
from .metrics_resource import blp_metrics

__all__ = [
    "blp_facebook_pages",
    "blp_facebook_leads",
    "blp_error_reporting",
    "blp_metrics",
]
