from .error_reporter import ErrorReporter
from .leads_service import LeadsService
from .metrics_store import MetricsStore

__all__ = ["ErrorReporter", "LeadsService", "MetricsStore"]
