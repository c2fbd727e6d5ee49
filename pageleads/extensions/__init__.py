# pageleads/extensions/__init__.py

import atexit

from flask import current_app
from flask_cors import CORS

from ..services.error_reporter import ErrorReporter
from ..services.graph.client import GraphClient
from ..services.graph.permissions import PermissionValidator
from ..services.leads_service import LeadsService
from ..services.metrics_store import MetricsStore

# Only app-aware extensions should be global
cors = CORS()

EXTENSION_KEY = "pageleads"


def init_graph_services(app, *, session=None):
    """
    Build the reporter, Graph client, validator and leads service once per app
    and keep them on app.extensions. `session` lets tests inject a fake
    requests.Session.
    """
    config = app.config

    reporter = ErrorReporter.from_config(config)
    client = GraphClient.from_config(config, reporter=reporter, session=session)
    validator = PermissionValidator(
        client,
        reporter=reporter,
        required_scopes=config.get("FACEBOOK_REQUIRED_SCOPES"),
    )
    leads_service = LeadsService(
        client,
        validator,
        max_workers=int(config.get("FAN_OUT_MAX_WORKERS", 8)),
    )

    services = {
        "error_reporter": reporter,
        "graph_client": client,
        "permission_validator": validator,
        "leads_service": leads_service,
        "metrics_store": MetricsStore(int(config.get("METRICS_MAX_ENTRIES", 1000))),
    }
    app.extensions[EXTENSION_KEY] = services

    reporter.capture_request_exceptions(app)

    if config.get("ERROR_REPORTER_AUTOSTART"):
        reporter.start()
        reporter.capture_unhandled()
        atexit.register(reporter.stop)

    return services


def _service(name):
    return current_app.extensions[EXTENSION_KEY][name]


def get_error_reporter() -> ErrorReporter:
    return _service("error_reporter")


def get_graph_client() -> GraphClient:
    return _service("graph_client")


def get_permission_validator() -> PermissionValidator:
    return _service("permission_validator")


def get_leads_service() -> LeadsService:
    return _service("leads_service")


def get_metrics_store() -> MetricsStore:
    return _service("metrics_store")


__all__ = [
    "cors",
    "init_graph_services",
    "get_error_reporter",
    "get_graph_client",
    "get_permission_validator",
    "get_leads_service",
    "get_metrics_store",
]
