from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix
from marshmallow import ValidationError
from flask_smorest import Api
from flask_limiter.errors import RateLimitExceeded

from .utils.extensions import limiter
from .extensions import cors, init_graph_services
from .config import load_config
from .routes import register_routes
from .services.graph.errors import GraphError, PermissionValidationError
from .services.leads_service import PageNotFoundError
from .utils.error_handlers import (
    handle_graph_error, handle_permission_validation_error, handle_page_not_found,
    handle_validation_error, handle_type_error, handle_rate_limit,
)
from .utils.logger import Log


def create_app(config=None, *, graph_session=None):
    """
    Application factory.

    `config` is a Config subclass or a dict of overrides (see load_config);
    `graph_session` replaces the requests.Session used for Graph calls.
    """
    app = Flask(__name__)

    #get actual client IP
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=1,      # Trust X-Forwarded-For
        x_proto=1,    # Trust X-Forwarded-Proto
        x_host=1,     # Trust X-Forwarded-Host
        x_port=1,     # Trust X-Forwarded-Port
        x_prefix=1    # Trust X-Forwarded-Prefix
    )

    # Load configuration (ensure it does NOT override Flask-Smorest keys)
    load_config(app, config)

    app.config["API_TITLE"] = "PageLeads API"
    app.config["API_VERSION"] = "v1"
    app.config["OPENAPI_VERSION"] = "3.0.3"
    app.config["OPENAPI_URL_PREFIX"] = "/api"
    app.config["OPENAPI_JSON_PATH"] = "openapi.json"
    app.config["OPENAPI_SWAGGER_UI_PATH"] = "/docs"
    app.config["OPENAPI_SWAGGER_UI_URL"] = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"

    api = Api(app)

    # Initialize all extensions
    limiter.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["ALLOWED_ORIGINS"]}})
    init_graph_services(app, session=graph_session)

    # Register custom error handlers
    app.errorhandler(GraphError)(handle_graph_error)
    app.errorhandler(PermissionValidationError)(handle_permission_validation_error)
    app.errorhandler(PageNotFoundError)(handle_page_not_found)
    app.errorhandler(ValidationError)(handle_validation_error)
    app.errorhandler(TypeError)(handle_type_error)
    app.errorhandler(RateLimitExceeded)(handle_rate_limit)

    # Register all blueprints using `api.register_blueprint(...)`
    register_routes(app, api)

    Log.info(f"[__init__.py][create_app] {app.config['APP_NAME']} started (env={app.config['APP_ENV']})")
    return app
