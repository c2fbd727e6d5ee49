from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env file

import os

from .constants.graph_codes import (
    DEFAULT_REQUIRED_SCOPES,
    TRANSIENT_ERROR_CODES,
    TRANSIENT_ERROR_SUBCODES,
)


def _env_list(name, default):
    """Comma separated env var -> list of stripped, non-empty strings."""
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_int_set(name, default):
    return frozenset(int(item) for item in _env_list(name, sorted(default)))


class Config:
    """Base configuration class."""
    APP_NAME = os.getenv("APP_NAME", "PageLeads")
    APP_ENV = os.getenv("APP_ENV", "development")

    SECRET_KEY = os.getenv("SECRET_KEY", "your_default_secret_key")
    DEBUG = os.getenv("FLASK_DEBUG", "False") == "True"
    TESTING = False

    # ========================================
    # FACEBOOK GRAPH API
    # ========================================
    FACEBOOK_GRAPH_BASE_URL = os.getenv("FACEBOOK_GRAPH_BASE_URL", "https://graph.facebook.com")
    FACEBOOK_GRAPH_VERSION = os.getenv("FACEBOOK_GRAPH_VERSION", "v22.0")
    GRAPH_TIMEOUT = float(os.getenv("GRAPH_TIMEOUT", 30))

    # Retry policy (seconds)
    GRAPH_RETRY_MAX_ATTEMPTS = int(os.getenv("GRAPH_RETRY_MAX_ATTEMPTS", 3))
    GRAPH_RETRY_INITIAL_DELAY = float(os.getenv("GRAPH_RETRY_INITIAL_DELAY", 1.0))
    GRAPH_RETRY_MAX_DELAY = float(os.getenv("GRAPH_RETRY_MAX_DELAY", 10.0))
    GRAPH_RETRY_BACKOFF_FACTOR = float(os.getenv("GRAPH_RETRY_BACKOFF_FACTOR", 2))

    GRAPH_TRANSIENT_CODES = _env_int_set("GRAPH_TRANSIENT_CODES", TRANSIENT_ERROR_CODES)
    GRAPH_TRANSIENT_SUBCODES = _env_int_set("GRAPH_TRANSIENT_SUBCODES", TRANSIENT_ERROR_SUBCODES)

    FACEBOOK_REQUIRED_SCOPES = _env_list("FACEBOOK_REQUIRED_SCOPES", DEFAULT_REQUIRED_SCOPES)

    # Concurrent sibling fetches (leads per form / per page)
    FAN_OUT_MAX_WORKERS = int(os.getenv("FAN_OUT_MAX_WORKERS", 8))

    # ========================================
    # ERROR REPORTING
    # ========================================
    ERROR_QUEUE_MAX_SIZE = int(os.getenv("ERROR_QUEUE_MAX_SIZE", 50))
    ERROR_FLUSH_INTERVAL = float(os.getenv("ERROR_FLUSH_INTERVAL", 60))
    ERROR_SINK_URL = os.getenv("ERROR_SINK_URL")
    ERROR_REPORTER_AUTOSTART = True

    # ========================================
    # HTTP
    # ========================================
    RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
    ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", ["*"])
    METRICS_MAX_ENTRIES = int(os.getenv("METRICS_MAX_ENTRIES", 1000))


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    APP_ENV = "development"


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    APP_ENV = "testing"
    GRAPH_RETRY_INITIAL_DELAY = 0.01
    GRAPH_RETRY_MAX_DELAY = 0.02
    ERROR_SINK_URL = None
    ERROR_REPORTER_AUTOSTART = False
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    APP_ENV = "production"


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def load_config(app, config=None):
    """
    Apply configuration to the Flask app.

    `config` may be a Config subclass or a dict of overrides; without it the
    class is chosen from APP_ENV.
    """
    load_dotenv()
    if config is None or isinstance(config, dict):
        base = CONFIG_BY_ENV.get(os.getenv("APP_ENV", "development"), Config)
        app.config.from_object(base)
        if config:
            app.config.update(config)
    else:
        app.config.from_object(config)
    return app.config
