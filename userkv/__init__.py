"""Demo service pairing an embedded key-value store with a small HTTP API."""

from .app import configure_error_handlers, configure_fastapi_app, create_app
from .config import AppConfig, load_config_from_env

__all__ = [
    "AppConfig",
    "configure_error_handlers",
    "configure_fastapi_app",
    "create_app",
    "load_config_from_env",
]
