"""Configuration module."""
from .settings import Settings, get_settings, settings
from .logging_config import setup_logging, request_id_var, generate_request_id

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "setup_logging",
    "request_id_var",
    "generate_request_id",
]
