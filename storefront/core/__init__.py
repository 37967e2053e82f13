# Storefront Core Module
from .config import ConfigurationError, SecurityConfig, Settings, get_settings, settings
from .logging import setup_logging

__all__ = [
    "settings",
    "get_settings",
    "setup_logging",
    "Settings",
    "SecurityConfig",
    "ConfigurationError",
]
