"""
Configuration module for the LiveCoach hub.

Usage:
    from livecoach.config import get_config

    config = get_config()
    logger.info("Configuration loaded", host=config.server.host, port=config.server.port)
"""

import sys
import threading
from os import getenv

from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .models import AppConfig

__all__ = ["get_config", "reset_config", "AppConfig"]

_config_instance: AppConfig | None = None
_config_lock = threading.Lock()


def _is_test_mode() -> bool:
    """Detect if running under pytest."""
    return "pytest" in sys.modules or bool(getenv("PYTEST_CURRENT_TEST"))


def _create_config_instance() -> AppConfig:
    """Create a new AppConfig from the current environment."""
    try:
        return AppConfig()
    except ValidationError as error:
        fields = [".".join(str(part) for part in err["loc"]) for err in error.errors()]
        raise ConfigurationError(
            f"Invalid configuration: {error}",
            details={"fields": fields},
            user_friendly="Server configuration error",
        ) from error


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Raises:
        ConfigurationError: If configuration is invalid or required fields are missing
    """
    global _config_instance

    if _is_test_mode():
        return _create_config_instance()

    with _config_lock:
        if _config_instance is None:
            _config_instance = _create_config_instance()
        return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance

    with _config_lock:
        _config_instance = None
