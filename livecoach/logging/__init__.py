"""Structured logging for the LiveCoach hub."""

from .logging_config import (
    bind_connection_context,
    clear_connection_context,
    get_logger,
    setup_logging,
)

__all__ = ["bind_connection_context", "clear_connection_context", "get_logger", "setup_logging"]
