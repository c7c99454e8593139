"""
structlog-based logging configuration for the LiveCoach hub.

Every module obtains its logger through ``get_logger(__name__)`` and logs
key/value events. Connection handlers bind ``connection_id`` and ``user_id``
into contextvars so all log lines emitted while serving a connection carry
them.
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

_SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "credential",
    "jwt",
    "api_key",
    "private_key",
    "bearer",
    "authorization",
)

_LOGGING_INITIALIZED = False


def detect_environment() -> str:
    """
    Detect the current environment.

    Returns:
        Environment name: "unit_test", "local", or "production"
    """
    if "pytest" in sys.modules:
        return "unit_test"

    env = os.getenv("LIVECOACH_LOGGING_ENVIRONMENT", "")
    if env in ("unit_test", "local", "production"):
        return env
    return "local"


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Redact credentials from log entries.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif isinstance(key, str) and any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def configure_structlog(environment: str | None = None, log_level: str = "INFO", log_format: str = "console") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        environment: Environment name (auto-detected if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for machine-readable output, "console" otherwise
    """
    if environment is None:
        environment = detect_environment()

    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers = []
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level)

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            sanitize_sensitive_data,
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )

    # uvicorn loggers propagate into the root handler configured above
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def setup_logging(
    environment: str | None = None,
    level: str = "INFO",
    log_format: str = "console",
    *,
    force_reconfigure: bool = False,
) -> None:
    """
    Set up logging once per process.

    Args:
        environment: Environment name (auto-detected if None)
        level: Logging level
        log_format: "json" or "console"
        force_reconfigure: Reconfigure even when logging is already initialized
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force_reconfigure:
        return

    environment = environment or detect_environment()
    configure_structlog(environment, level, log_format)
    _LOGGING_INITIALIZED = True

    get_logger("livecoach.logging").info(
        "Logging system initialized", environment=environment, log_level=level, log_format=log_format
    )


def bind_connection_context(connection_id: str | None = None, user_id: str | None = None, **kwargs: Any) -> None:
    """Bind connection identity to every log entry emitted in the current context."""
    context_vars = {"connection_id": connection_id, "user_id": user_id, **kwargs}
    bind_contextvars(**{k: v for k, v in context_vars.items() if v is not None})


def clear_connection_context() -> None:
    """Clear the current connection context from logging."""
    clear_contextvars()


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
