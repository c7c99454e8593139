"""
Exception hierarchy for the LiveCoach hub.

Errors fall into four families: authentication errors refuse a connection
before any state is created, directory errors are reported to the
originating connection only, store errors degrade durability but never
block delivery, and scoring errors are surfaced to the sender with nothing
forwarded.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .error_types import ErrorType


@dataclass
class ErrorContext:
    """Contextual information attached to an error for logging."""

    user_id: str | None = None
    connection_id: str | None = None
    room_id: str | None = None
    event_type: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "user_id": self.user_id,
            "connection_id": self.connection_id,
            "room_id": self.room_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class LiveCoachError(Exception):
    """
    Base exception for all LiveCoach errors.

    Carries structured context and a user-friendly message that is safe to
    send back over the wire.
    """

    error_type: ErrorType = ErrorType.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for responses and logs."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "context": self.context.to_dict(),
            "details": self.details,
        }


class AuthenticationError(LiveCoachError):
    """A connection credential was refused."""

    error_type = ErrorType.AUTHENTICATION_FAILED


class MissingCredential(AuthenticationError):
    """No credential was presented at connection time."""

    error_type = ErrorType.MISSING_CREDENTIAL


class InvalidCredential(AuthenticationError):
    """The credential failed verification or verification timed out."""

    error_type = ErrorType.INVALID_CREDENTIAL


class UserNotFound(AuthenticationError):
    """The credential's subject is not known to the user directory."""

    error_type = ErrorType.USER_NOT_FOUND


class UserInactive(AuthenticationError):
    """The credential's subject exists but the account is disabled."""

    error_type = ErrorType.USER_INACTIVE


class InvalidMessage(LiveCoachError):
    """An inbound frame could not be parsed into a known event."""

    error_type = ErrorType.INVALID_MESSAGE


class DirectoryError(LiveCoachError):
    """A room join or leave could not be performed."""

    error_type = ErrorType.DIRECTORY_ERROR

    def __init__(self, message: str, context: ErrorContext | None = None, room_id: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.room_id = room_id
        if room_id:
            self.details["room_id"] = room_id


class StoreUnavailable(LiveCoachError):
    """The ephemeral key-value store could not complete an operation."""

    error_type = ErrorType.STORE_UNAVAILABLE

    def __init__(self, message: str, context: ErrorContext | None = None, key: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.key = key
        if key:
            self.details["key"] = key


class ScoringError(LiveCoachError):
    """The form scoring collaborator failed."""

    error_type = ErrorType.SCORING_ERROR


class ConfigurationError(LiveCoachError):
    """Configuration and setup errors."""

    error_type = ErrorType.CONFIGURATION_ERROR

    def __init__(self, message: str, context: ErrorContext | None = None, config_key: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key
