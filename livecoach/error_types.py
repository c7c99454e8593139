"""
Centralized error types and constants for the LiveCoach hub.

Keeps the error vocabulary sent to clients consistent across the
authenticator, the room directory and the message router.
"""

from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error types for consistent categorization."""

    # Authentication
    AUTHENTICATION_FAILED = "authentication_failed"
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    USER_NOT_FOUND = "user_not_found"
    USER_INACTIVE = "user_inactive"

    # Inbound frames
    INVALID_MESSAGE = "invalid_message"

    # Rooms
    DIRECTORY_ERROR = "directory_error"

    # Collaborators
    STORE_UNAVAILABLE = "store_unavailable"
    SCORING_ERROR = "scoring_error"
    LOOKUP_ERROR = "lookup_error"

    # Configuration and System
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class ErrorMessages:
    """Common error messages for consistent user experience."""

    AUTHENTICATION_REQUIRED = "Authentication token required"
    AUTHENTICATION_FAILED = "Authentication failed"
    USER_NOT_FOUND = "User not found or inactive"

    INVALID_MESSAGE = "Invalid message format"
    UNKNOWN_EVENT = "Unknown event type"

    JOIN_SESSION_FAILED = "Failed to join session"
    JOIN_CHALLENGE_FAILED = "Failed to join challenge"
    FORM_ANALYSIS_FAILED = "Failed to analyze form"
    LIKE_FAILED = "Failed to process like"

    INTERNAL_ERROR = "An internal error occurred"


def create_websocket_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized WebSocket error payload.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)

    Returns:
        Error payload dictionary
    """
    return {
        "error_type": error_type.value,
        "message": message,
        "user_friendly": user_friendly or message,
        "details": details or {},
    }
