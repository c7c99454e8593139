"""Tests for the exception hierarchy and websocket error payloads."""

from livecoach.error_types import ErrorMessages, ErrorType, create_websocket_error_response
from livecoach.exceptions import (
    AuthenticationError,
    DirectoryError,
    ErrorContext,
    InvalidCredential,
    LiveCoachError,
    StoreUnavailable,
    UserInactive,
)


class TestExceptions:
    def test_authentication_family(self):
        assert issubclass(InvalidCredential, AuthenticationError)
        assert issubclass(UserInactive, AuthenticationError)
        assert InvalidCredential("x").error_type is ErrorType.INVALID_CREDENTIAL

    def test_details_carry_keys(self):
        assert DirectoryError("x", room_id="trainer-session:s1").details == {"room_id": "trainer-session:s1"}
        assert StoreUnavailable("x", key="chat:session:s1").details == {"key": "chat:session:s1"}

    def test_to_dict(self):
        error = LiveCoachError("boom", context=ErrorContext(user_id="u1"), user_friendly="Try again")

        data = error.to_dict()

        assert data["error_type"] == "internal_error"
        assert data["user_friendly"] == "Try again"
        assert data["context"]["user_id"] == "u1"


def test_websocket_error_response():
    payload = create_websocket_error_response(
        ErrorType.INVALID_MESSAGE, "bad frame", ErrorMessages.INVALID_MESSAGE, {"type": "x"}
    )

    assert payload == {
        "error_type": "invalid_message",
        "message": "bad frame",
        "user_friendly": "Invalid message format",
        "details": {"type": "x"},
    }
