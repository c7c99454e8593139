"""
Inbound event vocabulary.

Clients send JSON frames of the form ``{"type": "<event>", "data": {...}}``.
Each event type maps to exactly one pydantic model; the router dispatches on
the model class. Field names are snake_case in Python and camelCase on the
wire.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..exceptions import InvalidMessage
from .records import ChatKind

MAX_FRAME_BYTES = 64 * 1024


class InboundEvent(BaseModel):
    """Base class for all inbound events."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class JoinSessionRoom(InboundEvent):
    type: Literal["join-session-room"] = "join-session-room"
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)


class LeaveSessionRoom(InboundEvent):
    type: Literal["leave-session-room"] = "leave-session-room"
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)


class JoinChallengeRoom(InboundEvent):
    type: Literal["join-challenge-room"] = "join-challenge-room"
    challenge_id: str = Field(..., alias="challengeId", min_length=1, max_length=128)


class LeaveChallengeRoom(InboundEvent):
    type: Literal["leave-challenge-room"] = "leave-challenge-room"
    challenge_id: str = Field(..., alias="challengeId", min_length=1, max_length=128)


class ChatMessageSend(InboundEvent):
    type: Literal["chat-message"] = "chat-message"
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    body: str = Field(..., validation_alias=AliasChoices("body", "message"), min_length=1, max_length=4000)
    kind: ChatKind = Field(default=ChatKind.TEXT, validation_alias=AliasChoices("kind", "messageType"))


class HeartRateSampleSend(InboundEvent):
    type: Literal["heart-rate-sample"] = "heart-rate-sample"
    bpm: int = Field(..., gt=0, le=300)
    exercise_id: str | None = Field(default=None, alias="exerciseId", max_length=128)


class FormAnalysisRequest(InboundEvent):
    type: Literal["form-analysis"] = "form-analysis"
    exercise_id: str = Field(..., alias="exerciseId", min_length=1, max_length=128)
    form_payload: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("formPayload", "formData", "form_payload")
    )
    session_id: str | None = Field(default=None, alias="sessionId", max_length=128)


class LiveWorkoutShare(InboundEvent):
    type: Literal["live-workout-share"] = "live-workout-share"
    workout_id: str = Field(..., alias="workoutId", min_length=1, max_length=128)
    current_exercise: Any = Field(default=None, alias="currentExercise")
    progress: float = Field(..., ge=0, le=100)


class ChallengeProgressUpdate(InboundEvent):
    type: Literal["challenge-progress-update"] = "challenge-progress-update"
    challenge_id: str = Field(..., alias="challengeId", min_length=1, max_length=128)
    progress: float = Field(..., ge=0)


class TypingIndicator(InboundEvent):
    type: Literal["typing-indicator"] = "typing-indicator"
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    is_typing: bool = Field(..., alias="isTyping")


class LikePost(InboundEvent):
    type: Literal["like-post"] = "like-post"
    post_id: str = Field(..., alias="postId", min_length=1, max_length=128)


class Ping(InboundEvent):
    type: Literal["ping"] = "ping"


ClientEvent = Annotated[
    JoinSessionRoom
    | LeaveSessionRoom
    | JoinChallengeRoom
    | LeaveChallengeRoom
    | ChatMessageSend
    | HeartRateSampleSend
    | FormAnalysisRequest
    | LiveWorkoutShare
    | ChallengeProgressUpdate
    | TypingIndicator
    | LikePost
    | Ping,
    Field(discriminator="type"),
]

_client_event_adapter: TypeAdapter[Any] = TypeAdapter(ClientEvent)


def parse_client_event(frame: str | bytes | dict[str, Any]) -> InboundEvent:
    """
    Parse one inbound frame.

    Raises:
        InvalidMessage: If the frame is not JSON, has no known type, or fails validation
    """
    if isinstance(frame, str | bytes):
        size = len(frame.encode("utf-8")) if isinstance(frame, str) else len(frame)
        if size > MAX_FRAME_BYTES:
            raise InvalidMessage("Frame too large", details={"limit": MAX_FRAME_BYTES})
        try:
            frame = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMessage(f"Frame is not valid JSON: {e}") from e

    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        raise InvalidMessage("Frame must be an object with a string 'type'")

    data = frame.get("data") or {}
    if not isinstance(data, dict):
        raise InvalidMessage("Frame 'data' must be an object", details={"type": frame["type"]})

    try:
        return _client_event_adapter.validate_python({**data, "type": frame["type"]})
    except ValidationError as e:
        raise InvalidMessage(
            f"Invalid '{frame['type']}' frame",
            details={"type": frame["type"], "errors": e.errors(include_url=False, include_context=False)},
        ) from e
