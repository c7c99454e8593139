"""
Immutable records produced by the message router.

Timestamps are epoch seconds so stored entries can be filtered with
EphemeralStore.list_since.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChatKind(Enum):
    """Chat message body kinds."""

    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"


class MessageIdGenerator:
    """
    Time-based, strictly increasing message ids.

    Ids are millisecond timestamps; two ids requested in the same
    millisecond are bumped so ordering never ties.
    """

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = int(self._clock() * 1000)
            self._last = max(now_ms, self._last + 1)
            return str(self._last)


@dataclass(frozen=True)
class ChatMessage:
    """A chat line posted into a session."""

    id: str
    session_id: str
    sender_id: str
    sender_name: str
    sender_avatar: str | None
    body: str
    kind: ChatKind
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "senderAvatar": self.sender_avatar,
            "body": self.body,
            "kind": self.kind.value,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class HeartRateSample:
    """One streamed heart-rate reading."""

    user_id: str
    bpm: int
    exercise_id: str | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "bpm": self.bpm,
            "exerciseId": self.exercise_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiveWorkoutUpdate:
    """Snapshot of an in-progress workout shared with other users."""

    user_id: str
    user_name: str
    workout_id: str
    current_exercise: Any
    progress: float
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "workoutId": self.workout_id,
            "currentExercise": self.current_exercise,
            "progress": self.progress,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChallengeProgress:
    """A participant's progress in a challenge."""

    challenge_id: str
    user_id: str
    user_name: str
    progress: float
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "challengeId": self.challenge_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "progress": self.progress,
            "timestamp": self.timestamp,
        }

