"""
Room id conventions.

A room is identified by its id string alone:
- personal room ``user:<id>``, one per user, joined implicitly at connect
- session room ``trainer-session:<id>``
- challenge room ``challenge:<id>``
"""

from enum import Enum

PERSONAL_PREFIX = "user:"
SESSION_PREFIX = "trainer-session:"
CHALLENGE_PREFIX = "challenge:"


class RoomKind(Enum):
    PERSONAL = "personal"
    SESSION = "session"
    CHALLENGE = "challenge"


def _require_suffix(kind: str, value: str) -> str:
    value = str(value).strip()
    if not value:
        raise ValueError(f"{kind} id cannot be empty")
    return value


def personal_room_id(user_id: str) -> str:
    return PERSONAL_PREFIX + _require_suffix("user", user_id)


def session_room_id(session_id: str) -> str:
    return SESSION_PREFIX + _require_suffix("session", session_id)


def challenge_room_id(challenge_id: str) -> str:
    return CHALLENGE_PREFIX + _require_suffix("challenge", challenge_id)


def room_kind(room_id: str) -> RoomKind | None:
    """Classify a room id, or None if it follows no known convention."""
    if room_id.startswith(PERSONAL_PREFIX):
        return RoomKind.PERSONAL
    if room_id.startswith(SESSION_PREFIX):
        return RoomKind.SESSION
    if room_id.startswith(CHALLENGE_PREFIX):
        return RoomKind.CHALLENGE
    return None


def is_session_room(room_id: str) -> bool:
    return room_kind(room_id) is RoomKind.SESSION


def is_shared_room(room_id: str) -> bool:
    """Session and challenge rooms; membership in one puts a connection in session."""
    return room_kind(room_id) in (RoomKind.SESSION, RoomKind.CHALLENGE)
