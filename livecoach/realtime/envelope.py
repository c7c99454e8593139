"""
Event envelope utilities for outbound real-time messages.

Every event sent to a client has the same shape:
- event_type: str
- timestamp: ISO 8601 UTC with 'Z'
- sequence_number: int (monotonic per-process)
- room_id: optional
- data: dict payload
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any

_sequence_counter = 0
_sequence_lock = threading.Lock()


def _next_sequence() -> int:
    global _sequence_counter
    with _sequence_lock:
        _sequence_counter += 1
        return _sequence_counter


def utc_now_z() -> str:
    """Return current UTC time in ISO 8601 format with 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_event(
    event_type: str,
    data: dict[str, Any] | None = None,
    *,
    room_id: str | None = None,
    sequence_number: int | None = None,
) -> dict[str, Any]:
    """
    Create a normalized event envelope.

    Args:
        event_type: Type of event
        data: Event data payload
        room_id: Optional room ID for room-scoped events
        sequence_number: Optional explicit sequence number
    """
    event: dict[str, Any] = {
        "event_type": event_type,
        "timestamp": utc_now_z(),
        "sequence_number": sequence_number if sequence_number is not None else _next_sequence(),
        "data": data or {},
    }
    if room_id is not None:
        event["room_id"] = room_id
    return event
