"""
Data models for live connections.

A Connection exists only between successful authentication and disconnect.
Its ``rooms`` set is owned by the RoomDirectory, which keeps it the exact
dual of the directory's member sets.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .room_ids import is_shared_room


class Transport(Protocol):
    """Anything that can push a JSON frame to the client (a Starlette WebSocket in production)."""

    async def send_json(self, data: Any) -> None: ...


class ConnectionState(Enum):
    """Lifecycle of a connection as seen by the message router."""

    CONNECTED = "connected"
    IN_SESSION = "in_session"
    DISCONNECTED = "disconnected"


def new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """One live client socket."""

    user_id: str
    name: str
    avatar: str | None
    transport: Transport
    connection_id: str = field(default_factory=new_connection_id)
    connected_at: float = field(default_factory=time.time)
    rooms: set[str] = field(default_factory=set)
    closed: bool = False
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def state(self) -> ConnectionState:
        if self.closed:
            return ConnectionState.DISCONNECTED
        if any(is_shared_room(room_id) for room_id in self.rooms):
            return ConnectionState.IN_SESSION
        return ConnectionState.CONNECTED

    def mark_disconnected(self) -> None:
        self.closed = True

    async def send(self, event: dict[str, Any]) -> bool:
        """
        Push one event to the client.

        Frames from concurrent fan-outs are serialized per connection.

        Returns:
            False if the connection is already disconnected, True once sent
        """
        async with self._send_lock:
            if self.closed:
                return False
            await self.transport.send_json(event)
            return True
