"""
Room directory for the LiveCoach hub.

Tracks which live connections belong to which rooms. A room exists exactly
while its member set is non-empty; joining an unknown room creates it and
the last leave drops it. All membership mutation and every broadcast
snapshot happen under one asyncio lock, so a broadcast never observes a
half-applied join or leave. Delivery itself happens outside the lock.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import DirectoryError, ErrorContext
from ..logging.logging_config import get_logger
from .connection_models import Connection
from .room_ids import is_session_room, room_kind

logger = get_logger(__name__)

JoinPolicy = Callable[[Connection, str], Awaitable[bool]]


@dataclass
class BroadcastResult:
    """Delivery statistics for one fan-out."""

    room_id: str | None
    total_targets: int = 0
    excluded: int = 0
    delivered: set[str] = field(default_factory=set)
    failed: set[str] = field(default_factory=set)


class RoomDirectory:
    """
    Membership of rooms over live connections.

    Connections are registered after authentication and unregistered at
    disconnect. A connection's ``rooms`` attribute always mirrors the
    directory's member sets.
    """

    def __init__(self, join_policy: JoinPolicy | None = None) -> None:
        # room_id -> set of connection_ids
        self._rooms: dict[str, set[str]] = {}
        # connection_id -> Connection
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()
        self.join_policy = join_policy

    async def register(self, connection: Connection) -> None:
        """Make a freshly authenticated connection addressable."""
        async with self._lock:
            self._connections[connection.connection_id] = connection
        logger.debug("Connection registered", connection_id=connection.connection_id, user_id=connection.user_id)

    async def unregister(self, connection_id: str) -> None:
        """Forget a connection. Its memberships must already be released."""
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is not None and connection.rooms:
                # leave_all was skipped; release memberships so the dual stays intact
                self._release_all_locked(connection)

    def get_connection(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def join(self, room_id: str, connection_id: str) -> bool:
        """
        Add a connection to a room, creating the room if needed.

        Returns:
            True if the connection was added, False if it was already a member

        Raises:
            DirectoryError: Unknown or closed connection, malformed room id, or a refusing join policy
        """
        context = ErrorContext(connection_id=connection_id, room_id=room_id)
        if not room_id or room_kind(room_id) is None:
            raise DirectoryError("Malformed room id", context=context, room_id=room_id)

        connection = self._connections.get(connection_id)
        if connection is None or connection.closed:
            raise DirectoryError("Connection is not registered", context=context, room_id=room_id)

        if self.join_policy is not None and not await self.join_policy(connection, room_id):
            raise DirectoryError(
                "Join refused by policy", context=context, room_id=room_id, user_friendly="Access to room denied"
            )

        async with self._lock:
            # the connection may have gone away while the policy was consulted
            if self._connections.get(connection_id) is not connection or connection.closed:
                raise DirectoryError("Connection closed during join", context=context, room_id=room_id)
            members = self._rooms.setdefault(room_id, set())
            added = connection_id not in members
            members.add(connection_id)
            connection.rooms.add(room_id)

        if added:
            logger.debug("Connection joined room", connection_id=connection_id, room_id=room_id)
        return added

    async def leave(self, room_id: str, connection_id: str) -> bool:
        """
        Remove a connection from a room; drop the room when it empties.

        Returns:
            True if the connection was a member
        """
        async with self._lock:
            removed = self._remove_locked(room_id, connection_id)
        if removed:
            logger.debug("Connection left room", connection_id=connection_id, room_id=room_id)
        return removed

    async def leave_all(self, connection_id: str) -> set[str]:
        """
        Remove a connection from every room it belongs to.

        Idempotent; safe for connections that never joined anything or were
        never registered.

        Returns:
            The rooms the connection was removed from
        """
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None:
                return self._release_all_locked(connection)
            # unknown connection: sweep member sets directly
            left = {room_id for room_id, members in self._rooms.items() if connection_id in members}
            for room_id in left:
                self._remove_locked(room_id, connection_id)
            return left

    async def members_of(self, room_id: str) -> set[str]:
        """Snapshot of a room's members; empty for unknown or vacated rooms."""
        async with self._lock:
            return set(self._rooms.get(room_id, ()))

    async def session_rooms_of_user(self, user_id: str) -> set[str]:
        """Session rooms joined by any of the user's connections."""
        async with self._lock:
            return {
                room_id
                for connection in self._connections.values()
                if connection.user_id == user_id
                for room_id in connection.rooms
                if is_session_room(room_id)
            }

    async def broadcast(
        self, room_id: str, event: dict[str, Any], exclude_connection_id: str | None = None
    ) -> BroadcastResult:
        """
        Deliver an event to every current member of a room.

        Members are snapshotted atomically with respect to joins and leaves;
        a failed delivery to one member never affects the others.
        """
        async with self._lock:
            member_ids = self._rooms.get(room_id, set())
            recipients = [
                self._connections[cid]
                for cid in member_ids
                if cid != exclude_connection_id and cid in self._connections
            ]
            excluded = 1 if exclude_connection_id in member_ids else 0

        result = BroadcastResult(room_id=room_id, total_targets=len(recipients), excluded=excluded)
        await self._fan_out(recipients, event, result)
        return result

    async def broadcast_all(self, event: dict[str, Any], exclude_connection_id: str | None = None) -> BroadcastResult:
        """Deliver an event to every registered connection."""
        async with self._lock:
            recipients = [c for cid, c in self._connections.items() if cid != exclude_connection_id]
            excluded = 1 if exclude_connection_id in self._connections else 0

        result = BroadcastResult(room_id=None, total_targets=len(recipients), excluded=excluded)
        await self._fan_out(recipients, event, result)
        return result

    def connection_count(self) -> int:
        return len(self._connections)

    def room_count(self) -> int:
        return len(self._rooms)

    def connected_user_ids(self) -> set[str]:
        return {connection.user_id for connection in self._connections.values()}

    async def _fan_out(self, recipients: list[Connection], event: dict[str, Any], result: BroadcastResult) -> None:
        if not recipients:
            return
        outcomes = await asyncio.gather(*(c.send(event) for c in recipients), return_exceptions=True)
        for connection, outcome in zip(recipients, outcomes, strict=True):
            if outcome is True:
                result.delivered.add(connection.connection_id)
            else:
                result.failed.add(connection.connection_id)
                if isinstance(outcome, BaseException):
                    logger.warning(
                        "Delivery to connection failed",
                        connection_id=connection.connection_id,
                        room_id=result.room_id,
                        event_type=event.get("event_type"),
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )

    def _remove_locked(self, room_id: str, connection_id: str) -> bool:
        members = self._rooms.get(room_id)
        removed = members is not None and connection_id in members
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room_id]
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.rooms.discard(room_id)
        return removed

    def _release_all_locked(self, connection: Connection) -> set[str]:
        left = set(connection.rooms)
        for room_id in left:
            members = self._rooms.get(room_id)
            if members is not None:
                members.discard(connection.connection_id)
                if not members:
                    del self._rooms[room_id]
        connection.rooms.clear()
        return left
