"""
Session hub: the connection lifecycle.

Authenticates each inbound connection, registers it with the room
directory, joins its personal room and then feeds its frames to the
message router one at a time. Frames from one connection are therefore
handled in arrival order; different connections progress independently.
On disconnect every membership is released before the connection is
forgotten.
"""

import asyncio
import time
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..auth.authenticator import ConnectionAuthenticator
from ..error_types import ErrorMessages, create_websocket_error_response
from ..exceptions import AuthenticationError, InvalidMessage
from ..logging.logging_config import bind_connection_context, clear_connection_context, get_logger
from .connection_models import Connection, Transport
from .envelope import build_event
from .events import parse_client_event
from .message_router import MessageRouter
from .room_directory import RoomDirectory
from .room_ids import personal_room_id

logger = get_logger(__name__)

# policy violation; sent after an authentication failure
AUTH_FAILURE_CLOSE_CODE = 1008


class SessionHub:
    """Owns the lifecycle of every live connection."""

    def __init__(self, authenticator: ConnectionAuthenticator, directory: RoomDirectory, router: MessageRouter) -> None:
        self.authenticator = authenticator
        self.directory = directory
        self.router = router
        self.started_at = time.time()

    async def connect(self, credential: str | None, transport: Transport) -> Connection:
        """
        Authenticate and register a new connection.

        The connection joins its personal room and is sent a ``connected``
        event before this returns.

        Raises:
            AuthenticationError: The credential was refused; no state was created
        """
        user = await self.authenticator.authenticate(credential)
        connection = Connection(
            user_id=user.user_id,
            name=user.profile.name,
            avatar=user.profile.avatar,
            transport=transport,
        )

        await self.directory.register(connection)
        try:
            await self.directory.join(personal_room_id(user.user_id), connection.connection_id)
            await connection.send(
                build_event(
                    "connected",
                    {
                        "connectionId": connection.connection_id,
                        "userId": user.user_id,
                        "userName": user.profile.name,
                    },
                )
            )
        except BaseException:
            await self.disconnect(connection)
            raise

        logger.info("User connected", user_id=user.user_id, connection_id=connection.connection_id)
        return connection

    async def handle_frame(self, connection: Connection, frame: str | bytes) -> None:
        """Parse one inbound frame and route it; malformed frames earn the sender an error event."""
        try:
            event = parse_client_event(frame)
        except InvalidMessage as e:
            logger.warning("Message validation failed", connection_id=connection.connection_id, error=e.message)
            await self.router.send_error(connection, e, user_friendly=ErrorMessages.INVALID_MESSAGE)
            return
        await self.router.dispatch(connection, event)

    async def disconnect(self, connection: Connection) -> None:
        """Release all memberships, then forget the connection. Safe to call twice."""
        await self.router.handle_disconnect(connection)
        await self.directory.unregister(connection.connection_id)

    async def serve(self, websocket: WebSocket, credential: str | None, subprotocol: str | None = None) -> None:
        """Run the full lifecycle of one websocket."""
        await websocket.accept(subprotocol=subprotocol)

        try:
            connection = await self.connect(credential, websocket)
        except AuthenticationError as e:
            logger.warning("WebSocket authentication refused", error_type=e.error_type.value, error=e.message)
            await websocket.send_json(
                build_event(
                    "error",
                    create_websocket_error_response(
                        e.error_type, e.message, user_friendly=ErrorMessages.AUTHENTICATION_FAILED
                    ),
                )
            )
            await websocket.close(code=AUTH_FAILURE_CLOSE_CODE)
            return

        bind_connection_context(connection_id=connection.connection_id, user_id=connection.user_id)
        try:
            await self._message_loop(websocket, connection)
        finally:
            await self.disconnect(connection)
            clear_connection_context()

    async def _message_loop(self, websocket: WebSocket, connection: Connection) -> None:
        while True:
            try:
                message = await websocket.receive()
            except RuntimeError as e:
                logger.warning("WebSocket connection lost", error=str(e))
                return

            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket disconnected", code=message.get("code"))
                return

            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes") or b""

            try:
                await self.handle_frame(connection, frame)
            except WebSocketDisconnect:
                logger.info("WebSocket disconnected during handling")
                return

    def statistics(self) -> dict[str, Any]:
        return {
            "connections": self.directory.connection_count(),
            "rooms": self.directory.room_count(),
            "users": len(self.directory.connected_user_ids()),
            "uptime_seconds": round(time.time() - self.started_at, 1),
        }

    async def run_statistics_logger(self, interval_seconds: float) -> None:
        """Log hub statistics periodically until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            logger.info("Hub statistics", **self.statistics())
