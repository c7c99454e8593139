"""
Message router for the LiveCoach hub.

Applies per-event handling to a connection's inbound events and fans the
results out through the room directory. Events are dispatched by model
class. Store writes and broadcasts are independent best-effort operations:
a store failure is logged as degraded durability and never blocks delivery.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..error_types import ErrorMessages, ErrorType, create_websocket_error_response
from ..exceptions import DirectoryError, InvalidMessage, LiveCoachError, ScoringError, StoreUnavailable
from ..logging.logging_config import get_logger
from ..persistence.directory import DirectoryLookupError, PostOwnerResolver
from ..persistence.ephemeral_store import EphemeralStore, chat_history_key, heart_rate_key
from ..services.anomaly_detector import AlertLevel, AnomalyDetector
from ..services.form_scoring import FormScoringService
from .connection_models import Connection, ConnectionState
from .envelope import build_event
from .events import (
    ChallengeProgressUpdate,
    ChatMessageSend,
    FormAnalysisRequest,
    HeartRateSampleSend,
    InboundEvent,
    JoinChallengeRoom,
    JoinSessionRoom,
    LeaveChallengeRoom,
    LeaveSessionRoom,
    LikePost,
    LiveWorkoutShare,
    Ping,
    TypingIndicator,
)
from .records import ChallengeProgress, ChatMessage, HeartRateSample, LiveWorkoutUpdate, MessageIdGenerator
from .room_directory import RoomDirectory
from .room_ids import challenge_room_id, is_session_room, personal_room_id, session_room_id

logger = get_logger(__name__)

CHAT_HISTORY_TTL_SECONDS = 30 * 24 * 60 * 60
HEART_RATE_BUFFER_SIZE = 100

Handler = Callable[[Connection, Any], Awaitable[None]]


class MessageRouter:
    """Routes inbound events for every connection of the hub."""

    def __init__(
        self,
        directory: RoomDirectory,
        store: EphemeralStore,
        detector: AnomalyDetector,
        scorer: FormScoringService,
        post_owners: PostOwnerResolver | None = None,
        *,
        chat_ttl_seconds: int = CHAT_HISTORY_TTL_SECONDS,
        heart_rate_buffer_size: int = HEART_RATE_BUFFER_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.store = store
        self.detector = detector
        self.scorer = scorer
        self.post_owners = post_owners
        self.chat_ttl_seconds = chat_ttl_seconds
        self.heart_rate_buffer_size = heart_rate_buffer_size
        self.clock = clock
        self.message_ids = MessageIdGenerator(clock)

        self._handlers: dict[type[InboundEvent], Handler] = {
            JoinSessionRoom: self._join_session_room,
            LeaveSessionRoom: self._leave_session_room,
            JoinChallengeRoom: self._join_challenge_room,
            LeaveChallengeRoom: self._leave_challenge_room,
            ChatMessageSend: self._chat_message,
            HeartRateSampleSend: self._heart_rate_sample,
            FormAnalysisRequest: self._form_analysis,
            LiveWorkoutShare: self._live_workout_share,
            ChallengeProgressUpdate: self._challenge_progress_update,
            TypingIndicator: self._typing_indicator,
            LikePost: self._like_post,
            Ping: self._ping,
        }

    async def dispatch(self, connection: Connection, event: InboundEvent) -> None:
        """
        Handle one inbound event for a connection.

        Failures are contained to the originating connection.
        """
        if connection.state is ConnectionState.DISCONNECTED:
            logger.debug("Dropping event for disconnected connection", event_type=event.type)
            return

        handler = self._handlers.get(type(event))
        if handler is None:
            await self.send_error(
                connection, InvalidMessage(f"No handler for '{event.type}'"), user_friendly=ErrorMessages.UNKNOWN_EVENT
            )
            return

        try:
            await handler(connection, event)
        except LiveCoachError as e:
            logger.warning("Event handling failed", event_type=event.type, error=e.message)
            await self.send_error(connection, e)
        except Exception as e:
            logger.error("Unexpected error handling event", event_type=event.type, error=str(e), exc_info=True)
            await self._reply(
                connection,
                build_event(
                    "error",
                    create_websocket_error_response(
                        ErrorType.INTERNAL_ERROR, str(e), user_friendly=ErrorMessages.INTERNAL_ERROR
                    ),
                ),
            )

    async def handle_disconnect(self, connection: Connection) -> set[str]:
        """Terminal transition: stop processing and release every membership."""
        connection.mark_disconnected()
        left = await self.directory.leave_all(connection.connection_id)
        logger.info(
            "Connection disconnected",
            connection_id=connection.connection_id,
            user_id=connection.user_id,
            rooms_released=sorted(left),
        )
        return left

    async def send_error(self, connection: Connection, error: LiveCoachError, user_friendly: str | None = None) -> None:
        """Deliver an error event to one connection only."""
        payload = create_websocket_error_response(
            error.error_type, error.message, user_friendly=user_friendly or error.user_friendly, details=error.details
        )
        await self._reply(connection, build_event("error", payload))

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    async def _join_session_room(self, connection: Connection, event: JoinSessionRoom) -> None:
        room_id = session_room_id(event.session_id)
        try:
            added = await self.directory.join(room_id, connection.connection_id)
        except DirectoryError as e:
            logger.warning("Failed to join trainer session", session_id=event.session_id, error=e.message)
            await self.send_error(connection, e, user_friendly=ErrorMessages.JOIN_SESSION_FAILED)
            return

        logger.info("User joined trainer session", session_id=event.session_id)
        await self._reply(connection, build_event("room-joined", {"roomId": room_id}, room_id=room_id))
        if added:
            await self.directory.broadcast(
                room_id,
                build_event("user-joined-session", self._presence(connection, sessionId=event.session_id), room_id=room_id),
                exclude_connection_id=connection.connection_id,
            )

    async def _leave_session_room(self, connection: Connection, event: LeaveSessionRoom) -> None:
        room_id = session_room_id(event.session_id)
        removed = await self.directory.leave(room_id, connection.connection_id)
        await self._reply(connection, build_event("room-left", {"roomId": room_id}, room_id=room_id))
        if removed:
            logger.info("User left trainer session", session_id=event.session_id)
            await self.directory.broadcast(
                room_id,
                build_event("user-left-session", self._presence(connection, sessionId=event.session_id), room_id=room_id),
            )

    async def _join_challenge_room(self, connection: Connection, event: JoinChallengeRoom) -> None:
        room_id = challenge_room_id(event.challenge_id)
        try:
            await self.directory.join(room_id, connection.connection_id)
        except DirectoryError as e:
            logger.warning("Failed to join challenge", challenge_id=event.challenge_id, error=e.message)
            await self.send_error(connection, e, user_friendly=ErrorMessages.JOIN_CHALLENGE_FAILED)
            return
        await self._reply(connection, build_event("room-joined", {"roomId": room_id}, room_id=room_id))

    async def _leave_challenge_room(self, connection: Connection, event: LeaveChallengeRoom) -> None:
        room_id = challenge_room_id(event.challenge_id)
        await self.directory.leave(room_id, connection.connection_id)
        await self._reply(connection, build_event("room-left", {"roomId": room_id}, room_id=room_id))

    # ------------------------------------------------------------------
    # Coaching
    # ------------------------------------------------------------------

    async def _form_analysis(self, connection: Connection, event: FormAnalysisRequest) -> None:
        try:
            result = await self.scorer.score(event.exercise_id, event.form_payload)
        except (ScoringError, OSError, TimeoutError) as e:
            logger.error("Failed to process form analysis", exercise_id=event.exercise_id, error=str(e))
            error = e if isinstance(e, ScoringError) else ScoringError(f"Scoring service failed: {e}")
            await self.send_error(connection, error, user_friendly=ErrorMessages.FORM_ANALYSIS_FAILED)
            return

        analysis = result.to_dict()
        await self._reply(connection, build_event("form-feedback", analysis))

        joined = {room_id for room_id in connection.rooms if is_session_room(room_id)}
        if event.session_id is not None:
            targets = joined & {session_room_id(event.session_id)}
        else:
            targets = joined
        for room_id in sorted(targets):
            await self.directory.broadcast(
                room_id,
                build_event("client-form-update", self._presence(connection, analysis=analysis), room_id=room_id),
                exclude_connection_id=connection.connection_id,
            )
        logger.debug("Form analysis processed", exercise_id=event.exercise_id, forwarded_to=len(targets))

    async def _chat_message(self, connection: Connection, event: ChatMessageSend) -> None:
        message = ChatMessage(
            id=self.message_ids.next_id(),
            session_id=event.session_id,
            sender_id=connection.user_id,
            sender_name=connection.name,
            sender_avatar=connection.avatar,
            body=event.body,
            kind=event.kind,
            timestamp=self.clock(),
        )
        room_id = session_room_id(event.session_id)
        outbound = build_event("chat-message", message.to_dict(), room_id=room_id)

        await asyncio.gather(
            self._persist_chat(message),
            self.directory.broadcast(room_id, outbound),
        )
        logger.debug("Chat message sent", session_id=event.session_id, message_length=len(event.body))

    async def _persist_chat(self, message: ChatMessage) -> None:
        key = chat_history_key(message.session_id)
        try:
            await self.store.append_with_ttl(key, message.to_dict(), self.chat_ttl_seconds)
        except StoreUnavailable as e:
            logger.warning(
                "Chat history append failed", key=key, message_id=message.id, error=e.message, degraded_durability=True
            )

    async def _typing_indicator(self, connection: Connection, event: TypingIndicator) -> None:
        room_id = session_room_id(event.session_id)
        await self.directory.broadcast(
            room_id,
            build_event("user-typing", self._presence(connection, isTyping=event.is_typing), room_id=room_id),
            exclude_connection_id=connection.connection_id,
        )

    # ------------------------------------------------------------------
    # Biometrics
    # ------------------------------------------------------------------

    async def _heart_rate_sample(self, connection: Connection, event: HeartRateSampleSend) -> None:
        sample = HeartRateSample(
            user_id=connection.user_id, bpm=event.bpm, exercise_id=event.exercise_id, timestamp=self.clock()
        )
        level = self.detector.evaluate(sample)

        await asyncio.gather(
            self._record_heart_rate(sample),
            self._deliver_heart_rate(connection, sample, level),
        )
        logger.debug("Heart rate recorded", bpm=sample.bpm, level=level.value)

    async def _record_heart_rate(self, sample: HeartRateSample) -> None:
        key = heart_rate_key(sample.user_id)
        try:
            await self.store.append_with_ttl(key, sample.to_dict(), None)
        except StoreUnavailable as e:
            logger.warning("Heart-rate append failed", key=key, error=e.message, degraded_durability=True)
        # the cap is enforced even when the append failed
        try:
            await self.store.trim_to_last(key, self.heart_rate_buffer_size)
        except StoreUnavailable as e:
            logger.warning("Heart-rate trim failed", key=key, error=e.message, degraded_durability=True)

    async def _deliver_heart_rate(self, connection: Connection, sample: HeartRateSample, level: AlertLevel) -> None:
        await self._reply(connection, build_event("heart-rate-recorded", {**sample.to_dict(), "level": level.value}))
        if level is AlertLevel.NONE:
            return

        alert = {
            "userId": sample.user_id,
            "userName": connection.name,
            "bpm": sample.bpm,
            "level": level.value,
            "sample": sample.to_dict(),
        }
        rooms = await self.directory.session_rooms_of_user(sample.user_id)
        for room_id in sorted(rooms):
            await self.directory.broadcast(room_id, build_event("heart-rate-alert", alert, room_id=room_id))
        logger.info("Heart-rate alert raised", bpm=sample.bpm, level=level.value, rooms=sorted(rooms))

    # ------------------------------------------------------------------
    # Social
    # ------------------------------------------------------------------

    async def _live_workout_share(self, connection: Connection, event: LiveWorkoutShare) -> None:
        update = LiveWorkoutUpdate(
            user_id=connection.user_id,
            user_name=connection.name,
            workout_id=event.workout_id,
            current_exercise=event.current_exercise,
            progress=event.progress,
            timestamp=self.clock(),
        )
        # no follower graph here: every other connection receives it
        await self.directory.broadcast_all(
            build_event("live-workout-update", update.to_dict()), exclude_connection_id=connection.connection_id
        )

    async def _challenge_progress_update(self, connection: Connection, event: ChallengeProgressUpdate) -> None:
        progress = ChallengeProgress(
            challenge_id=event.challenge_id,
            user_id=connection.user_id,
            user_name=connection.name,
            progress=event.progress,
            timestamp=self.clock(),
        )
        room_id = challenge_room_id(event.challenge_id)
        await self.directory.broadcast(
            room_id, build_event("challenge-participant-update", progress.to_dict(), room_id=room_id)
        )
        logger.debug("Challenge progress updated", challenge_id=event.challenge_id, progress=event.progress)

    async def _like_post(self, connection: Connection, event: LikePost) -> None:
        if self.post_owners is None:
            logger.warning("Like received but no post owner resolver is configured", post_id=event.post_id)
            return

        try:
            owner_id = await self.post_owners.resolve_post_owner(event.post_id)
        except DirectoryLookupError as e:
            logger.error("Failed to resolve post owner", post_id=event.post_id, error=e.message)
            await self.send_error(connection, e, user_friendly=ErrorMessages.LIKE_FAILED)
            return

        if owner_id is None:
            logger.info("Like for unknown post ignored", post_id=event.post_id)
            return

        notification = {
            "type": "like",
            "postId": event.post_id,
            "userId": connection.user_id,
            "userName": connection.name,
            "timestamp": self.clock(),
        }
        owner_room = personal_room_id(owner_id)
        await self.directory.broadcast(owner_room, build_event("post-liked", notification, room_id=owner_room))
        logger.debug("Post liked", post_id=event.post_id, owner_id=owner_id)

    async def _ping(self, connection: Connection, event: Ping) -> None:
        await self._reply(connection, build_event("pong", {"timestamp": self.clock()}))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _presence(connection: Connection, **extra: Any) -> dict[str, Any]:
        return {"userId": connection.user_id, "userName": connection.name, **extra}

    async def _reply(self, connection: Connection, event: dict[str, Any]) -> None:
        try:
            await connection.send(event)
        except Exception as e:
            logger.warning(
                "Direct reply failed",
                connection_id=connection.connection_id,
                event_type=event.get("event_type"),
                error=str(e),
                error_type=type(e).__name__,
            )
