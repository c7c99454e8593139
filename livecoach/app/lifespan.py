"""
Application lifecycle management for the LiveCoach hub.

Startup wires the collaborators (Redis store, Postgres user directory, JWT
verifier, form scorer) into a SessionHub on ``app.state.hub`` and starts the
periodic statistics task. A hub placed on ``app.state`` before startup is
used as-is, which is how tests inject fakes.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..auth import ConnectionAuthenticator, JWTTokenVerifier
from ..config import AppConfig, get_config
from ..logging.logging_config import get_logger, setup_logging
from ..persistence import EphemeralStore, PostgresDirectory, PostOwnerResolver, RedisEphemeralStore, UserDirectory
from ..realtime.message_router import MessageRouter
from ..realtime.room_directory import RoomDirectory
from ..realtime.session_hub import SessionHub
from ..services import AnomalyDetector, HeuristicFormScorer

logger = get_logger(__name__)


def build_hub(
    config: AppConfig,
    store: EphemeralStore,
    users: UserDirectory,
    post_owners: PostOwnerResolver | None = None,
) -> SessionHub:
    """Assemble a SessionHub from configuration and collaborators."""
    directory = RoomDirectory()
    detector = AnomalyDetector(
        critical_above=config.anomaly.critical_above,
        warning_above=config.anomaly.warning_above,
        warning_below=config.anomaly.warning_below,
    )
    router = MessageRouter(
        directory,
        store,
        detector,
        HeuristicFormScorer(),
        post_owners,
        chat_ttl_seconds=config.redis.chat_history_ttl_seconds,
        heart_rate_buffer_size=config.redis.heart_rate_buffer_size,
    )
    verifier = JWTTokenVerifier(
        config.auth.jwt_secret, algorithm=config.auth.jwt_algorithm, audience=config.auth.audience
    )
    authenticator = ConnectionAuthenticator(verifier, users, timeout_seconds=config.auth.timeout_seconds)
    return SessionHub(authenticator, directory, router)


async def _close_all(closers: list[Callable[[], Awaitable[None]]]) -> None:
    for close in reversed(closers):
        try:
            await close()
        except Exception as e:
            logger.error("Error closing collaborator during shutdown", error=str(e), exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start collaborators and background tasks; release them on shutdown."""
    config = get_config()
    setup_logging(config.logging.environment, config.logging.level, config.logging.format)
    logger.info("Starting LiveCoach hub", host=config.server.host, port=config.server.port)

    closers: list[Callable[[], Awaitable[None]]] = []
    if getattr(app.state, "hub", None) is None:
        try:
            store = RedisEphemeralStore(config.redis.url, socket_timeout=config.redis.socket_timeout)
            closers.append(store.close)
            users = PostgresDirectory(
                config.database.url,
                min_size=config.database.pool_min_size,
                max_size=config.database.pool_max_size,
            )
            await users.connect()
            closers.append(users.close)
        except BaseException:
            logger.error("Session hub startup failed", exc_info=True)
            await _close_all(closers)
            raise
        app.state.hub = build_hub(config, store, users, post_owners=users)
        logger.info("Session hub initialized")

    hub: SessionHub = app.state.hub
    stats_task = asyncio.create_task(hub.run_statistics_logger(config.realtime.stats_interval_seconds))

    try:
        yield
    finally:
        logger.info("Shutting down LiveCoach hub")
        stats_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await stats_task
        await _close_all(closers)
        logger.info("LiveCoach hub stopped")
