"""
FastAPI application factory for the LiveCoach hub.

This module handles FastAPI app creation and router registration.
"""

from fastapi import FastAPI

from .. import __version__
from ..api.real_time import realtime_router
from ..logging.logging_config import get_logger
from .lifespan import lifespan

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured FastAPI application instance
    """
    app = FastAPI(
        title="LiveCoach Hub",
        description="Real-time hub for live coaching sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(realtime_router)

    logger.info("FastAPI application created")
    return app
