"""
Entry point for the LiveCoach hub.

Run with ``python -m livecoach.main`` or ``uvicorn livecoach.main:app``.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .logging.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

app = create_app()


def main() -> None:
    config = get_config()
    setup_logging(config.logging.environment, config.logging.level, config.logging.format)
    logger.info("Starting server", host=config.server.host, port=config.server.port)
    uvicorn.run("livecoach.main:app", host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
