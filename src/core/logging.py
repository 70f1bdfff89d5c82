"""
Loguru sink configuration shared by the API and the CLI.
"""

from __future__ import annotations

import sys

from loguru import logger

from config import Settings

LOG_FORMAT = (
    "<dim>{time:YYYY-MM-DD HH:mm:ss}</dim> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings, level: str | None = None) -> None:
    """
    Replace loguru's default handler with the configured sinks.

    Args:
        settings: Application settings (log_level, log_file)
        level: Optional override for the stderr level (CLI uses WARNING)
    """
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format=LOG_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
