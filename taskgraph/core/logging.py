"""Loguru configuration for the taskgraph CLI."""

import sys
from pathlib import Path

from loguru import logger

from taskgraph.core.config import Settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings) -> None:
    """Configure loguru based on settings.

    Removes the default handler, adds a coloured stderr sink and, when
    ``settings.log_file`` is set, a daily rotated file sink.
    """
    logger.remove()  # Remove default handler

    level = "DEBUG" if settings.debug else settings.log_level

    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
    )

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            format=LOG_FORMAT,
        )
