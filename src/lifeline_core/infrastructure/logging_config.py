"""Logging setup shared by every Lifeline process."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty third-party loggers kept at WARNING unless explicitly debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "redis")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging.

    Args:
        level: Level name (e.g. "INFO"). Defaults to settings.log_level.
    """
    if level is None:
        from lifeline_core.config import get_settings
        level = get_settings().log_level

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, force=True)

    if numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured at {logging.getLevelName(numeric_level)}")
