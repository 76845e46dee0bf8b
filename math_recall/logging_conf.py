"""Logging setup shared by the game and the leaderboard service."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "MATH_RECALL_LOG_LEVEL"


def setup_logging(log_level: str | None = None) -> None:
    """Configure root logging once.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Falls back to
            ``MATH_RECALL_LOG_LEVEL`` and then INFO.
    """
    level_name = (log_level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
