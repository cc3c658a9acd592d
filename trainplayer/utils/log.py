"""Logging setup shared by the player and scripts."""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(level: str | int = logging.INFO):
    """Configure root logging with the project format."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
