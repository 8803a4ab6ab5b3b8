"""Logging configuration for applications embedding SpaceRAG."""

import logging
import os
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[Union[int, str]] = None) -> int:
    """
    Configure root logging the same way the API server does.

    The library itself never calls this; it is meant for the process
    entry point (server, worker, test session).

    Args:
        level: Logging level name or number. Falls back to the LOG_LEVEL
            environment variable, then INFO.

    Returns:
        The numeric level that was applied.
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")

    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    return level
