"""Logging setup for feed_filter.

All modules log under the ``feed_filter`` logger hierarchy. The server calls
``setup_logging`` once at startup; library use without it falls back to
whatever the host application configured.
"""

import logging
import sys
from typing import Optional

from feed_filter.config import ServerConfig, get_config


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("feed_filter")


def setup_logging(config: Optional[ServerConfig] = None) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Logs go to stderr so they never interleave with the STDIO transport.

    Args:
        config: Optional server configuration (uses the cached config if omitted)

    Returns:
        The configured package logger
    """
    if config is None:
        config = get_config()

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (typically ``__name__``)."""
    return logging.getLogger(name)
