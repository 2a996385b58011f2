"""
Logging setup.

Modules log through logging.getLogger(__name__). The application
configures the root "governance_core" logger once at startup.
"""

import logging

from governance_core.config import get_settings

LOGGER_NAME = "governance_core"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the package logger with a single stream handler.

    Calling this more than once does not add duplicate handlers.
    """
    settings = get_settings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level or settings.LOG_LEVEL)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
