"""Console logging setup shared by the CLI and the websocket service."""

import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str = "live_transcriber", level: int = logging.INFO,
                 stream=None) -> logging.Logger:
    """
    Attach a console handler to the named logger.

    Calling this twice for the same logger only updates the level; no second
    handler is added.

    Args:
        name: Logger name (the package logger by default)
        level: Logging level for logger and handler
        stream: Optional stream for the handler (defaults to stderr)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    existing: Optional[logging.Handler] = None
    for handler in logger.handlers:
        if getattr(handler, "_live_transcriber", False):
            existing = handler
            break

    if existing is None:
        existing = logging.StreamHandler(stream)
        existing.setFormatter(logging.Formatter(LOG_FORMAT))
        existing._live_transcriber = True
        logger.addHandler(existing)

    existing.setLevel(level)
    return logger
