"""Log output for the relay process.

Everything under the ``panerelay`` logger goes to stderr and, when
``logging.file`` is configured, to that file as well. uvicorn keeps its
own handlers; only its per-request access log is quietened outside
debug mode.
"""

from __future__ import annotations

import logging
import sys

from panerelay.config.settings import LoggingConfig

PACKAGE_LOGGER = "panerelay"


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the relay's log handlers.

    Safe to call again: handlers from an earlier call are closed and
    replaced, so the CLI can re-run it after ``--verbose`` changes the level.

    Args:
        config: Level, format and optional log file. None means
                ``LoggingConfig()`` (INFO to stderr).
    """
    if config is None:
        config = LoggingConfig()

    level = getattr(logging, config.level.upper(), logging.INFO)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(config):
        logger.addHandler(handler)

    # One access line per WebSocket upgrade and /health poll is noise
    logging.getLogger("uvicorn.access").setLevel(
        logging.INFO if level <= logging.DEBUG else logging.WARNING
    )

    logger.info("Logging initialized at %s level", logging.getLevelName(level))
