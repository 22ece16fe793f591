"""Logging bootstrap driven by :class:`~filedrap.config.models.LoggingSettings`."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from filedrap.config.models import LoggingSettings

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"
_HANDLER_MARKER = "_filedrap_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    verbose: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Attach console and rotating file handlers to the ``filedrap`` logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging configuration section.
        verbose: Force DEBUG output on the console handler.
        console: Rich console used for terminal output; defaults to stderr.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("filedrap")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    level = logging.DEBUG if verbose else getattr(logging, settings.level)
    logger.setLevel(level)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("File logging disabled; cannot open %s: %s", log_path, exc)
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            file_handler.setLevel(level)
            setattr(file_handler, _HANDLER_MARKER, True)
            logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
