"""Logging configuration for pathguard.

All package modules log through loguru. Records emitted with the standard library ``logging`` module are routed
into loguru as well, so a single sink decides how everything is rendered.
"""

from __future__ import annotations

import inspect
import logging
import sys
from typing import TYPE_CHECKING, TextIO

from loguru import logger

from pathguard.config import LOG_FORMAT, LOG_LEVEL

if TYPE_CHECKING:
    from loguru import Logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<level>{message}</level> {extra}"
)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Re-emit ``record`` through loguru, preserving level and caller depth.

        Parameters
        ----------
        record : logging.LogRecord
            The record produced by the standard library logger.

        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk past the logging module's own frames to find the real caller
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT, sink: TextIO | None = None) -> None:
    """Install the pathguard sink and intercept the standard ``logging`` module.

    Parameters
    ----------
    level : str
        Minimum level to emit (default: the ``LOG_LEVEL`` environment variable, or ``INFO``).
    fmt : str
        ``"json"`` to serialize every record as a JSON document, anything else for human-readable text
        (default: the ``LOG_FORMAT`` environment variable, or ``text``).
    sink : TextIO | None
        Stream the records are written to (default: ``sys.stderr``).

    """
    sink = sink if sink is not None else sys.stderr
    logger.remove()
    logger.configure(extra={"name": "pathguard"})
    if fmt == "json":
        logger.add(sink, level=level, serialize=True)
    else:
        logger.add(sink, level=level, format=TEXT_FORMAT, colorize=None)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def get_logger(name: str) -> Logger:
    """Return a loguru logger bound to ``name``.

    Parameters
    ----------
    name : str
        Usually the calling module's ``__name__``.

    Returns
    -------
    Logger
        The shared loguru logger with ``name`` attached to every record.

    """
    return logger.bind(name=name)


configure_logging()
