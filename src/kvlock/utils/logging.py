"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys
from typing import Any, Union

from rich.logging import RichHandler


def get_logger(name: str, level: Union[int, str] = logging.INFO, *, rich: bool = True) -> logging.Logger:
    """Configure and return a logger."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger


class LoggerEventSink:
    """Event sink writing lock observations to a standard logger.

    The context dict is rendered into the message and also attached to the
    record as ``record.context`` for handlers that want the raw values.
    The multi-line caller stack is only rendered at debug level.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    def _emit(self, level: int, event: str, context: dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        shown = {
            key: value
            for key, value in context.items()
            if value is not None and (key != "stack" or self.logger.isEnabledFor(logging.DEBUG))
        }
        self.logger.log(level, "%s %s", event, shown, extra={"context": context})

    def debug(self, event: str, **context: Any) -> None:
        self._emit(logging.DEBUG, event, context)

    def warning(self, event: str, **context: Any) -> None:
        self._emit(logging.WARNING, event, context)

    def error(self, event: str, **context: Any) -> None:
        self._emit(logging.ERROR, event, context)
