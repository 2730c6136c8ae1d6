"""Logs sink backed by the standard :mod:`logging` module.

Events carry their metadata and details as ``extra`` record attributes, so
a handler such as the OpenTelemetry ``LoggingHandler`` forwards them as
structured attributes alongside the trace correlation ids.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

_LEVELS: Dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

DEFAULT_EVENT_LOGGER = "op_instrument.events"


def resolve_level(level: str) -> int:
    """Map a telemetry level name onto a :mod:`logging` level number."""

    try:
        return _LEVELS[level.strip().lower()]
    except (AttributeError, KeyError) as exc:
        raise ValueError(f"Unsupported log level: {level!r}") from exc


class LoggingLogsSink:
    """Forward instrumentation events to a :class:`logging.Logger`."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(DEFAULT_EVENT_LOGGER)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def log(
        self,
        level: str,
        message: str,
        metadata: Mapping[str, Any],
        details: Mapping[str, Any],
    ) -> None:
        levelno = resolve_level(level)
        if not self._logger.isEnabledFor(levelno):
            return
        error = details.get("error")
        exc_info = None
        if isinstance(error, BaseException):
            exc_info = (type(error), error, error.__traceback__)
        self._logger.log(
            levelno,
            message,
            exc_info=exc_info,
            extra={"metadata": dict(metadata), "details": dict(details)},
        )


__all__ = ["DEFAULT_EVENT_LOGGER", "LoggingLogsSink", "resolve_level"]
