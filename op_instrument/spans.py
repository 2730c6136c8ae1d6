"""Collaborator protocols and the per-invocation span controller.

Tracing is best-effort: a failure inside the tracing collaborator is
logged and suppressed so that it can never change the outcome of the
instrumented call.  Logs and metrics sinks are not guarded here; their
failures propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Span(Protocol):
    """Tracing span contract consumed by :class:`SpanController`."""

    def child_span(self, name: str, metadata: Mapping[str, Any]) -> "Span":
        ...

    def tag(self, key: str, value: Any) -> None:
        ...

    def finish(self) -> None:
        ...


@runtime_checkable
class LogsSink(Protocol):
    """Receives the "attempting" and "failed" log events."""

    def log(
        self,
        level: str,
        message: str,
        metadata: Mapping[str, Any],
        details: Mapping[str, Any],
    ) -> None:
        ...


@runtime_checkable
class MetricsSink(Protocol):
    """Receives the ``latency`` gauge as ``{"unit", "value", "metadata"}``."""

    def gauge(self, name: str, data: Mapping[str, Any]) -> None:
        ...


class SpanController:
    """Own the optional child span of a single invocation.

    The span is finished exactly once: whichever of :meth:`on_success` or
    :meth:`on_failure` runs first finishes it, later calls do nothing.
    Without a span both are no-ops.
    """

    def __init__(self) -> None:
        self._span: Optional[Span] = None
        self._finished = False

    @property
    def span(self) -> Optional[Span]:
        return self._span

    @property
    def finished(self) -> bool:
        return self._finished

    def start_child(
        self,
        parent_span: Optional[Span],
        name: str,
        metadata: Mapping[str, Any],
    ) -> Optional[Span]:
        if parent_span is None:
            return None
        try:
            self._span = parent_span.child_span(name, metadata)
        except Exception:
            logger.warning("Failed to start child span %r", name, exc_info=True)
            self._span = None
        return self._span

    def on_failure(self, should_tag: bool = True) -> None:
        span = self._claim()
        if span is None:
            return
        if should_tag:
            try:
                span.tag("error", True)
            except Exception:
                logger.warning("Failed to tag span as errored", exc_info=True)
        self._finish(span)

    def on_success(self) -> None:
        span = self._claim()
        if span is None:
            return
        self._finish(span)

    def _claim(self) -> Optional[Span]:
        if self._finished:
            return None
        self._finished = True
        return self._span

    @staticmethod
    def _finish(span: Span) -> None:
        try:
            span.finish()
        except Exception:
            logger.warning("Failed to finish span", exc_info=True)


__all__ = ["LogsSink", "MetricsSink", "Span", "SpanController"]
