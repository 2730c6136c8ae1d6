"""Shared finalisation step run once per invocation.

Whatever path an invocation takes (returned value, raised exception,
rejected awaitable, callback error, cancellation) the adapter funnels it
into :meth:`Epilog.finalize`, which emits the latency metric and failure
log, settles the span and hands the outcome back to the caller.
"""

from __future__ import annotations

import traceback
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from .metadata import deep_merge

if TYPE_CHECKING:
    from .config import InstrumentConfig
    from .context import InvocationContext
    from .spans import SpanController
    from .timing import TimingProbe

LATENCY_METRIC = "latency"
LATENCY_UNIT = "ms"


class Epilog:
    """Finalise one invocation and propagate its outcome.

    ``callback`` is the caller's error-first callback for the callback
    conventions; without it the result is returned and errors are raised.
    """

    def __init__(
        self,
        config: "InstrumentConfig",
        context: "InvocationContext",
        metadata: Mapping[str, Any],
        spans: "SpanController",
        probe: "TimingProbe",
        start_time: float,
        callback: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._config = config
        self._context = context
        self._metadata = metadata
        self._spans = spans
        self._probe = probe
        self._start_time = start_time
        self._callback = callback
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def finalize(self, error: Optional[BaseException], result: Any = None) -> Any:
        """Emit end-of-call telemetry and deliver ``error`` or ``result``.

        With a callback, ``result`` is the tuple of values the target
        completed with and is splatted after the error argument.
        """

        self._settle(error)
        if self._callback is not None:
            payload = tuple(result) if result is not None else ()
            self._callback(error, *payload)
            return None
        if error is not None:
            raise error
        return result

    def abort(self, error: BaseException) -> None:
        """Record ``error`` without delivering it; the caller re-raises it."""

        self._settle(error)

    def _settle(self, error: Optional[BaseException]) -> None:
        if self._done:
            raise RuntimeError(f"{self._config.display_name} was already finalised")
        self._done = True

        elapsed = self._probe.elapsed(self._start_time)
        try:
            self._emit_latency(elapsed)
            if error is not None:
                self._log_failure(error)
        finally:
            if error is not None:
                self._spans.on_failure(self._context.error_trace_tag is not False)
            else:
                self._spans.on_success()

    def _emit_latency(self, elapsed: float) -> None:
        metrics = self._config.metrics
        if metrics is None:
            return
        metrics.gauge(
            LATENCY_METRIC,
            {
                "unit": LATENCY_UNIT,
                "value": elapsed,
                "metadata": deep_merge(self._metadata),
            },
        )

    def _log_failure(self, error: BaseException) -> None:
        logs = self._config.logs
        if logs is None:
            return
        details: Dict[str, Any] = {
            "target": {"args": list(self._context.args_to_log)},
            "error": error,
            "stack": format_stack(error),
        }
        logs.log(
            self._context.error_level,
            f"{self._config.display_name} failed",
            self._metadata,
            details,
        )


def format_stack(error: Any) -> Optional[str]:
    """Render ``error`` and its traceback the way the interpreter would.

    Callback targets may report errors that are not exceptions; those
    have no stack.
    """

    if not isinstance(error, BaseException):
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


__all__ = ["Epilog", "LATENCY_METRIC", "LATENCY_UNIT", "format_stack"]
