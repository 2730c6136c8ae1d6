"""OpenTelemetry adapters for the span and metrics collaborator protocols.

:class:`OpenTelemetrySpan` lets an ``opentelemetry.trace`` span act as the
``parent_span`` of an invocation, and :class:`OpenTelemetryMetricsSink`
records ``latency`` gauges on an OpenTelemetry meter.  Nested metadata is
flattened into dotted attribute keys because OpenTelemetry attributes only
hold primitives and homogeneous sequences of primitives.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Dict, Mapping, Optional, Tuple

from opentelemetry import trace
from opentelemetry.metrics import Histogram, Meter
from opentelemetry.trace import Status, StatusCode

_PRIMITIVES = (str, bool, int, float)


def flatten_attributes(
    metadata: Optional[Mapping[str, Any]],
    prefix: str = "",
) -> Dict[str, Any]:
    """Flatten ``metadata`` into OpenTelemetry compatible attributes.

    >>> flatten_attributes({"target": {"method": "get", "version": None}, "ids": [1, 2]})
    {'target.method': 'get', 'ids': (1, 2)}
    """

    flat: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        name = f"{prefix}{key}"
        if value is None:
            continue
        if isinstance(value, Mapping):
            flat.update(flatten_attributes(value, f"{name}."))
        elif isinstance(value, _PRIMITIVES):
            flat[name] = value
        elif isinstance(value, (list, tuple)) and _is_homogeneous(value):
            flat[name] = tuple(value)
        else:
            flat[name] = _safe_repr(value)
    return flat


class OpenTelemetrySpan:
    """Expose an OpenTelemetry span through ``child_span``/``tag``/``finish``."""

    def __init__(self, span: trace.Span, tracer: trace.Tracer) -> None:
        self._span = span
        self._tracer = tracer

    @classmethod
    def start_root(
        cls,
        tracer: trace.Tracer,
        name: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "OpenTelemetrySpan":
        """Start a span in the current context to parent instrumented calls."""

        span = tracer.start_span(name, attributes=flatten_attributes(metadata))
        return cls(span, tracer)

    @property
    def span(self) -> trace.Span:
        return self._span

    def child_span(self, name: str, metadata: Mapping[str, Any]) -> "OpenTelemetrySpan":
        parent_context = trace.set_span_in_context(self._span)
        child = self._tracer.start_span(
            name,
            context=parent_context,
            attributes=flatten_attributes(metadata),
        )
        return OpenTelemetrySpan(child, self._tracer)

    def tag(self, key: str, value: Any) -> None:
        if isinstance(value, _PRIMITIVES):
            self._span.set_attribute(key, value)
        else:
            self._span.set_attribute(key, _safe_repr(value))
        if key == "error" and value is True:
            self._span.set_status(Status(StatusCode.ERROR))

    def finish(self) -> None:
        self._span.end()


class OpenTelemetryMetricsSink:
    """Record gauges as OpenTelemetry histograms.

    One histogram is created per ``(name, unit)`` pair and reused; the
    gauge metadata becomes the measurement attributes.
    """

    def __init__(self, meter: Meter, *, description: str = "") -> None:
        self._meter = meter
        self._description = description
        self._instruments: Dict[Tuple[str, str], Histogram] = {}
        self._lock = Lock()

    def gauge(self, name: str, data: Mapping[str, Any]) -> None:
        unit = str(data.get("unit") or "")
        histogram = self._instrument(name, unit)
        histogram.record(data["value"], attributes=flatten_attributes(data.get("metadata")))

    def _instrument(self, name: str, unit: str) -> Histogram:
        key = (name, unit)
        with self._lock:
            histogram = self._instruments.get(key)
            if histogram is None:
                histogram = self._meter.create_histogram(
                    name, unit=unit, description=self._description
                )
                self._instruments[key] = histogram
            return histogram


def _is_homogeneous(values: Any) -> bool:
    kinds = {type(item) for item in values}
    return len(kinds) <= 1 and all(issubclass(kind, _PRIMITIVES) for kind in kinds)


def _safe_repr(value: Any) -> str:
    try:
        return repr(value)
    except Exception:  # pragma: no cover
        return f"<unreprable {type(value).__name__}>"


__all__ = ["OpenTelemetryMetricsSink", "OpenTelemetrySpan", "flatten_attributes"]
