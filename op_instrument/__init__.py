"""Uniform logs, latency metrics and trace spans for instrumented method calls.

Usage::

    from op_instrument import InvocationContext, LoggingLogsSink, instrument

    fetch = instrument(store, "fetch", logs=LoggingLogsSink(), convention="await")
    record = await fetch(InvocationContext(args=(key,), args_to_log=("<redacted>",)))
"""

from .adapter import InvocationAdapter
from .config import CallingConvention, DualTarget, InstrumentConfig
from .context import DEFAULT_ERROR_LEVEL, ExecutionContext, InvocationContext
from .epilog import LATENCY_METRIC, LATENCY_UNIT, Epilog
from .errors import ConfigurationError, InstrumentError
from .instrument import Instrument, instrument, instrumented
from .metadata import deep_merge, merge_metadata, resolve_target_metadata, target_identity
from .otel import OpenTelemetryMetricsSink, OpenTelemetrySpan, flatten_attributes
from .sinks import LoggingLogsSink
from .spans import LogsSink, MetricsSink, Span, SpanController
from .timing import TimingProbe

__version__ = "0.1.0"

__all__ = [
    "CallingConvention",
    "ConfigurationError",
    "DEFAULT_ERROR_LEVEL",
    "DualTarget",
    "Epilog",
    "ExecutionContext",
    "Instrument",
    "InstrumentConfig",
    "InstrumentError",
    "InvocationAdapter",
    "InvocationContext",
    "LATENCY_METRIC",
    "LATENCY_UNIT",
    "LoggingLogsSink",
    "LogsSink",
    "MetricsSink",
    "OpenTelemetryMetricsSink",
    "OpenTelemetrySpan",
    "Span",
    "SpanController",
    "TimingProbe",
    "deep_merge",
    "flatten_attributes",
    "instrument",
    "instrumented",
    "merge_metadata",
    "resolve_target_metadata",
    "target_identity",
]
