"""Error types raised by :mod:`op_instrument`.

Errors produced by the instrumented target are never wrapped; only
problems with the instrumentation setup itself surface as these types.
"""

from __future__ import annotations


class InstrumentError(RuntimeError):
    """Base class for instrumentation failures."""


class ConfigurationError(InstrumentError):
    """Raised when an :class:`~op_instrument.instrument.Instrument` cannot be built."""


__all__ = ["InstrumentError", "ConfigurationError"]
