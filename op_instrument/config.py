"""Static configuration for an instrumented method.

:class:`InstrumentConfig` is built once per instrumented method and shared,
read-only, by every invocation.  Construction resolves the method into a
callable and captures the target identity metadata, so that nothing needs
to be looked up dynamically on the hot path.

Examples
--------
>>> class Store:
...     name = "store"
...     version = "1.2.0"
...     def get(self, key, callback, context):
...         callback(None, key)
>>> config = InstrumentConfig(target=Store(), method="get")
>>> config.display_name, config.convention.value
('get', 'callback')
>>> sorted(config.target_identity.items())
[('module', 'store'), ('version', '1.2.0')]
"""

from __future__ import annotations

import inspect
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from .errors import ConfigurationError
from .metadata import target_identity as _target_identity

if TYPE_CHECKING:
    from .spans import LogsSink, MetricsSink


class CallingConvention(str, Enum):
    """Calling conventions supported by the invocation adapter."""

    AWAIT = "await"
    CALLBACK = "callback"
    DUAL = "dual"


class DualTarget(str, Enum):
    """How a ``DUAL`` target completes when the caller supplies a callback."""

    SYNC = "sync"
    CALLBACK = "callback"


@dataclass(frozen=True)
class InstrumentConfig:
    """Immutable settings shared by every invocation of an instrument.

    Parameters
    ----------
    target:
        Object owning the instrumented method.  Its ``name``/``version``
        (or ``__name__``/``__version__``) attributes provide the default
        target metadata.
    method:
        The callable to instrument, or the name of a callable attribute
        on ``target``.  Names are resolved once, here.
    display_name:
        Label used in log messages and span names.  Defaults to the
        method's ``__name__``.
    suppress_context:
        When ``True`` the target is invoked without the trailing
        :class:`~op_instrument.context.ExecutionContext` argument.
    logs, metrics:
        Optional telemetry sinks.  A missing sink disables that signal.
    convention:
        How the target completes.  Defaults to
        :attr:`CallingConvention.AWAIT` for coroutine functions and
        :attr:`CallingConvention.CALLBACK` otherwise.
    warn_without_sinks:
        Log a warning when neither sink is configured.
    dual_target:
        For the ``DUAL`` convention, whether the target returns its value
        (:attr:`DualTarget.SYNC`) or completes through its own callback
        (:attr:`DualTarget.CALLBACK`).  Defaults to ``CALLBACK`` when the
        method has a ``callback`` parameter and ``SYNC`` otherwise.
    """

    target: Any
    method: Union[str, Callable[..., Any]]
    display_name: Optional[str] = None
    suppress_context: bool = False
    logs: Optional["LogsSink"] = None
    metrics: Optional["MetricsSink"] = None
    convention: Optional[CallingConvention] = None
    warn_without_sinks: bool = True
    dual_target: Optional[DualTarget] = None
    target_identity: Dict[str, Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.target is None:
            raise ConfigurationError("an instrument requires a target")

        method = self.method
        name = method if isinstance(method, str) else None
        if name is not None:
            method = getattr(self.target, name, None)
        if not callable(method):
            label = name if name is not None else repr(method)
            raise ConfigurationError(
                f"{label!s} is not a callable member of {type(self.target).__name__}"
            )
        object.__setattr__(self, "method", method)

        if self.display_name is None:
            display_name = name or getattr(method, "__name__", None) or type(method).__name__
            object.__setattr__(self, "display_name", display_name)

        object.__setattr__(self, "convention", _coerce_convention(self.convention, method))
        object.__setattr__(self, "dual_target", _coerce_dual_target(self.dual_target, method))
        object.__setattr__(self, "target_identity", _target_identity(self.target))

    @property
    def has_sinks(self) -> bool:
        return self.logs is not None or self.metrics is not None

    @staticmethod
    def _parse_bool(value: str | None, default: bool) -> bool:
        if value is None:
            return default
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
        return default

    @classmethod
    def from_env(
        cls,
        *,
        target: Any,
        method: Union[str, Callable[..., Any]],
        **overrides: Any,
    ) -> "InstrumentConfig":
        """Create a configuration, filling unset options from the environment.

        ``OPINSTR_SUPPRESS_CONTEXT``, ``OPINSTR_CONVENTION``,
        ``OPINSTR_DUAL_TARGET`` and ``OPINSTR_WARN_WITHOUT_SINKS`` are
        consulted only for options that are not passed explicitly.
        """

        if "suppress_context" not in overrides:
            overrides["suppress_context"] = cls._parse_bool(
                os.getenv("OPINSTR_SUPPRESS_CONTEXT"), False
            )
        if "warn_without_sinks" not in overrides:
            overrides["warn_without_sinks"] = cls._parse_bool(
                os.getenv("OPINSTR_WARN_WITHOUT_SINKS"), True
            )
        if "convention" not in overrides:
            convention_env = os.getenv("OPINSTR_CONVENTION")
            if convention_env and convention_env.strip():
                overrides["convention"] = convention_env.strip().lower()
        if "dual_target" not in overrides:
            dual_env = os.getenv("OPINSTR_DUAL_TARGET")
            if dual_env and dual_env.strip():
                overrides["dual_target"] = dual_env.strip().lower()
        return cls(target=target, method=method, **overrides)


def _coerce_convention(
    value: Union[CallingConvention, str, None], method: Callable[..., Any]
) -> CallingConvention:
    if value is None:
        if inspect.iscoroutinefunction(method):
            return CallingConvention.AWAIT
        return CallingConvention.CALLBACK
    if isinstance(value, CallingConvention):
        return value
    try:
        return CallingConvention(str(value).lower())
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported calling convention: {value!r}") from exc


def _coerce_dual_target(
    value: Union[DualTarget, str, None], method: Callable[..., Any]
) -> DualTarget:
    if value is None:
        try:
            parameters = inspect.signature(method).parameters
        except (TypeError, ValueError):
            return DualTarget.SYNC
        if "callback" in parameters:
            return DualTarget.CALLBACK
        return DualTarget.SYNC
    if isinstance(value, DualTarget):
        return value
    try:
        return DualTarget(str(value).lower())
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported dual target: {value!r}") from exc


__all__ = ["CallingConvention", "DualTarget", "InstrumentConfig"]
