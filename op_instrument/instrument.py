"""The :class:`Instrument` wrapper and its convenience constructors.

An instrument wraps one target method.  Each call logs an "attempting"
event, opens a child span when a parent span is supplied, times the
target and finally emits a ``latency`` gauge plus, on failure, a
"failed" event.

Examples
--------
>>> class Greeter:
...     name = "greeter"
...     def greet(self, who, context):
...         return f"hello {who}"
>>> greet = instrument(Greeter(), "greet", convention="dual", warn_without_sinks=False)
>>> greet(InvocationContext(args=("ada",)))
'hello ada'
"""

from __future__ import annotations

import functools
import logging
import sys
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple, Union

from .adapter import InvocationAdapter
from .config import CallingConvention, DualTarget, InstrumentConfig
from .context import ExecutionContext, InvocationContext
from .epilog import Epilog
from .metadata import merge_metadata, resolve_target_metadata
from .spans import SpanController
from .timing import TimingProbe

if TYPE_CHECKING:
    from .spans import LogsSink, MetricsSink

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class Instrument:
    """Callable wrapper that instruments every invocation of one method.

    The call signature depends on the configured convention:

    * ``AWAIT`` -- ``await instrument(context)``
    * ``CALLBACK`` -- ``instrument(context, callback)``
    * ``DUAL`` -- ``instrument(context)`` returns the result directly,
      ``instrument(context, callback)`` relays it through ``callback``.
      A target configured as :attr:`DualTarget.SYNC` is called without a
      callback and its return value is relayed; otherwise the target's
      own callback is bridged.
    """

    def __init__(self, config: InstrumentConfig, *, probe: Optional[TimingProbe] = None) -> None:
        self._config = config
        self._adapter = InvocationAdapter(config)
        self._probe = probe or TimingProbe()
        if config.warn_without_sinks and not config.has_sinks:
            logger.warning(
                "Instrument for %s has no logs or metrics sink; only tracing is active",
                config.display_name,
            )

    @property
    def config(self) -> InstrumentConfig:
        return self._config

    @property
    def display_name(self) -> str:
        return self._config.display_name  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"Instrument({self.display_name!r}, convention={self._config.convention.value!r})"

    def __call__(
        self,
        context: Optional[InvocationContext] = None,
        callback: Optional[Callback] = None,
    ) -> Any:
        context = context or InvocationContext()
        convention = self._config.convention

        if convention is CallingConvention.AWAIT:
            if callback is not None:
                raise TypeError(f"{self.display_name} is awaitable and does not accept a callback")
            return self._call_async(context)

        if callback is None:
            if convention is CallingConvention.CALLBACK:
                raise TypeError(f"{self.display_name} requires a completion callback")
            epilog, execution = self._begin(context)
            return self._adapter.invoke_direct(context, execution, epilog)

        epilog, execution = self._begin(context, callback)
        if convention is CallingConvention.DUAL and self._config.dual_target is DualTarget.SYNC:
            return self._adapter.invoke_sync_relay(context, execution, epilog)
        return self._adapter.invoke_callback(context, execution, epilog)

    async def _call_async(self, context: InvocationContext) -> Any:
        epilog, execution = self._begin(context)
        return await self._adapter.invoke_async(context, execution, epilog)

    def _begin(
        self,
        context: InvocationContext,
        callback: Optional[Callback] = None,
    ) -> Tuple[Epilog, Optional[ExecutionContext]]:
        config = self._config
        display_name = self.display_name
        merged = merge_metadata(
            context.metadata,
            display_name,
            config.target_identity,
            context.target_metadata,
        )

        if config.logs is not None:
            config.logs.log(
                "info",
                f"attempting {display_name}",
                merged,
                {"target": {"args": list(context.args_to_log)}},
            )

        spans = SpanController()
        spans.start_child(
            context.parent_span,
            display_name,
            resolve_target_metadata(config.target_identity, context.target_metadata),
        )
        start_time = self._probe.start()
        epilog = Epilog(config, context, merged, spans, self._probe, start_time, callback)

        execution = None
        if not config.suppress_context:
            execution = ExecutionContext(
                parent_span=spans.span,
                provenance=context.provenance,
                tenant_id=context.tenant_id,
            )
        return epilog, execution


def instrument(
    target: Any,
    method: Union[str, Callable[..., Any]],
    *,
    display_name: Optional[str] = None,
    logs: Optional["LogsSink"] = None,
    metrics: Optional["MetricsSink"] = None,
    suppress_context: bool = False,
    convention: Union[CallingConvention, str, None] = None,
    warn_without_sinks: bool = True,
    dual_target: Union[DualTarget, str, None] = None,
) -> Instrument:
    """Build an :class:`Instrument` for ``method`` on ``target``."""

    config = InstrumentConfig(
        target=target,
        method=method,
        display_name=display_name,
        suppress_context=suppress_context,
        logs=logs,
        metrics=metrics,
        convention=convention,  # type: ignore[arg-type]
        warn_without_sinks=warn_without_sinks,
        dual_target=dual_target,  # type: ignore[arg-type]
    )
    return Instrument(config)


def instrumented(
    *,
    target: Any = None,
    display_name: Optional[str] = None,
    logs: Optional["LogsSink"] = None,
    metrics: Optional["MetricsSink"] = None,
    suppress_context: bool = False,
    convention: Union[CallingConvention, str, None] = None,
    warn_without_sinks: bool = True,
    dual_target: Union[DualTarget, str, None] = None,
) -> Callable[[Callable[..., Any]], Instrument]:
    """Decorator form of :func:`instrument` for module level functions.

    Without an explicit ``target`` the function's module supplies the
    identity metadata (its ``__name__`` and ``__version__``).
    """

    def decorator(func: Callable[..., Any]) -> Instrument:
        owner = target if target is not None else sys.modules.get(func.__module__, func)
        wrapper = instrument(
            owner,
            func,
            display_name=display_name,
            logs=logs,
            metrics=metrics,
            suppress_context=suppress_context,
            convention=convention,
            warn_without_sinks=warn_without_sinks,
            dual_target=dual_target,
        )
        functools.update_wrapper(wrapper, func)
        return wrapper

    return decorator


__all__ = ["Instrument", "instrument", "instrumented"]
