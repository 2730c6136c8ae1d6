"""Invoke a target under one of the supported calling conventions.

The adapter knows how to call the target and how to recognise its
completion; everything that happens afterwards is delegated to the
:class:`~op_instrument.epilog.Epilog`, which is reached exactly once from
every exit path.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

if TYPE_CHECKING:
    from .config import InstrumentConfig
    from .context import ExecutionContext, InvocationContext
    from .epilog import Epilog

logger = logging.getLogger(__name__)


class InvocationAdapter:
    """Call ``config.method`` and normalise its outcome to ``(error, result)``.

    ``execution`` is appended as the trailing positional argument unless it
    is ``None`` (context suppressed).  For the callback conventions the
    error-first relay callback precedes it.
    """

    def __init__(self, config: "InstrumentConfig") -> None:
        self._config = config

    def positional_args(
        self,
        context: "InvocationContext",
        execution: Optional["ExecutionContext"],
        relay: Optional[Callable[..., Any]] = None,
    ) -> List[Any]:
        call_args = list(context.args)
        if relay is not None:
            call_args.append(relay)
        if execution is not None:
            call_args.append(execution)
        return call_args

    async def invoke_async(
        self,
        context: "InvocationContext",
        execution: Optional["ExecutionContext"],
        epilog: "Epilog",
    ) -> Any:
        """Await the target; cancellation still runs the epilog before re-raising."""

        method = self._config.method
        try:
            outcome = method(*self.positional_args(context, execution), **context.kwargs)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except BaseException as exc:
            return epilog.finalize(exc)
        return epilog.finalize(None, outcome)

    def invoke_direct(
        self,
        context: "InvocationContext",
        execution: Optional["ExecutionContext"],
        epilog: "Epilog",
    ) -> Any:
        """Call a synchronous target and return its value (or raise its error)."""

        method = self._config.method
        try:
            outcome = method(*self.positional_args(context, execution), **context.kwargs)
        except BaseException as exc:
            return epilog.finalize(exc)
        return epilog.finalize(None, outcome)

    def invoke_sync_relay(
        self,
        context: "InvocationContext",
        execution: Optional["ExecutionContext"],
        epilog: "Epilog",
    ) -> None:
        """Call a synchronous target and relay its outcome through the callback.

        The returned value is delivered as the single result argument.
        Exceptions from the outward callback itself propagate.
        """

        method = self._config.method
        try:
            outcome = method(*self.positional_args(context, execution), **context.kwargs)
        except Exception as exc:
            epilog.finalize(exc)
            return
        except BaseException as exc:
            epilog.abort(exc)
            raise
        epilog.finalize(None, (outcome,))

    def invoke_callback(
        self,
        context: "InvocationContext",
        execution: Optional["ExecutionContext"],
        epilog: "Epilog",
    ) -> None:
        """Bridge the target's error-first callback into ``epilog``.

        An exception raised by the target before it completes is delivered
        through the callback like any other error.  Once the callback has
        fired, exceptions (typically raised by the caller's own callback)
        propagate untouched.
        """

        method = self._config.method
        relay = self._relay(epilog)
        try:
            method(*self.positional_args(context, execution, relay), **context.kwargs)
        except Exception as exc:
            if epilog.done:
                raise
            epilog.finalize(exc)
        except BaseException as exc:
            if not epilog.done:
                epilog.abort(exc)
            raise

    def _relay(self, epilog: "Epilog") -> Callable[..., Any]:
        display_name = self._config.display_name

        def relay(error: Optional[BaseException] = None, *payload: Any) -> Any:
            if epilog.done:
                logger.warning(
                    "%s completed more than once; ignoring repeated completion",
                    display_name,
                )
                return None
            return epilog.finalize(error, payload)

        return relay


__all__ = ["InvocationAdapter"]
