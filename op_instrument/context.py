"""Per-call inputs and the execution context handed to targets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from .spans import Span

DEFAULT_ERROR_LEVEL = "error"


@dataclass(frozen=True)
class InvocationContext:
    """Data supplied by the caller for a single invocation.

    ``args_to_log`` is the redacted view of ``args``; only it ever reaches
    the logs sink.  ``metadata`` belongs to the caller and is copied, not
    modified, by the instrument.
    """

    args: Sequence[Any] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    args_to_log: Sequence[Any] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    target_metadata: Optional[Mapping[str, Any]] = None
    parent_span: Optional["Span"] = None
    tenant_id: Optional[str] = None
    error_level: str = DEFAULT_ERROR_LEVEL
    error_trace_tag: bool = True

    @property
    def provenance(self) -> Any:
        return (self.metadata or {}).get("provenance")


@dataclass(frozen=True)
class ExecutionContext:
    """Trailing argument that carries tracing and tenancy into the target.

    ``parent_span`` is the span created for the current invocation, so
    spans opened by the target nest beneath it.
    """

    parent_span: Optional["Span"] = None
    provenance: Any = None
    tenant_id: Optional[str] = None


__all__ = ["DEFAULT_ERROR_LEVEL", "ExecutionContext", "InvocationContext"]
