"""Metadata merging for instrumented invocations.

Every telemetry call made for one invocation shares the same metadata
record: the caller's parent metadata with a ``target`` section describing
the instrumented method layered on top.  Nested mappings are merged
recursively, later layers win on conflicts and the inputs are never
mutated.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional


def deep_merge(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Recursively merge ``layers`` into a new dictionary.

    Mappings are merged key by key; any other value replaces what the
    earlier layers held.  Mappings and lists are copied structurally and
    other values are deep-copied, so the result shares no mutable state
    with the inputs.  Values that cannot be copied (locks, client handles)
    are kept by reference.

    >>> deep_merge({"a": 1, "t": {"x": 1}}, {"t": {"y": 2}})
    {'a': 1, 't': {'x': 1, 'y': 2}}
    """

    merged: Dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            existing = merged.get(key)
            if isinstance(value, Mapping) and isinstance(existing, dict):
                merged[key] = deep_merge(existing, value)
            elif isinstance(value, Mapping):
                merged[key] = deep_merge(value)
            else:
                merged[key] = _copy_value(value)
    return merged


def _copy_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return deep_merge(value)
    if isinstance(value, list):
        return [_copy_value(item) for item in value]
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error):
        return value


def target_identity(target: Any) -> Dict[str, Any]:
    """Describe ``target`` as ``{"module": ..., "version": ...}``.

    ``name``/``version`` attributes take precedence over the module style
    ``__name__``/``__version__``.  Missing values are omitted.
    """

    identity: Dict[str, Any] = {}
    module = _first_attribute(target, "name", "__name__")
    if module is not None:
        identity["module"] = module
    version = _first_attribute(target, "version", "__version__")
    if version is not None:
        identity["version"] = version
    return identity


def resolve_target_metadata(
    identity: Mapping[str, Any],
    override: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Return the target metadata for one invocation.

    A per-call ``override`` replaces the configured identity wholesale.
    """

    if override is not None:
        return deep_merge(override)
    return deep_merge(identity)


def merge_metadata(
    parent_metadata: Optional[Mapping[str, Any]],
    display_name: str,
    identity: Mapping[str, Any],
    override: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the metadata record shared by the logs, metric and span.

    >>> merged = merge_metadata({"a": 1, "target": {"x": 1}}, "get", {}, {"y": 2})
    >>> merged == {"a": 1, "target": {"method": "get", "x": 1, "y": 2}}
    True
    """

    return deep_merge(
        parent_metadata,
        {"target": {"method": display_name}},
        {"target": resolve_target_metadata(identity, override)},
    )


def _first_attribute(target: Any, *names: str) -> Any:
    for name in names:
        value = getattr(target, name, None)
        if value is not None and not callable(value):
            return value
    return None


__all__ = ["deep_merge", "merge_metadata", "resolve_target_metadata", "target_identity"]
