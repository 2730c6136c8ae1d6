"""Shared pytest fixtures: recording collaborators for instrument tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest


@dataclass
class LogEvent:
    level: str
    message: str
    metadata: Mapping[str, Any]
    details: Mapping[str, Any]


class RecordingLogs:
    """Logs sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: List[LogEvent] = []

    def log(self, level, message, metadata, details) -> None:
        self.events.append(LogEvent(level, message, metadata, details))

    @property
    def messages(self) -> List[Tuple[str, str]]:
        return [(event.level, event.message) for event in self.events]


class RecordingMetrics:
    """Metrics sink that keeps every gauge in memory."""

    def __init__(self) -> None:
        self.gauges: List[Tuple[str, Dict[str, Any]]] = []

    def gauge(self, name, data) -> None:
        self.gauges.append((name, dict(data)))


@dataclass
class FakeSpan:
    """Span double recording the calls made against it."""

    name: str = "root"
    metadata: Mapping[str, Any] = field(default_factory=dict)
    calls: List[Tuple[Any, ...]] = field(default_factory=list)
    children: List["FakeSpan"] = field(default_factory=list)
    fail_on: Optional[str] = None

    def child_span(self, name, metadata) -> "FakeSpan":
        if self.fail_on == "child_span":
            raise RuntimeError("tracer unavailable")
        child = FakeSpan(name=name, metadata=metadata, fail_on=self.fail_on)
        self.children.append(child)
        return child

    def tag(self, key, value) -> None:
        self.calls.append(("tag", key, value))
        if self.fail_on == "tag":
            raise RuntimeError("tag rejected")

    def finish(self) -> None:
        self.calls.append(("finish",))
        if self.fail_on == "finish":
            raise RuntimeError("finish rejected")


class FakeClock:
    """Deterministic monotonic clock advancing by ``step`` seconds per read."""

    def __init__(self, start: float = 100.0, step: float = 0.25) -> None:
        self._now = start
        self._step = step

    def __call__(self) -> float:
        current = self._now
        self._now += self._step
        return current


@pytest.fixture()
def logs() -> RecordingLogs:
    return RecordingLogs()


@pytest.fixture()
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture()
def parent_span() -> FakeSpan:
    return FakeSpan()


@pytest.fixture()
def span_factory():
    return FakeSpan


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()
