"""Monotonic latency measurement."""

from __future__ import annotations

import time
from typing import Callable, Optional


class TimingProbe:
    """Measure elapsed milliseconds with a monotonic clock.

    ``clock`` must return seconds from a monotonic source; it defaults to
    :func:`time.perf_counter`.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.perf_counter

    def start(self) -> float:
        return self._clock()

    def elapsed(self, start: float) -> float:
        """Return milliseconds since ``start``, never negative."""

        return max(0.0, (self._clock() - start) * 1000.0)


__all__ = ["TimingProbe"]
