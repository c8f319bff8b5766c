"""Bounded duration sampling with percentile statistics.

Usage example:
    from ep_data_pipeline.observability.performance import PerformanceMonitor, track_duration

    monitor = PerformanceMonitor(max_samples=1000)
    with track_duration(monitor, "api_request"):
        ...
    stats = monitor.get_stats("api_request")
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(frozen=True)
class PerformanceStats:
    """Summary of recorded durations, in milliseconds."""

    p50: float
    p95: float
    p99: float
    avg: float
    min: float
    max: float
    count: int


def _percentile(ordered: list[float], fraction: float) -> float:
    """Linearly interpolated percentile of an ascending list."""
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    index = (len(ordered) - 1) * fraction
    lower = int(index)
    upper = min(lower + 1, len(ordered) - 1)
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


class PerformanceMonitor:
    """Keeps the most recent `max_samples` durations per operation."""

    def __init__(self, max_samples: int = 1000) -> None:
        if max_samples <= 0:
            raise ValueError("max_samples must be a positive integer")
        self.max_samples = max_samples
        self._samples: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def record_duration(self, operation: str, duration_ms: float) -> None:
        with self._lock:
            samples = self._samples.get(operation)
            if samples is None:
                samples = deque(maxlen=self.max_samples)
                self._samples[operation] = samples
            samples.append(duration_ms)

    def get_stats(self, operation: str) -> PerformanceStats | None:
        with self._lock:
            samples = self._samples.get(operation)
            if not samples:
                return None
            ordered = sorted(samples)
        count = len(ordered)
        return PerformanceStats(
            p50=_percentile(ordered, 0.50),
            p95=_percentile(ordered, 0.95),
            p99=_percentile(ordered, 0.99),
            avg=sum(ordered) / count,
            min=ordered[0],
            max=ordered[-1],
            count=count,
        )

    def operations(self) -> list[str]:
        with self._lock:
            return list(self._samples)

    def clear(self, operation: str | None = None) -> None:
        with self._lock:
            if operation is None:
                self._samples.clear()
            else:
                self._samples.pop(operation, None)


@contextmanager
def track_duration(monitor: PerformanceMonitor, operation: str) -> Iterator[None]:
    """Record the wall-clock duration of the enclosed block, even on error."""
    start = time.perf_counter()
    try:
        yield
    finally:
        monitor.record_duration(operation, (time.perf_counter() - start) * 1000)
