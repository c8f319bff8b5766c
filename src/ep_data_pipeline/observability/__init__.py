"""Logging and timing helpers shared across the pipeline."""

from .logging import get_logger
from .performance import PerformanceMonitor, PerformanceStats, track_duration

__all__ = [
    "PerformanceMonitor",
    "PerformanceStats",
    "get_logger",
    "track_duration",
]
