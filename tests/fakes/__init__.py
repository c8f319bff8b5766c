"""Exports for test fakes."""

from .clock import FakeClock, RecordingSleep
from .resilience import FakeRateLimiter
from .transport import FakeResponse, FakeTransport, Hang

__all__ = [
    "FakeClock",
    "FakeRateLimiter",
    "FakeResponse",
    "FakeTransport",
    "Hang",
    "RecordingSleep",
]
