"""Token bucket rate limiting for outbound requests.

Usage example:
    from ep_data_pipeline.infrastructure.rate_limit import TokenBucketLimiter

    limiter = TokenBucketLimiter(tokens_per_interval=100, interval="minute")
    limiter.remove_tokens(1)  # raises RateLimitExceeded when the bucket is empty
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing_extensions import override

from ..config import RateLimitInterval, interval_seconds
from ..exceptions import RateLimitExceeded
from ..protocols import Clock
from ..protocols import RateLimiter as RateLimiterProtocol


@dataclass(frozen=True)
class RateLimiterStatus:
    """Point-in-time view of the bucket for monitoring."""

    available_tokens: int
    max_tokens: int
    utilization_percent: int


@dataclass
class TokenBucketLimiter(RateLimiterProtocol):
    """Token bucket that fails fast instead of blocking.

    Tokens refill lazily from elapsed time whenever the bucket is inspected.
    When too few tokens are available the limiter raises immediately with an
    estimated wait, leaving the decision to sleep to the caller.
    """

    tokens_per_interval: int = 100
    interval: RateLimitInterval = "minute"
    initial_tokens: float | None = None
    clock: Clock = time.monotonic
    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default=0.0, init=False)
    _refill_per_second: float = field(default=0.0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.tokens_per_interval < 0:
            raise ValueError("tokens_per_interval must not be negative")
        self._refill_per_second = self.tokens_per_interval / interval_seconds(self.interval)
        start = self.tokens_per_interval if self.initial_tokens is None else self.initial_tokens
        self._tokens = min(float(self.tokens_per_interval), max(0.0, float(start)))
        self._last_refill = self.clock()

    @property
    def max_tokens(self) -> int:
        return self.tokens_per_interval

    def _refill(self) -> None:
        now = self.clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                float(self.tokens_per_interval),
                self._tokens + elapsed * self._refill_per_second,
            )
            self._last_refill = now

    def _retry_after(self, count: float) -> float:
        if self._refill_per_second <= 0:
            return float("inf")
        return (count - self._tokens) / self._refill_per_second

    @override
    def remove_tokens(self, count: float = 1) -> None:
        """Consume `count` tokens or raise RateLimitExceeded."""
        with self._lock:
            self._refill()
            if self._tokens >= count:
                self._tokens -= count
                return
            available = self._tokens
            retry_after = self._retry_after(count)
        raise RateLimitExceeded(
            available=available,
            required=count,
            retry_after_seconds=retry_after,
        )

    @override
    def try_remove_tokens(self, count: float = 1) -> bool:
        with self._lock:
            self._refill()
            if self._tokens >= count:
                self._tokens -= count
                return True
            return False

    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    @override
    def status(self) -> RateLimiterStatus:
        with self._lock:
            self._refill()
            available = self._tokens
        maximum = self.tokens_per_interval
        utilization = round((maximum - available) / maximum * 100) if maximum > 0 else 0
        return RateLimiterStatus(
            available_tokens=int(available),
            max_tokens=maximum,
            utilization_percent=utilization,
        )

    @override
    def reset(self) -> None:
        """Restore the bucket to full capacity."""
        with self._lock:
            self._tokens = float(self.tokens_per_interval)
            self._last_refill = self.clock()
