"""Selective retry with a fixed delay between attempts.

Usage example:
    from ep_data_pipeline.infrastructure.retry import RetryExecutor, RetryPolicy

    policy = RetryPolicy(max_attempts=3, delay_seconds=1.0)
    data = RetryExecutor().execute(fetch_once, policy)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar, assert_never

from ..config import ClientConfig
from ..exceptions import ClientError, ErrorKind
from ..observability import get_logger

T = TypeVar("T")

logger = get_logger("ep_data_pipeline.infrastructure.retry")


def should_retry_request(error: BaseException) -> bool:
    """Decide whether a failed attempt is worth repeating.

    Timeouts, oversized payloads, rate limiting and 4xx statuses are final.
    HTTP errors without a status count as server errors. Anything else is
    treated as a transient network failure.
    """
    if not isinstance(error, ClientError):
        return isinstance(error, Exception)
    match error.kind:
        case ErrorKind.TIMEOUT | ErrorKind.TOO_LARGE | ErrorKind.RATE_LIMIT:
            return False
        case ErrorKind.HTTP:
            status = error.status_code if error.status_code is not None else 500
            return status >= 500
        case ErrorKind.NETWORK:
            return True
        case _:
            assert_never(error.kind)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for transient failures.

    The delay between attempts is fixed; there is no backoff or jitter.
    """

    max_attempts: int = 3
    delay_seconds: float = 1.0
    should_retry: Callable[[BaseException], bool] = field(default=should_retry_request)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")

    @classmethod
    def from_config(cls, config: ClientConfig) -> RetryPolicy:
        return cls(max_attempts=config.max_attempts, delay_seconds=config.retry_delay_seconds)


class RetryExecutor:
    """Re-invoke an operation under a RetryPolicy."""

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def execute(
        self,
        operation: Callable[[int], T],
        policy: RetryPolicy,
        *,
        label: str = "operation",
    ) -> T:
        """Run `operation(attempt_number)` until it succeeds or the policy gives up.

        Attempt numbers start at 1. The last error is re-raised unchanged.
        """
        attempt = 1
        while True:
            try:
                return operation(attempt)
            except Exception as exc:
                if attempt >= policy.max_attempts or not policy.should_retry(exc):
                    raise
                logger.warning(
                    "Attempt %d/%d for %s failed (%s); retrying in %.2fs",
                    attempt,
                    policy.max_attempts,
                    label,
                    exc,
                    policy.delay_seconds,
                )
                if policy.delay_seconds > 0:
                    self._sleep(policy.delay_seconds)
                attempt += 1
