"""Deadline enforcement with active cancellation.

Usage example:
    from ep_data_pipeline.infrastructure.deadline import DeadlineGuard

    with DeadlineGuard() as guard:
        data = guard.with_deadline(fetch, timeout_seconds=10, endpoint="meps")

`fetch` receives a CancellationToken. Transports register cleanup callbacks on
it (for example closing a response stream) that run when the deadline passes.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Self, TypeVar

from ..exceptions import RequestTimeout
from ..observability import get_logger

T = TypeVar("T")

logger = get_logger("ep_data_pipeline.infrastructure.deadline")


class OperationCancelled(Exception):
    """Raised inside an operation that observes its token was cancelled."""


class CancellationToken:
    """Cancellation signal shared between the deadline guard and an operation."""

    def __init__(self, deadline: float | None = None) -> None:
        self.deadline = deadline
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or `timeout` elapses; return the cancelled state."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register cleanup to run on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.debug("Cancellation callback failed", exc_info=True)


class DeadlineGuard:
    """Race an operation against a timer and abort it when the timer wins."""

    def __init__(self, *, max_workers: int = 8) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="ep-deadline",
        )

    def with_deadline(
        self,
        operation: Callable[[CancellationToken], T],
        timeout_seconds: float,
        *,
        endpoint: str = "",
    ) -> T:
        """Run `operation` with a deadline.

        Raises:
            RequestTimeout: If the operation has not settled within `timeout_seconds`.
                The token is cancelled before raising so the operation can abort its
                connection instead of running on unobserved.
        """
        token = CancellationToken(deadline=time.monotonic() + timeout_seconds)
        future: Future[T] = self._executor.submit(operation, token)
        try:
            return future.result(timeout=timeout_seconds)
        except FutureTimeoutError:
            if future.done() and not future.cancelled():
                # Settled in the same instant the timer fired.
                return future.result()
            token.cancel()
            future.cancel()
            logger.debug("Cancelled request to %s after %.3fs", endpoint, timeout_seconds)
            raise RequestTimeout(endpoint, timeout_seconds) from None

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
