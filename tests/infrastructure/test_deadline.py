"""Tests for deadline enforcement and cancellation."""

import threading

import pytest

from ep_data_pipeline.exceptions import ErrorKind, RequestTimeout
from ep_data_pipeline.infrastructure import CancellationToken, DeadlineGuard, OperationCancelled


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_runs_callbacks_once(self) -> None:
        token = CancellationToken()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("closed"))

        token.cancel()
        token.cancel()

        assert token.cancelled is True
        assert calls == ["closed"]

    def test_callback_added_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("closed"))
        assert calls == ["closed"]

    def test_failing_callback_does_not_block_others(self) -> None:
        token = CancellationToken()
        calls: list[str] = []

        def boom() -> None:
            raise RuntimeError("close failed")

        token.add_callback(boom)
        token.add_callback(lambda: calls.append("second"))
        token.cancel()
        assert calls == ["second"]

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_remaining_is_none_without_deadline(self) -> None:
        assert CancellationToken().remaining() is None


class TestDeadlineGuard:
    """Tests for DeadlineGuard."""

    def test_returns_result_within_deadline(self) -> None:
        with DeadlineGuard(max_workers=1) as guard:
            assert guard.with_deadline(lambda token: 42, 1.0) == 42

    def test_propagates_operation_error(self) -> None:
        def fail(token: CancellationToken) -> int:
            raise ValueError("bad payload")

        with DeadlineGuard(max_workers=1) as guard, pytest.raises(ValueError, match="bad payload"):
            guard.with_deadline(fail, 1.0)

    def test_timeout_cancels_token(self) -> None:
        """The in-flight operation is signalled, not merely abandoned."""
        observed = threading.Event()
        aborted = threading.Event()

        def slow(token: CancellationToken) -> str:
            token.add_callback(aborted.set)
            if token.wait(5.0):
                observed.set()
                raise OperationCancelled()
            return "too late"

        with DeadlineGuard(max_workers=1) as guard:
            with pytest.raises(RequestTimeout) as exc_info:
                guard.with_deadline(slow, 0.05, endpoint="meps")

            assert observed.wait(1.0)
            assert aborted.is_set()

        assert exc_info.value.endpoint == "meps"
        assert exc_info.value.timeout_seconds == 0.05
        assert exc_info.value.kind is ErrorKind.TIMEOUT

    def test_token_carries_deadline(self) -> None:
        with DeadlineGuard(max_workers=1) as guard:
            remaining = guard.with_deadline(lambda token: token.remaining(), 2.0)
        assert remaining is not None
        assert 0 < remaining <= 2.0
