"""Tests for retry policy and executor."""

import pytest

from ep_data_pipeline.config import ClientConfig
from ep_data_pipeline.exceptions import (
    ApiError,
    ErrorKind,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
    PayloadTooLarge,
    RateLimitExceeded,
    RequestTimeout,
)
from ep_data_pipeline.infrastructure import RetryExecutor, RetryPolicy, should_retry_request
from tests.fakes import RecordingSleep


class TestShouldRetryRequest:
    """Tests for the default retry classification."""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_retries_server_errors(self, status: int) -> None:
        assert should_retry_request(HttpStatusError(status, "Server Error")) is True

    @pytest.mark.parametrize("status", [400, 401, 404, 408, 429])
    def test_does_not_retry_client_errors(self, status: int) -> None:
        assert should_retry_request(HttpStatusError(status, "Client Error")) is False

    def test_does_not_retry_timeouts(self) -> None:
        assert should_retry_request(RequestTimeout("meps", 1.0)) is False

    def test_does_not_retry_oversized_payloads(self) -> None:
        assert should_retry_request(PayloadTooLarge(10, declared_bytes=20)) is False

    def test_does_not_retry_rate_limits(self) -> None:
        error = RateLimitExceeded(available=0, required=1, retry_after_seconds=1)
        assert should_retry_request(error) is False

    def test_retries_network_errors(self) -> None:
        assert should_retry_request(NetworkError("connection reset")) is True
        assert should_retry_request(MalformedResponseError("meps")) is True

    def test_retries_generic_errors(self) -> None:
        assert should_retry_request(OSError("socket closed")) is True

    def test_http_error_without_status_counts_as_server_error(self) -> None:
        assert should_retry_request(ApiError("opaque", kind=ErrorKind.HTTP)) is True


class TestRetryPolicy:
    """Tests for RetryPolicy construction."""

    def test_from_config_counts_the_first_attempt(self) -> None:
        policy = RetryPolicy.from_config(ClientConfig(max_retries=2, retry_delay_seconds=0.5))
        assert policy.max_attempts == 3
        assert policy.delay_seconds == 0.5

    def test_from_config_disabled_means_single_attempt(self) -> None:
        policy = RetryPolicy.from_config(ClientConfig(enable_retry=False, max_retries=5))
        assert policy.max_attempts == 1

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    def test_returns_first_success(self, recording_sleep: RecordingSleep) -> None:
        executor = RetryExecutor(sleep=recording_sleep)
        assert executor.execute(lambda attempt: attempt, RetryPolicy(max_attempts=3)) == 1
        assert recording_sleep.delays == []

    def test_retries_with_fixed_delay(self, recording_sleep: RecordingSleep) -> None:
        attempts: list[int] = []

        def flaky(attempt: int) -> str:
            attempts.append(attempt)
            if attempt < 3:
                raise NetworkError("connection reset")
            return "ok"

        executor = RetryExecutor(sleep=recording_sleep)
        result = executor.execute(flaky, RetryPolicy(max_attempts=3, delay_seconds=0.25))

        assert result == "ok"
        assert attempts == [1, 2, 3]
        assert recording_sleep.delays == [0.25, 0.25]

    def test_reraises_last_error_unchanged(self, recording_sleep: RecordingSleep) -> None:
        errors = [HttpStatusError(503, "Unavailable"), HttpStatusError(502, "Bad Gateway")]

        def failing(attempt: int) -> str:
            raise errors[attempt - 1]

        executor = RetryExecutor(sleep=recording_sleep)
        with pytest.raises(HttpStatusError) as exc_info:
            executor.execute(failing, RetryPolicy(max_attempts=2, delay_seconds=0))

        assert exc_info.value is errors[1]
        assert recording_sleep.delays == []

    def test_stops_on_non_retryable_error(self, recording_sleep: RecordingSleep) -> None:
        attempts: list[int] = []

        def not_found(attempt: int) -> str:
            attempts.append(attempt)
            raise HttpStatusError(404, "Not Found")

        executor = RetryExecutor(sleep=recording_sleep)
        with pytest.raises(HttpStatusError):
            executor.execute(not_found, RetryPolicy(max_attempts=5))

        assert attempts == [1]

    def test_custom_should_retry(self, recording_sleep: RecordingSleep) -> None:
        attempts: list[int] = []

        def failing(attempt: int) -> str:
            attempts.append(attempt)
            raise HttpStatusError(404, "Not Found")

        policy = RetryPolicy(max_attempts=3, delay_seconds=0, should_retry=lambda error: True)
        with pytest.raises(HttpStatusError):
            RetryExecutor(sleep=recording_sleep).execute(failing, policy)

        assert attempts == [1, 2, 3]
