"""Pytest fixtures shared across the test suite.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from ep_data_pipeline.config import ClientConfig
from ep_data_pipeline.infrastructure import (
    DeadlineGuard,
    RequestPipeline,
    ResponseCache,
    RetryExecutor,
    SharedResources,
    TokenBucketLimiter,
)
from tests.fakes import FakeClock, FakeTransport, RecordingSleep
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> None:
    """Block all network access in tests.

    Tests that need HTTP should use FakeTransport or a mocked requests session.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def config() -> ClientConfig:
    """Small, fast configuration for pipeline tests."""
    return ClientConfig(
        base_url="https://api.example.test/v2/",
        cache_ttl_seconds=60.0,
        max_cache_size=10,
        rate_limit_tokens=100,
        rate_limit_interval="minute",
        timeout_seconds=1.0,
        max_retries=2,
        retry_delay_seconds=0.5,
        max_response_bytes=1024,
        deadline_workers=2,
    )


@pytest.fixture
def shared(config: ClientConfig, clock: FakeClock) -> SharedResources:
    return SharedResources(
        config=config,
        cache=ResponseCache(
            max_size=config.max_cache_size,
            ttl_seconds=config.cache_ttl_seconds,
            clock=clock,
        ),
        rate_limiter=TokenBucketLimiter(
            tokens_per_interval=config.rate_limit_tokens,
            interval=config.rate_limit_interval,
            clock=clock,
        ),
        clock=clock,
        started_at=clock.now,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def pipeline(
    shared: SharedResources,
    transport: FakeTransport,
    recording_sleep: RecordingSleep,
) -> Iterator[RequestPipeline]:
    with DeadlineGuard(max_workers=2) as guard:
        yield RequestPipeline(
            shared=shared,
            transport=transport,
            deadline_guard=guard,
            retry_executor=RetryExecutor(sleep=recording_sleep),
        )
