"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces that the request pipeline depends
on, enabling isolated unit testing with fake transports, caches and limiters.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .infrastructure.cache import CacheStats
    from .infrastructure.deadline import CancellationToken
    from .infrastructure.rate_limit import RateLimiterStatus

JsonObject = dict[str, object]
Clock = Callable[[], float]


@runtime_checkable
class TransportResponse(Protocol):
    """A response whose body has not been read yet."""

    status_code: int
    reason: str
    headers: Mapping[str, str]

    def iter_bytes(self, chunk_size: int) -> Iterator[bytes]:
        """Stream the body in chunks."""
        ...

    def close(self) -> None:
        """Release the underlying connection without reading further."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Abstract network transport for GET requests."""

    def send(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        token: CancellationToken,
    ) -> TransportResponse:
        """Issue a GET request and return once headers have arrived.

        Implementations must honour `token`: stop waiting once it is cancelled
        and abort the underlying connection.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class Cache(Protocol):
    """Bounded, time-limited cache of decoded responses."""

    max_size: int

    @property
    def size(self) -> int:
        """Number of entries currently held (expired entries included)."""
        ...

    def get(self, key: str) -> JsonObject | None:
        """Return a fresh cached value or None."""
        ...

    def set(self, key: str, value: JsonObject) -> None:
        """Store a value, evicting the least recently used entry if full."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...

    def stats(self) -> CacheStats:
        """Return size and hit-rate counters."""
        ...


@runtime_checkable
class RateLimiter(Protocol):
    """Abstract admission control for outbound requests."""

    def remove_tokens(self, count: float = 1) -> None:
        """Consume tokens or raise RateLimitExceeded."""
        ...

    def try_remove_tokens(self, count: float = 1) -> bool:
        """Consume tokens if available and report whether it succeeded."""
        ...

    def status(self) -> RateLimiterStatus:
        """Return available tokens, capacity and utilisation."""
        ...

    def reset(self) -> None:
        """Restore full capacity."""
        ...
