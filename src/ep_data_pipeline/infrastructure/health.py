"""Health snapshots built from limiter, cache and request metrics.

Usage example:
    report = pipeline.health()
    if report.status is HealthLevel.UNHEALTHY:
        ...

A snapshot never touches the network. Reachability is inferred from the
recent request samples held by the shared PerformanceMonitor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .cache import CacheStats
from .rate_limit import RateLimiterStatus

LOW_TOKEN_FRACTION = 0.1


class HealthLevel(StrEnum):
    """Overall verdict for a pipeline."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class CacheHealth:
    populated: bool
    description: str


@dataclass(frozen=True)
class HealthReport:
    """Point-in-time health of a pipeline and its shared resources."""

    status: HealthLevel
    api_reachable: bool
    cache: CacheHealth
    rate_limiter: RateLimiterStatus
    timestamp: str
    uptime_seconds: float


def api_reachable(*, succeeded: int, failed: int) -> bool:
    """Assume reachable until every recorded request has failed."""
    if succeeded + failed == 0:
        return True
    return succeeded > 0


def describe_cache(stats: CacheStats) -> CacheHealth:
    lookups = stats.hits + stats.misses
    if lookups == 0:
        return CacheHealth(populated=False, description="No cache activity yet")
    return CacheHealth(
        populated=True,
        description=f"{stats.hits} hits / {stats.misses} misses ({lookups} total)",
    )


def overall_status(limiter: RateLimiterStatus, *, reachable: bool) -> HealthLevel:
    if not reachable:
        return HealthLevel.UNHEALTHY
    if limiter.max_tokens <= 0:
        return HealthLevel.HEALTHY
    if limiter.available_tokens / limiter.max_tokens < LOW_TOKEN_FRACTION:
        return HealthLevel.DEGRADED
    return HealthLevel.HEALTHY
