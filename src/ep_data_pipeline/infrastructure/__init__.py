"""Concrete infrastructure implementations for the request pipeline."""

from .cache import CacheStats, ResponseCache
from .deadline import CancellationToken, DeadlineGuard, OperationCancelled
from .health import CacheHealth, HealthLevel, HealthReport
from .pipeline import RequestContext, RequestPipeline, SharedResources, build_url, cache_key
from .rate_limit import RateLimiterStatus, TokenBucketLimiter
from .retry import RetryExecutor, RetryPolicy, should_retry_request
from .transport import RequestsTransport

__all__ = [
    "CacheStats",
    "CacheHealth",
    "CancellationToken",
    "DeadlineGuard",
    "HealthLevel",
    "HealthReport",
    "OperationCancelled",
    "RateLimiterStatus",
    "RequestContext",
    "RequestPipeline",
    "RequestsTransport",
    "ResponseCache",
    "RetryExecutor",
    "RetryPolicy",
    "SharedResources",
    "TokenBucketLimiter",
    "build_url",
    "cache_key",
    "should_retry_request",
]
