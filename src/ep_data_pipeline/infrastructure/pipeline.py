"""Request execution pipeline: rate limiting, caching, deadlines and retries.

Usage example:
    from ep_data_pipeline.config import ClientConfig
    from ep_data_pipeline.infrastructure.pipeline import RequestPipeline, SharedResources
    from ep_data_pipeline.infrastructure.transport import RequestsTransport

    shared = SharedResources.from_config(ClientConfig())
    with RequestPipeline(shared=shared, transport=RequestsTransport()) as pipeline:
        meps = pipeline.get("meps", {"country": "DE", "limit": 50})

Pipelines built from the same SharedResources pool one cache and one token
bucket. The cache check, fetch and store are not atomic across callers: two
concurrent calls for the same key may both miss and both fetch.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Self
from urllib.parse import urlencode, urljoin

from ..config import ClientConfig
from ..exceptions import (
    ApiError,
    ClientError,
    MalformedResponseError,
    NetworkError,
    PipelineClosedError,
    RequestTimeout,
)
from ..observability import PerformanceMonitor, get_logger
from ..protocols import Cache, Clock, JsonObject, RateLimiter, Transport
from .cache import CacheStats, ResponseCache
from .deadline import CancellationToken, DeadlineGuard
from .health import HealthReport, api_reachable, describe_cache, overall_status
from .rate_limit import TokenBucketLimiter
from .retry import RetryExecutor, RetryPolicy
from .validation import (
    DEFAULT_CHUNK_SIZE,
    IncomingDataError,
    check_declared_size,
    check_status,
    parse_json_object,
    read_bounded,
)

logger = get_logger("ep_data_pipeline.infrastructure.pipeline")

QueryParams = Mapping[str, object]

CACHE_HIT_METRIC = "api_cache_hit"
REQUEST_METRIC = "api_request"
REQUEST_FAILED_METRIC = "api_request_failed"


def _json_compact(value: object) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def serialize_param(value: object) -> str:
    """Render one query parameter value.

    Scalars keep their literal form; mappings and sequences become a single
    JSON value rather than repeated keys.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return _json_compact(value)


def build_query(params: QueryParams | None) -> list[tuple[str, str]]:
    if not params:
        return []
    return [(key, serialize_param(value)) for key, value in params.items() if value is not None]


def build_url(base_url: str, endpoint: str, params: QueryParams | None = None) -> str:
    url = urljoin(base_url, endpoint)
    query = build_query(params)
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(query)}"


def cache_key(endpoint: str, params: QueryParams | None = None) -> str:
    """Serialise the request identity.

    Params are encoded in insertion order, so equal mappings built in a
    different order produce different keys.
    """
    identity: dict[str, object] = {"endpoint": endpoint}
    if params is not None:
        identity["params"] = dict(params)
    return _json_compact(identity)


@dataclass(frozen=True)
class SharedResources:
    """Cache, limiter and settings shared by every pipeline built from them.

    `started_at` must be a reading of `clock`; health reports measure uptime from it.
    """

    config: ClientConfig
    cache: Cache
    rate_limiter: RateLimiter
    monitor: PerformanceMonitor = field(default_factory=PerformanceMonitor)
    clock: Clock = time.monotonic
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_config(cls, config: ClientConfig) -> SharedResources:
        return cls(
            config=config,
            cache=ResponseCache(
                max_size=config.max_cache_size,
                ttl_seconds=config.cache_ttl_seconds,
            ),
            rate_limiter=TokenBucketLimiter(
                tokens_per_interval=config.rate_limit_tokens,
                interval=config.rate_limit_interval,
            ),
        )


@dataclass
class RequestContext:
    """State for one logical `get()` call."""

    endpoint: str
    params: QueryParams | None
    url: str
    cache_key: str
    timeout_seconds: float
    attempt_number: int = 0


class RequestPipeline:
    """Single generic GET operation shared by all higher-level fetchers.

    Flow per call: consume a rate-limit token, try the cache, otherwise fetch
    under a per-attempt deadline with selective retries, validate the response
    and store it.

    Error handling:
    - RateLimitExceeded is raised before the cache is consulted
    - 5xx responses and network failures are retried after a fixed delay
    - 4xx responses, timeouts and oversized payloads fail immediately
    - A timeout surfaces as ApiError with status 408
    - Nothing is cached unless the response validated
    """

    def __init__(
        self,
        *,
        shared: SharedResources,
        transport: Transport,
        deadline_guard: DeadlineGuard | None = None,
        retry_executor: RetryExecutor | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.shared = shared
        self.transport = transport
        self._closed = False
        config = shared.config
        self._owns_guard = deadline_guard is None
        self.deadline_guard = deadline_guard or DeadlineGuard(max_workers=config.deadline_workers)
        self.retry_executor = retry_executor or RetryExecutor()
        self.retry_policy = retry_policy or RetryPolicy.from_config(config)

    @property
    def config(self) -> ClientConfig:
        return self.shared.config

    @property
    def cache(self) -> Cache:
        return self.shared.cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self.shared.rate_limiter

    def get(self, endpoint: str, params: QueryParams | None = None) -> JsonObject:
        """Fetch a JSON object from `endpoint`, using the cache when possible.

        Raises:
            RateLimitExceeded: If no token is available (never retried here).
            ApiError: With kind TIMEOUT and status 408 if an attempt timed out.
            HttpStatusError: For non-2xx responses once retries are exhausted.
            PayloadTooLarge: If the body exceeds `max_response_bytes`.
            NetworkError: For transport failures once retries are exhausted.
            PipelineClosedError: If `close()` has already been called.
        """
        if self._closed:
            raise PipelineClosedError()
        self.rate_limiter.remove_tokens(1)

        context = RequestContext(
            endpoint=endpoint,
            params=params,
            url=build_url(self.config.base_url, endpoint, params),
            cache_key=cache_key(endpoint, params),
            timeout_seconds=self.config.timeout_seconds,
        )

        lookup_start = time.perf_counter()
        cached = self.cache.get(context.cache_key)
        if cached is not None:
            self._record(CACHE_HIT_METRIC, lookup_start)
            logger.debug("Cache hit for %s", context.cache_key)
            return cached

        request_start = time.perf_counter()
        try:
            data = self.retry_executor.execute(
                lambda attempt: self._attempt(context, attempt),
                self.retry_policy,
                label=endpoint,
            )
        except Exception as exc:
            self._record(REQUEST_FAILED_METRIC, request_start)
            error = self._to_client_error(exc, context)
            logger.warning(
                "Request to %s failed after %d attempt(s): %s",
                endpoint,
                context.attempt_number,
                error,
            )
            if error is exc:
                raise
            raise error from exc

        self._record(REQUEST_METRIC, request_start)
        self.cache.set(context.cache_key, data)
        return data

    def _attempt(self, context: RequestContext, attempt: int) -> JsonObject:
        context.attempt_number = attempt
        logger.debug("GET %s (attempt %d)", context.url, attempt)
        return self.deadline_guard.with_deadline(
            lambda token: self._fetch(context, token),
            context.timeout_seconds,
            endpoint=context.endpoint,
        )

    def _fetch(self, context: RequestContext, token: CancellationToken) -> JsonObject:
        headers = {"Accept": self.config.accept, "User-Agent": self.config.user_agent}
        response = self.transport.send(context.url, headers=headers, token=token)
        limit = self.config.max_response_bytes
        try:
            check_declared_size(response.headers, limit)
            check_status(response, endpoint=context.endpoint)
            body = read_bounded(response.iter_bytes(DEFAULT_CHUNK_SIZE), limit)
        finally:
            response.close()
        try:
            return parse_json_object(body)
        except IncomingDataError as exc:
            raise MalformedResponseError(context.endpoint) from exc

    def _to_client_error(self, error: Exception, context: RequestContext) -> ClientError:
        if isinstance(error, RequestTimeout):
            return ApiError.for_timeout(error)
        if isinstance(error, ClientError):
            return error
        return NetworkError(f"API request to {context.endpoint} failed: {error}")

    def _record(self, metric: str, start: float) -> None:
        self.shared.monitor.record_duration(metric, (time.perf_counter() - start) * 1000)

    def health(self) -> HealthReport:
        """Summarise limiter headroom, cache activity and recent request outcomes."""
        reachable = api_reachable(
            succeeded=self._sample_count(REQUEST_METRIC),
            failed=self._sample_count(REQUEST_FAILED_METRIC),
        )
        limiter = self.rate_limiter.status()
        return HealthReport(
            status=overall_status(limiter, reachable=reachable),
            api_reachable=reachable,
            cache=describe_cache(self.cache.stats()),
            rate_limiter=limiter,
            timestamp=datetime.now(UTC).isoformat(),
            uptime_seconds=self.shared.clock() - self.shared.started_at,
        )

    def _sample_count(self, metric: str) -> int:
        stats = self.shared.monitor.get_stats(metric)
        return 0 if stats is None else stats.count

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_guard:
            self.deadline_guard.close()
        self.transport.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
