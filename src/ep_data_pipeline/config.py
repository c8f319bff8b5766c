"""Centralised, injectable configuration for the EP data pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Literal, Self

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = "https://data.europarl.europa.eu/api/v2/"
DEFAULT_USER_AGENT = "ep-data-pipeline/1.0"
DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024

RateLimitInterval = Literal["second", "minute", "hour"]

_INTERVAL_SECONDS: dict[str, float] = {
    "second": 1.0,
    "minute": 60.0,
    "hour": 3600.0,
}


class InvalidIntervalError(ValueError):
    """Raised when a rate limit interval is not second, minute or hour."""

    def __init__(self, interval: str) -> None:
        super().__init__(f"Invalid interval: {interval!r} (expected second, minute or hour)")


def interval_seconds(interval: str) -> float:
    """Return the length of a rate limit interval in seconds."""
    try:
        return _INTERVAL_SECONDS[interval]
    except KeyError as exc:
        raise InvalidIntervalError(interval) from exc


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class NonNegativeIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative integer.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


class BaseUrlError(ValueError):
    """Raised when the API base URL is not an absolute http(s) URL."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Base URL must start with http:// or https:// (got {value!r}).")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the request pipeline.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    """

    base_url: str = DEFAULT_API_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = "application/ld+json"

    # Cache
    cache_ttl_seconds: float = 900.0
    max_cache_size: int = 500

    # Rate limiting
    rate_limit_tokens: int = 100
    rate_limit_interval: RateLimitInterval = "minute"

    # Deadlines and retries
    timeout_seconds: float = 10.0
    enable_retry: bool = True
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    deadline_workers: int = 8

    # Response bounding
    max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise BaseUrlError(self.base_url)
        interval_seconds(self.rate_limit_interval)
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.rate_limit_tokens <= 0:
            raise ValueError("rate_limit_tokens must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.max_response_bytes <= 0:
            raise ValueError("max_response_bytes must be positive")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.enable_retry else 1

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Millisecond variables (EP_REQUEST_TIMEOUT_MS, EP_CACHE_TTL) are converted
        to seconds. EP_RATE_LIMIT is a per-minute request budget.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.
        """
        load_dotenv(dotenv_path)

        defaults = cls()
        timeout_ms = _parse_optional_positive_float(
            os.getenv("EP_REQUEST_TIMEOUT_MS", ""), env_name="EP_REQUEST_TIMEOUT_MS"
        )
        cache_ttl_ms = _parse_optional_positive_float(
            os.getenv("EP_CACHE_TTL", ""), env_name="EP_CACHE_TTL"
        )
        rate_limit = _parse_optional_positive_int(
            os.getenv("EP_RATE_LIMIT", ""), env_name="EP_RATE_LIMIT"
        )
        max_retries = _parse_optional_non_negative_int(
            os.getenv("EP_MAX_RETRIES", ""), env_name="EP_MAX_RETRIES"
        )
        max_bytes = _parse_optional_positive_float(
            os.getenv("EP_MAX_RESPONSE_BYTES", ""), env_name="EP_MAX_RESPONSE_BYTES"
        )
        enable_retry = _parse_optional_bool(
            os.getenv("EP_ENABLE_RETRY", ""), env_name="EP_ENABLE_RETRY"
        )

        return cls(
            base_url=os.getenv("EP_API_URL", "").strip() or defaults.base_url,
            user_agent=os.getenv("EP_USER_AGENT", "").strip() or defaults.user_agent,
            cache_ttl_seconds=defaults.cache_ttl_seconds
            if cache_ttl_ms is None
            else cache_ttl_ms / 1000,
            timeout_seconds=defaults.timeout_seconds if timeout_ms is None else timeout_ms / 1000,
            rate_limit_tokens=defaults.rate_limit_tokens if rate_limit is None else rate_limit,
            rate_limit_interval="minute",
            max_retries=defaults.max_retries if max_retries is None else max_retries,
            enable_retry=defaults.enable_retry if enable_retry is None else enable_retry,
            max_response_bytes=defaults.max_response_bytes
            if max_bytes is None
            else int(max_bytes),
        )

    def with_overrides(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        enable_retry: bool | None = None,
        max_retries: int | None = None,
        cache_ttl_seconds: float | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            base_url=self.base_url if base_url is None else base_url.strip(),
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
            enable_retry=self.enable_retry if enable_retry is None else enable_retry,
            max_retries=self.max_retries if max_retries is None else max_retries,
            cache_ttl_seconds=self.cache_ttl_seconds
            if cache_ttl_seconds is None
            else cache_ttl_seconds,
        )


def _parse_optional_positive_float(value: str, *, env_name: str) -> float | None:
    """Parse an optional positive number from an environment variable."""
    text = value.strip()
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_optional_positive_int(value: str, *, env_name: str) -> int | None:
    """Parse an optional positive integer from an environment variable."""
    text = value.strip()
    if not text:
        return None
    try:
        parsed = int(text)
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_optional_non_negative_int(value: str, *, env_name: str) -> int | None:
    """Parse an optional non-negative integer from an environment variable."""
    text = value.strip()
    if not text:
        return None
    try:
        parsed = int(text)
    except ValueError as exc:
        raise NonNegativeIntegerEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeIntegerEnvVarError(env_name)
    return parsed


def _parse_optional_bool(value: str, *, env_name: str) -> bool | None:
    """Parse an optional boolean from an environment variable."""
    text = value.strip().lower()
    if not text:
        return None
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)
