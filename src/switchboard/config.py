"""Lightweight application configuration loader."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

POLL_INTERVAL_BOUNDS = (1.0, 60.0)
MAX_WAIT_BOUNDS = (30.0, 3600.0)


class ConfigError(ValueError):
    """Raised when a setting is outside its accepted range."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no"}


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def parse_provider_endpoints(raw: str | None) -> dict[str, str]:
    """Parse ``id=url,id2=url2`` into a mapping."""

    endpoints: dict[str, str] = {}
    if not raw:
        return endpoints
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        provider_id, sep, url = chunk.partition("=")
        if not sep or not provider_id.strip() or not url.strip():
            raise ConfigError(f"Invalid provider endpoint entry {chunk!r}; expected id=url")
        endpoints[provider_id.strip()] = url.strip()
    return endpoints


@dataclass(frozen=True)
class AppSettings:
    """Immutable configuration sourced from environment variables."""

    environment: str = "development"
    poll_interval_seconds: float = 2.0
    max_wait_seconds: float = 300.0
    per_call_timeout_seconds: float | None = 120.0
    max_concurrency: int | None = None
    status_retries: int = 0
    status_retry_backoff_seconds: float = 1.0
    http_timeout_seconds: float = 60.0
    enable_local_providers: bool = True
    http_providers: Mapping[str, str] = field(default_factory=dict)
    http_api_key: str | None = None

    def __post_init__(self) -> None:
        low, high = POLL_INTERVAL_BOUNDS
        if not low <= self.poll_interval_seconds <= high:
            raise ConfigError(f"poll_interval_seconds must be between {low:g} and {high:g}")
        low, high = MAX_WAIT_BOUNDS
        if not low <= self.max_wait_seconds <= high:
            raise ConfigError(f"max_wait_seconds must be between {low:g} and {high:g}")
        if self.per_call_timeout_seconds is not None and self.per_call_timeout_seconds <= 0:
            raise ConfigError("per_call_timeout_seconds must be positive")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1")
        if self.status_retries < 0:
            raise ConfigError("status_retries cannot be negative")

    @classmethod
    def from_env(cls) -> AppSettings:
        per_call_timeout = _env_float("SWITCHBOARD_PER_CALL_TIMEOUT", cls.per_call_timeout_seconds)
        return cls(
            environment=os.getenv("SWITCHBOARD_ENV", cls.environment),
            poll_interval_seconds=_env_float(
                "SWITCHBOARD_POLL_INTERVAL", cls.poll_interval_seconds
            ),
            max_wait_seconds=_env_float("SWITCHBOARD_MAX_WAIT", cls.max_wait_seconds),
            per_call_timeout_seconds=per_call_timeout if per_call_timeout else None,
            max_concurrency=_env_int("SWITCHBOARD_MAX_CONCURRENCY", cls.max_concurrency),
            status_retries=_env_int("SWITCHBOARD_STATUS_RETRIES", cls.status_retries),
            status_retry_backoff_seconds=_env_float(
                "SWITCHBOARD_STATUS_RETRY_BACKOFF", cls.status_retry_backoff_seconds
            ),
            http_timeout_seconds=_env_float("SWITCHBOARD_HTTP_TIMEOUT", cls.http_timeout_seconds),
            enable_local_providers=_env_bool("SWITCHBOARD_LOCAL_PROVIDERS", True),
            http_providers=parse_provider_endpoints(os.getenv("SWITCHBOARD_HTTP_PROVIDERS")),
            http_api_key=os.getenv("SWITCHBOARD_HTTP_API_KEY") or None,
        )


__all__ = ["AppSettings", "ConfigError", "parse_provider_endpoints"]
