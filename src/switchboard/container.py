"""Service container wiring application components."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from switchboard.config import AppSettings
from switchboard.domain import ProviderId
from switchboard.providers import ProviderPlugin, ProviderRegistry
from switchboard.providers.http import HttpJobBackend, HttpProviderInvoker
from switchboard.providers.local import build_local_plugin
from switchboard.runtime import FanOutCoordinator, JobPoller, ResultAggregator

logger = logging.getLogger(__name__)

LOCAL_PROVIDERS: tuple[tuple[str, str, float, str | None], ...] = (
    ("echo", "Echo", 0.05, None),
    ("echo-slow", "Echo (slow)", 0.5, None),
    ("echo-failing", "Echo (failing)", 0.1, "simulated provider outage"),
)


@dataclass(slots=True)
class ServiceContainer:
    """Aggregates constructed services with shared configuration."""

    settings: AppSettings
    provider_registry: ProviderRegistry
    aggregator: ResultAggregator
    fan_out: FanOutCoordinator
    job_poller: JobPoller


def build_http_plugin(provider_id: str, url: str, settings: AppSettings) -> ProviderPlugin:
    """Construct a plugin for a provider reachable over plain HTTP."""

    headers = {"Accept": "application/json"}
    if settings.http_api_key:
        headers["Authorization"] = f"Bearer {settings.http_api_key}"
    return ProviderPlugin(
        provider_id=ProviderId(provider_id),
        display_name=provider_id,
        invoker=HttpProviderInvoker(url, headers=headers, timeout=settings.http_timeout_seconds),
        job_backend=HttpJobBackend(
            url,
            headers=headers,
            timeout=settings.http_timeout_seconds,
            provider_id=provider_id,
        ),
    )


def build_registry(settings: AppSettings) -> ProviderRegistry:
    registry = ProviderRegistry()
    if settings.enable_local_providers:
        for provider_id, display_name, delay, failure in LOCAL_PROVIDERS:
            registry.register(
                build_local_plugin(
                    provider_id,
                    display_name=display_name,
                    delay_seconds=delay,
                    fail_with=failure,
                ),
                override=True,
            )
    for provider_id, url in settings.http_providers.items():
        if provider_id in registry:
            logger.warning("HTTP provider %s replaces a local provider", provider_id)
        registry.register(build_http_plugin(provider_id, url, settings), override=True)
    return registry


def build_container(settings: AppSettings | None = None) -> ServiceContainer:
    """Construct the primary service container."""

    resolved_settings = settings or AppSettings.from_env()
    registry = build_registry(resolved_settings)
    aggregator = ResultAggregator()
    fan_out = FanOutCoordinator(
        registry,
        aggregator=aggregator,
        per_call_timeout_seconds=resolved_settings.per_call_timeout_seconds,
        max_concurrency=resolved_settings.max_concurrency,
    )
    job_poller = JobPoller(
        poll_interval_seconds=resolved_settings.poll_interval_seconds,
        max_wait_seconds=resolved_settings.max_wait_seconds,
        status_retries=resolved_settings.status_retries,
        status_retry_backoff_seconds=resolved_settings.status_retry_backoff_seconds,
        aggregator=aggregator,
    )
    return ServiceContainer(
        settings=resolved_settings,
        provider_registry=registry,
        aggregator=aggregator,
        fan_out=fan_out,
        job_poller=job_poller,
    )


__all__ = ["ServiceContainer", "build_container", "build_http_plugin", "build_registry"]
