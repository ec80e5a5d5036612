"""Provider plugin registry."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from switchboard.domain import ExecutionMode, ProviderId

from .base import ProviderPlugin


@dataclass(slots=True)
class ProviderRegistry:
    """Runtime registry mapping provider identifiers to plugins."""

    _plugins: dict[ProviderId, ProviderPlugin] = field(default_factory=dict)

    def register(self, plugin: ProviderPlugin, *, override: bool = False) -> None:
        if not override and plugin.provider_id in self._plugins:
            existing = self._plugins[plugin.provider_id]
            msg = f"Provider {plugin.provider_id} already registered ({existing.display_name})"
            raise ValueError(msg)
        self._plugins[plugin.provider_id] = plugin

    def get(self, provider_id: str) -> ProviderPlugin:
        try:
            return self._plugins[ProviderId(provider_id)]
        except KeyError as exc:
            msg = f"Unknown provider {provider_id}"
            raise KeyError(msg) from exc

    def list_plugins(self) -> Iterable[ProviderPlugin]:
        return tuple(self._plugins.values())

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._plugins

    def supports(self, provider_id: str, mode: ExecutionMode) -> bool:
        try:
            plugin = self.get(provider_id)
        except KeyError:
            return False
        if mode is ExecutionMode.DIRECT:
            return plugin.supports_direct
        return plugin.supports_jobs

    def require(self, provider_id: str, mode: ExecutionMode) -> ProviderPlugin:
        plugin = self.get(provider_id)
        plugin.ensure_mode(mode)
        return plugin


__all__ = ["ProviderRegistry"]
