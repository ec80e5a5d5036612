"""Provider request and result domain models."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import timedelta
from types import MappingProxyType
from typing import Any

from pydantic import Field, field_validator, model_validator

from .base import DomainModel
from .enums import FailureReason
from .types import ProviderId, ProviderOptions


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class ProviderRequest(DomainModel):
    """One unit of work addressed to a single provider.

    ``options`` is stored as a read-only copy, nested containers included.
    """

    provider_id: ProviderId
    payload: Any = None
    options: ProviderOptions = Field(default_factory=dict)

    @field_validator("options", mode="after")
    @classmethod
    def _read_only(cls, value: ProviderOptions) -> ProviderOptions:
        return _freeze(value)

    @property
    def provider_options(self) -> Any:
        """Return a private, mutable copy of this provider's options entry, if any."""

        return _thaw(self.options.get(self.provider_id))


class ProviderFailure(DomainModel):
    """Structured description of a failed provider invocation."""

    reason: FailureReason = FailureReason.ERROR
    message: str
    status_code: int | None = None
    vendor_message: str | None = None
    exception_type: str | None = None

    def describe(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.vendor_message:
            parts.append(f"vendor={self.vendor_message}")
        return " ".join(parts)


class ProviderResult(DomainModel):
    """Settled outcome of one provider invocation inside a fan-out."""

    provider_id: ProviderId
    succeeded: bool
    payload: Any = None
    error: ProviderFailure | None = None
    elapsed: timedelta = timedelta(0)

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> ProviderResult:
        if self.succeeded:
            if self.error is not None:
                raise ValueError("successful results cannot carry an error")
            if self.payload is None:
                raise ValueError("successful results require a payload")
        else:
            if self.error is None:
                raise ValueError("failed results require an error")
            if self.payload is not None:
                raise ValueError("failed results cannot carry a payload")
        return self

    @classmethod
    def success(
        cls,
        provider_id: ProviderId,
        payload: Any,
        *,
        elapsed: timedelta = timedelta(0),
    ) -> ProviderResult:
        return cls(provider_id=provider_id, succeeded=True, payload=payload, elapsed=elapsed)

    @classmethod
    def failure(
        cls,
        provider_id: ProviderId,
        error: ProviderFailure,
        *,
        elapsed: timedelta = timedelta(0),
    ) -> ProviderResult:
        return cls(provider_id=provider_id, succeeded=False, error=error, elapsed=elapsed)

    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed.total_seconds()


def build_requests(
    provider_ids: Iterable[str],
    payload: Any,
    options: ProviderOptions | None = None,
) -> list[ProviderRequest]:
    """Build one request per provider with the same payload and options map.

    Every request holds its own frozen copy of ``options``.
    """

    return [
        ProviderRequest(provider_id=ProviderId(provider_id), payload=payload, options=options or {})
        for provider_id in provider_ids
    ]


__all__ = ["ProviderFailure", "ProviderRequest", "ProviderResult", "build_requests"]
