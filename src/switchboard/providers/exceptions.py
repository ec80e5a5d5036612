"""Provider integration-specific exceptions."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base class for provider integration failures."""


class ProviderInvocationError(ProviderError):
    """Raised when one provider call fails (transport, vendor 4xx/5xx, malformed payload)."""

    def __init__(
        self,
        message: str,
        *,
        provider_id: str | None = None,
        status_code: int | None = None,
        vendor_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code
        self.vendor_message = vendor_message

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text = f"{text} (status {self.status_code})"
        if self.vendor_message:
            text = f"{text}: {self.vendor_message}"
        return text


class UnsupportedModeError(ProviderError):
    """Raised when a provider plugin does not support a requested execution mode."""


__all__ = ["ProviderError", "ProviderInvocationError", "UnsupportedModeError"]
