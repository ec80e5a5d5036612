"""Provider plugin contracts."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from switchboard.domain import ExecutionMode, ProviderId, ProviderRequest

from .exceptions import UnsupportedModeError
from .models import DownloadResult, PollResult, SubmitResult


@runtime_checkable
class ProviderInvoker(Protocol):
    """Executes one unit of work against one provider."""

    async def invoke(self, request: ProviderRequest) -> Any: ...


@runtime_checkable
class JobBackend(Protocol):
    """Drives a provider that executes work asynchronously."""

    async def submit(self, payload: Any) -> SubmitResult: ...

    async def poll(self, job_id: str) -> PollResult: ...

    async def download(self, job_id: str) -> DownloadResult: ...


@runtime_checkable
class CancellableJobBackend(JobBackend, Protocol):
    """Job backend exposing an explicit remote cancel endpoint."""

    async def cancel(self, job_id: str) -> None: ...


class FunctionInvoker(ProviderInvoker):
    """Adapts a plain coroutine function to the invoker contract."""

    def __init__(self, fn: Callable[[ProviderRequest], Awaitable[Any]]) -> None:
        self._fn = fn

    async def invoke(self, request: ProviderRequest) -> Any:
        return await self._fn(request)


@dataclass(slots=True)
class ProviderPlugin:
    """Declarative description of a provider integration."""

    provider_id: ProviderId
    display_name: str
    invoker: ProviderInvoker | None = None
    job_backend: JobBackend | None = None

    @property
    def supports_direct(self) -> bool:
        return self.invoker is not None

    @property
    def supports_jobs(self) -> bool:
        return self.job_backend is not None

    def require_invoker(self) -> ProviderInvoker:
        if self.invoker is None:
            msg = f"Provider {self.provider_id} does not support direct invocation"
            raise UnsupportedModeError(msg)
        return self.invoker

    def require_job_backend(self) -> JobBackend:
        if self.job_backend is None:
            msg = f"Provider {self.provider_id} does not support job mode"
            raise UnsupportedModeError(msg)
        return self.job_backend

    def ensure_mode(self, mode: ExecutionMode) -> None:
        """Validate that the plugin supports the requested execution mode."""

        if mode is ExecutionMode.DIRECT:
            self.require_invoker()
        else:
            self.require_job_backend()

    def capability_summary(self) -> dict[str, Any]:
        """Structured summary for CLI display or logging."""

        return {
            "provider_id": self.provider_id,
            "display_name": self.display_name,
            "supports_direct": self.supports_direct,
            "supports_jobs": self.supports_jobs,
        }
