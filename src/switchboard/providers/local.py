"""Local provider simulations used for development and dry runs."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Any
from uuid import uuid4

from switchboard.domain import ProviderId, ProviderRequest

from .base import CancellableJobBackend, ProviderInvoker, ProviderPlugin
from .exceptions import ProviderError, ProviderInvocationError
from .models import DownloadResult, PollResult, SubmitResult

DEFAULT_JOB_SCRIPT: tuple[PollResult, ...] = (
    PollResult(status="queued", percentage=0),
    PollResult(status="processing", percentage=50),
    PollResult(status="completed", percentage=100),
)


class EchoInvoker(ProviderInvoker):
    """Simulated provider that echoes the request back after a fixed delay."""

    def __init__(
        self,
        provider_id: ProviderId,
        *,
        delay_seconds: float = 0.0,
        fail_with: str | None = None,
    ) -> None:
        self._provider_id = provider_id
        self._delay_seconds = delay_seconds
        self._fail_with = fail_with

    async def invoke(self, request: ProviderRequest) -> dict[str, Any]:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)
        if self._fail_with is not None:
            raise ProviderInvocationError(
                self._fail_with,
                provider_id=self._provider_id,
                status_code=500,
                vendor_message=self._fail_with,
            )
        return {
            "provider": self._provider_id,
            "input": request.payload,
            "options": request.provider_options,
        }


class ScriptedJobBackend(CancellableJobBackend):
    """Simulated job backend replaying a fixed sequence of status reports.

    Each job walks through ``script`` one entry per poll; once exhausted the
    last entry repeats. ``fail_download`` makes artifact retrieval fail.
    """

    def __init__(
        self,
        provider_id: ProviderId,
        script: Sequence[PollResult | str] = DEFAULT_JOB_SCRIPT,
        *,
        fail_download: bool = False,
    ) -> None:
        if not script:
            raise ValueError("ScriptedJobBackend requires at least one status")
        self._provider_id = provider_id
        self._script = tuple(
            item if isinstance(item, PollResult) else PollResult(status=item) for item in script
        )
        self._fail_download = fail_download
        self._payloads: dict[str, Any] = {}
        self._cursor: dict[str, int] = {}
        self.submitted = 0
        self.polled = 0
        self.downloaded = 0
        self.cancelled: list[str] = []

    async def submit(self, payload: Any) -> SubmitResult:
        job_id = f"{self._provider_id}-{uuid4().hex[:8]}"
        self._payloads[job_id] = payload
        self._cursor[job_id] = 0
        self.submitted += 1
        return SubmitResult(job_id=job_id, metadata={"status": "submitted"})

    async def poll(self, job_id: str) -> PollResult:
        try:
            index = self._cursor[job_id]
        except KeyError as exc:
            raise ProviderInvocationError(
                f"Unknown job id: {job_id}", provider_id=self._provider_id, status_code=404
            ) from exc
        self.polled += 1
        self._cursor[job_id] = index + 1
        return self._script[min(index, len(self._script) - 1)]

    async def download(self, job_id: str) -> DownloadResult:
        self.downloaded += 1
        if self._fail_download:
            raise ProviderError(f"Artifact for job {job_id} is unavailable")
        try:
            payload = self._payloads[job_id]
        except KeyError as exc:
            raise ProviderError(f"Unknown job id: {job_id}") from exc
        body = {"provider": self._provider_id, "job_id": job_id, "input": payload}
        return DownloadResult(
            content=json.dumps(body, ensure_ascii=False).encode("utf-8"),
            content_type="application/json",
            metadata={"job_id": job_id},
        )

    async def cancel(self, job_id: str) -> None:
        self.cancelled.append(job_id)


def build_local_plugin(
    provider_id: str,
    *,
    display_name: str | None = None,
    delay_seconds: float = 0.0,
    fail_with: str | None = None,
    job_script: Sequence[PollResult | str] = DEFAULT_JOB_SCRIPT,
) -> ProviderPlugin:
    """Construct a simulated provider supporting both direct and job modes."""

    resolved_id = ProviderId(provider_id)
    return ProviderPlugin(
        provider_id=resolved_id,
        display_name=display_name or provider_id,
        invoker=EchoInvoker(resolved_id, delay_seconds=delay_seconds, fail_with=fail_with),
        job_backend=ScriptedJobBackend(resolved_id, job_script),
    )


__all__ = [
    "DEFAULT_JOB_SCRIPT",
    "EchoInvoker",
    "ScriptedJobBackend",
    "build_local_plugin",
]
