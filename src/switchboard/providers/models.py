"""Shared models for provider job integrations."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class SubmitResult:
    """Result from submitting an asynchronous job."""

    job_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PollResult:
    """Status response for a submitted job."""

    status: str
    percentage: int | None = None
    message: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DownloadResult:
    """Artifact retrieved for a completed job: raw bytes or result URLs."""

    content: bytes | None = None
    urls: Sequence[str] = field(default_factory=tuple)
    content_type: str = "application/octet-stream"
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def reference(self) -> str:
        """Short reference recorded on the job once the artifact is retrieved."""

        if self.urls:
            return self.urls[0]
        size = len(self.content) if self.content is not None else 0
        return f"{self.content_type};bytes={size}"


__all__ = ["DownloadResult", "PollResult", "SubmitResult"]
