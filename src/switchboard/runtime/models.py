"""Runtime execution result models."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from switchboard.domain import Job, JobStatus, ProviderResult
from switchboard.providers.models import DownloadResult, PollResult
from switchboard.utils import utc_now


@dataclass(slots=True)
class FanOutReport:
    """Every settled result of one fan-out call, in submission order."""

    results: tuple[ProviderResult, ...] = ()
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime = field(default_factory=utc_now)

    @property
    def successes(self) -> tuple[ProviderResult, ...]:
        return tuple(result for result in self.results if result.succeeded)

    @property
    def failures(self) -> tuple[ProviderResult, ...]:
        return tuple(result for result in self.results if not result.succeeded)


@dataclass(slots=True)
class JobOutcome:
    """Terminal state of one polled job plus the retrieved artifact, if any."""

    job: Job
    artifact: DownloadResult | None = None
    poll_history: Sequence[PollResult] = field(default_factory=tuple)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime = field(default_factory=utc_now)

    @property
    def status(self) -> JobStatus:
        return self.job.status

    @property
    def succeeded(self) -> bool:
        return self.job.status is JobStatus.COMPLETED and self.artifact is not None
