"""Asynchronous job domain models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from switchboard.utils import ensure_utc, utc_now

from .base import MutableDomainModel
from .enums import JobStatus
from .types import JobId

COMPLETED_STATUSES = frozenset({"completed", "done"})
FAILED_STATUSES = frozenset({"failed", "error", "canceled", "cancelled"})


def classify_status(raw: str | None) -> JobStatus:
    """Map a vendor status string onto the job state machine.

    Unknown or missing values keep the job polling.
    """

    normalized = (raw or "").strip().lower()
    if normalized in COMPLETED_STATUSES:
        return JobStatus.COMPLETED
    if normalized in FAILED_STATUSES:
        return JobStatus.FAILED
    return JobStatus.POLLING


class Job(MutableDomainModel):
    """A remote job tracked by a poller until it reaches a terminal state."""

    id: JobId
    status: JobStatus = JobStatus.SUBMITTED
    created_at: datetime = Field(default_factory=utc_now)
    last_polled_at: datetime | None = None
    percentage: int | None = Field(default=None, ge=0, le=100)
    result_ref: str | None = None
    error: str | None = None
    polls: int = 0

    @field_validator("created_at", "last_polled_at", mode="before")
    @classmethod
    def _normalize_timezone(cls, value: datetime | str | None) -> datetime | None:
        return None if value is None else ensure_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


__all__ = ["COMPLETED_STATUSES", "FAILED_STATUSES", "Job", "classify_status"]
