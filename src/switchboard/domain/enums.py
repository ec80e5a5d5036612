"""Enumerations used across the Switchboard domain layer."""

from __future__ import annotations

from enum import StrEnum


class ExecutionMode(StrEnum):
    """Channels a provider can be driven through."""

    DIRECT = "direct"
    JOB = "job"


class JobStatus(StrEnum):
    """State machine for a single asynchronous remote job."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_JOB_STATUSES


_TERMINAL_JOB_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT, JobStatus.CANCELLED}
)


class OutcomeKind(StrEnum):
    """Classification applied to a settled unit of work."""

    SUCCESS = "success"
    SKIP = "skip"
    FATAL = "fatal"


class FailureReason(StrEnum):
    """Why a single provider invocation did not produce a payload."""

    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    EMPTY = "empty"
