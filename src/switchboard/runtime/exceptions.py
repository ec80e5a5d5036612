"""Exceptions raised by the orchestration runtime."""

from __future__ import annotations

from switchboard.domain import Job


class OrchestrationError(RuntimeError):
    """Base class for fan-out and job orchestration failures."""


class LifecycleError(OrchestrationError):
    """Raised when a job lifecycle transition fails validation."""


class InvalidTransitionError(LifecycleError):
    """Raised when an invalid lifecycle transition is requested."""


class JobError(OrchestrationError):
    """Base class for failures of a single asynchronous job operation."""

    def __init__(self, message: str, *, job: Job | None = None) -> None:
        super().__init__(message)
        self.job = job


class JobSubmissionError(JobError):
    """Raised when the initial submit call fails; no polling takes place."""


class JobPollingTransportError(JobError):
    """Raised when a status request fails at the transport level."""


class JobFailedError(JobError):
    """Raised when the remote job reports a failure or cancelled status."""

    def __init__(self, message: str, *, reason: str | None = None, job: Job | None = None) -> None:
        super().__init__(message, job=job)
        self.reason = reason


class JobTimeoutError(JobError):
    """Raised when the job stays non-terminal past its wall-clock budget."""


class JobCancelledError(JobError):
    """Raised when polling was stopped by the caller's cancel signal."""


class DownloadError(JobError):
    """Raised when a completed job's artifact could not be retrieved."""


__all__ = [
    "DownloadError",
    "InvalidTransitionError",
    "JobCancelledError",
    "JobError",
    "JobFailedError",
    "JobPollingTransportError",
    "JobSubmissionError",
    "JobTimeoutError",
    "LifecycleError",
    "OrchestrationError",
]
