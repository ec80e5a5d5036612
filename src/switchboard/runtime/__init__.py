"""Runtime layer exports."""

from .aggregation import ResultAggregator
from .exceptions import (
    DownloadError,
    InvalidTransitionError,
    JobCancelledError,
    JobError,
    JobFailedError,
    JobPollingTransportError,
    JobSubmissionError,
    JobTimeoutError,
    LifecycleError,
    OrchestrationError,
)
from .fanout import FanOutCoordinator
from .jobs import JobPoller
from .models import FanOutReport, JobOutcome
from .progress import (
    CollectingProgressSink,
    LoggingProgressSink,
    ProgressSink,
    ProgressTracker,
    TokenProgressSink,
)

__all__ = [
    "CollectingProgressSink",
    "DownloadError",
    "FanOutCoordinator",
    "FanOutReport",
    "InvalidTransitionError",
    "JobCancelledError",
    "JobError",
    "JobFailedError",
    "JobOutcome",
    "JobPollingTransportError",
    "JobPoller",
    "JobSubmissionError",
    "JobTimeoutError",
    "LifecycleError",
    "LoggingProgressSink",
    "OrchestrationError",
    "ProgressSink",
    "ProgressTracker",
    "ResultAggregator",
    "TokenProgressSink",
]
