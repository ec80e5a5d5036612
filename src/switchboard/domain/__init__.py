"""Domain layer exports."""

from .base import DomainModel, MutableDomainModel
from .enums import ExecutionMode, FailureReason, JobStatus, OutcomeKind
from .job import Job, classify_status
from .progress import ProgressEvent
from .request import ProviderFailure, ProviderRequest, ProviderResult, build_requests
from .types import JobId, ProviderId, ProviderOptions

__all__ = [
    "DomainModel",
    "ExecutionMode",
    "FailureReason",
    "Job",
    "JobId",
    "JobStatus",
    "MutableDomainModel",
    "OutcomeKind",
    "ProgressEvent",
    "ProviderFailure",
    "ProviderId",
    "ProviderOptions",
    "ProviderRequest",
    "ProviderResult",
    "build_requests",
    "classify_status",
]
