"""Provider layer public exports."""

from .base import (
    CancellableJobBackend,
    FunctionInvoker,
    JobBackend,
    ProviderInvoker,
    ProviderPlugin,
)
from .exceptions import ProviderError, ProviderInvocationError, UnsupportedModeError
from .models import DownloadResult, PollResult, SubmitResult
from .registry import ProviderRegistry

__all__ = [
    "CancellableJobBackend",
    "DownloadResult",
    "FunctionInvoker",
    "JobBackend",
    "PollResult",
    "ProviderError",
    "ProviderInvocationError",
    "ProviderInvoker",
    "ProviderPlugin",
    "ProviderRegistry",
    "SubmitResult",
    "UnsupportedModeError",
]
