"""Shared type aliases for the domain layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NewType

ProviderId = NewType("ProviderId", str)
JobId = NewType("JobId", str)
ProviderOptions = Mapping[str, Any]

__all__ = [
    "JobId",
    "ProviderId",
    "ProviderOptions",
]
