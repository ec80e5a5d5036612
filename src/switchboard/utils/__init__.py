"""Shared utilities."""

from .time import ensure_utc, utc_now

__all__ = ["ensure_utc", "utc_now"]
