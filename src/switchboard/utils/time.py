"""Timestamp helpers for job and fan-out records."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | str) -> datetime:
    """Coerce a datetime or ISO-8601 string (``Z`` suffix allowed) to aware UTC.

    Naive values are taken to be UTC already.
    """

    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
