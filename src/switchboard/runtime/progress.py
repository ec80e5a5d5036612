"""Progress sinks and the single-writer progress sequencer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from switchboard.domain import ProgressEvent

TokenNotifier = Callable[[Any, str, int, int], Awaitable[Any]]


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events in sequence order."""

    async def emit(self, event: ProgressEvent) -> None: ...


class LoggingProgressSink(ProgressSink):
    """Writes each event to a logger; the default sink when none is given."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._level = level

    async def emit(self, event: ProgressEvent) -> None:
        self._logger.log(
            self._level,
            "[%d/%d] %s",
            event.completed,
            event.total,
            event.label,
        )


class CollectingProgressSink(ProgressSink):
    """Keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    async def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def completed_counts(self) -> list[int]:
        return [event.completed for event in self.events]


class TokenProgressSink(ProgressSink):
    """Forwards events to a notifier that threads a progress token.

    The notifier receives the current token and returns the next one. A
    ``None`` token disables delivery, matching observers that never asked
    for progress.
    """

    def __init__(self, notify: TokenNotifier, token: Any = 1) -> None:
        self._notify = notify
        self.token = token

    async def emit(self, event: ProgressEvent) -> None:
        if self.token is None:
            return
        self.token = await self._notify(self.token, event.label, event.completed, event.total)


class ProgressTracker:
    """Builds and delivers progress events for one operation.

    Counter updates, event construction and delivery happen under one lock,
    so concurrent completions can never drop or reorder an event.
    """

    def __init__(
        self,
        sink: ProgressSink | None,
        total: int,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._sink = sink or LoggingProgressSink(self._logger, level=logging.DEBUG)
        self._total = total
        self._completed = 0
        self._sequence = 0
        self._lock = asyncio.Lock()

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return self._total

    async def advance(self, label: str) -> ProgressEvent:
        """Record one more settled unit."""

        async with self._lock:
            self._completed = min(self._completed + 1, self._total)
            return await self._publish(label)

    async def report(self, completed: int, label: str) -> ProgressEvent:
        """Record an absolute completed count; lower values never move progress back."""

        async with self._lock:
            self._completed = max(self._completed, min(completed, self._total))
            return await self._publish(label)

    async def _publish(self, label: str) -> ProgressEvent:
        self._sequence += 1
        event = ProgressEvent(
            sequence=self._sequence,
            completed=self._completed,
            total=self._total,
            label=label,
        )
        try:
            await self._sink.emit(event)
        except Exception as exc:
            self._logger.warning("Progress delivery failed for %r: %s", label, exc)
        return event


__all__ = [
    "CollectingProgressSink",
    "LoggingProgressSink",
    "ProgressSink",
    "ProgressTracker",
    "TokenNotifier",
    "TokenProgressSink",
]
