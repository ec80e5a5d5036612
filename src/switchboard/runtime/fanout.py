"""Concurrent fan-out of one logical request to many providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import timedelta

from switchboard.domain import ProviderRequest, ProviderResult
from switchboard.providers import ProviderInvoker, ProviderRegistry
from switchboard.utils import utc_now

from .aggregation import ResultAggregator
from .models import FanOutReport
from .progress import ProgressSink, ProgressTracker


class FanOutCoordinator:
    """Runs provider invocations concurrently and isolates their failures.

    Results come back in submission order while progress events follow
    completion order. Without an explicit invoker each request is routed
    through the provider registry.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        *,
        aggregator: ResultAggregator | None = None,
        per_call_timeout_seconds: float | None = None,
        max_concurrency: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self._aggregator = aggregator or ResultAggregator(logger=self._logger)
        self._per_call_timeout = per_call_timeout_seconds
        self._max_concurrency = max_concurrency

    async def execute(
        self,
        requests: Iterable[ProviderRequest],
        invoker: ProviderInvoker | None = None,
        *,
        per_call_timeout: float | None = None,
        include_failures: bool = False,
        progress: ProgressSink | None = None,
        cancel_event: asyncio.Event | None = None,
        max_concurrency: int | None = None,
    ) -> list[ProviderResult]:
        """Fan out and return the surfaced results in submission order."""

        report = await self.execute_all(
            requests,
            invoker,
            per_call_timeout=per_call_timeout,
            progress=progress,
            cancel_event=cancel_event,
            max_concurrency=max_concurrency,
        )
        return self._aggregator.select(report.results, include_failures=include_failures)

    async def execute_all(
        self,
        requests: Iterable[ProviderRequest],
        invoker: ProviderInvoker | None = None,
        *,
        per_call_timeout: float | None = None,
        progress: ProgressSink | None = None,
        cancel_event: asyncio.Event | None = None,
        max_concurrency: int | None = None,
    ) -> FanOutReport:
        """Fan out and return every settled result, failures included."""

        batch = tuple(requests)
        started_at = utc_now()
        if not batch:
            return FanOutReport(results=(), started_at=started_at, completed_at=utc_now())

        routes = [self._resolve(request, invoker) for request in batch]
        timeout = per_call_timeout if per_call_timeout is not None else self._per_call_timeout
        limit = max_concurrency if max_concurrency is not None else self._max_concurrency
        limiter = asyncio.Semaphore(limit) if limit else None
        tracker = ProgressTracker(progress, total=len(batch), logger=self._logger)

        self._logger.debug(
            "Fanning out to %d provider(s): %s",
            len(batch),
            ", ".join(request.provider_id for request in batch),
        )
        loop = asyncio.get_running_loop()
        started = loop.time()
        tasks = [
            asyncio.create_task(
                self._run_one(request, route_invoker, label, timeout, limiter, tracker),
                name=f"fan-out:{index}:{request.provider_id}",
            )
            for index, (request, (route_invoker, label)) in enumerate(zip(batch, routes))
        ]
        await self._wait(tasks, cancel_event)

        elapsed = timedelta(seconds=loop.time() - started)
        results = tuple(
            self._collect(task, request, elapsed) for task, request in zip(tasks, batch)
        )
        self._aggregator.log_failures(results)
        return FanOutReport(results=results, started_at=started_at, completed_at=utc_now())

    def _resolve(
        self,
        request: ProviderRequest,
        invoker: ProviderInvoker | None,
    ) -> tuple[ProviderInvoker, str]:
        if invoker is not None:
            label = request.provider_id
            if self._registry is not None and request.provider_id in self._registry:
                label = self._registry.get(request.provider_id).display_name
            return invoker, label
        if self._registry is None:
            raise ValueError("An invoker is required when no provider registry is configured")
        plugin = self._registry.get(request.provider_id)
        return plugin.require_invoker(), plugin.display_name

    async def _run_one(
        self,
        request: ProviderRequest,
        invoker: ProviderInvoker,
        label: str,
        timeout: float | None,
        limiter: asyncio.Semaphore | None,
        tracker: ProgressTracker,
    ) -> ProviderResult:
        if limiter is None:
            result = await self._aggregator.settle(invoker, request, timeout=timeout)
        else:
            async with limiter:
                result = await self._aggregator.settle(invoker, request, timeout=timeout)
        await tracker.advance(label)
        return result

    async def _wait(
        self,
        tasks: list[asyncio.Task[ProviderResult]],
        cancel_event: asyncio.Event | None,
    ) -> None:
        pending: set[asyncio.Task[ProviderResult]] = set(tasks)
        stop = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        try:
            while pending:
                waiters: set[asyncio.Future[object]] = set(pending)
                if stop is not None:
                    waiters.add(stop)
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                pending.difference_update(done)
                if stop is not None and stop in done:
                    self._logger.info(
                        "Fan-out cancelled with %d invocation(s) outstanding", len(pending)
                    )
                    break
        finally:
            if stop is not None:
                stop.cancel()
            # Outstanding calls are abandoned, not awaited.
            for task in pending:
                task.cancel()

    def _collect(
        self,
        task: asyncio.Task[ProviderResult],
        request: ProviderRequest,
        elapsed: timedelta,
    ) -> ProviderResult:
        if not task.done() or task.cancelled():
            return self._aggregator.cancelled(request, elapsed=elapsed)
        return task.result()


__all__ = ["FanOutCoordinator"]
