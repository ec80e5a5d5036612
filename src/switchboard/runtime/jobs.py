"""Submit → poll → download runtime for asynchronous provider jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from switchboard.domain import Job, JobId, JobStatus, classify_status
from switchboard.providers import (
    CancellableJobBackend,
    DownloadResult,
    JobBackend,
    PollResult,
    SubmitResult,
)
from switchboard.utils import utc_now

from .aggregation import ResultAggregator
from .exceptions import (
    DownloadError,
    InvalidTransitionError,
    JobCancelledError,
    JobPollingTransportError,
    JobSubmissionError,
)
from .models import JobOutcome
from .progress import ProgressSink, ProgressTracker

_T = TypeVar("_T")

SubmitFn = Callable[[], Awaitable[SubmitResult | str]]
StatusFn = Callable[[str], Awaitable[PollResult]]
DownloadFn = Callable[[str], Awaitable[DownloadResult]]
CancelFn = Callable[[str], Awaitable[None]]


class _CancelRequested(Exception):
    """The caller's cancel event fired while an await was in flight."""

_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.SUBMITTED: frozenset({JobStatus.POLLING}),
    JobStatus.POLLING: frozenset(
        {
            JobStatus.POLLING,
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.TIMED_OUT,
            JobStatus.CANCELLED,
        }
    ),
}


def transition(job: Job, next_status: JobStatus) -> None:
    """Move ``job`` to ``next_status``; terminal states never change again."""

    allowed = _ALLOWED_TRANSITIONS.get(job.status, frozenset())
    if next_status not in allowed:
        msg = f"Cannot transition job {job.id} from {job.status} to {next_status}"
        raise InvalidTransitionError(msg)
    job.status = next_status


class JobPoller:
    """Coordinates submission, polling and download for a single job.

    Polling is bounded by wall-clock time measured from the moment submit
    returns, never by a poll count.
    """

    def __init__(
        self,
        *,
        poll_interval_seconds: float = 2.0,
        max_wait_seconds: float = 300.0,
        status_retries: int = 0,
        status_retry_backoff_seconds: float = 1.0,
        aggregator: ResultAggregator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if max_wait_seconds <= 0:
            raise ValueError("max_wait_seconds must be positive")
        if status_retries < 0:
            raise ValueError("status_retries cannot be negative")
        self._poll_interval_seconds = poll_interval_seconds
        self._max_wait_seconds = max_wait_seconds
        self._status_retries = status_retries
        self._status_retry_backoff_seconds = status_retry_backoff_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._aggregator = aggregator or ResultAggregator(logger=self._logger)

    async def run(
        self,
        submit: SubmitFn,
        get_status: StatusFn,
        download: DownloadFn,
        *,
        poll_interval: float | None = None,
        max_wait: float | None = None,
        cancel_event: asyncio.Event | None = None,
        cancel: CancelFn | None = None,
        progress: ProgressSink | None = None,
        label: str = "job",
    ) -> JobOutcome:
        """Drive one job to a terminal state.

        Completed, failed, timed-out and cancelled jobs all return a
        ``JobOutcome``. Submission, status transport and download failures
        raise. ``cancel_event`` interrupts every wait, including an in-flight
        status call, a retry backoff and the download. ``cancel`` is only
        called when ``cancel_event`` stops polling; the remote job is
        otherwise left alone.
        """

        interval = poll_interval if poll_interval is not None else self._poll_interval_seconds
        budget = max_wait if max_wait is not None else self._max_wait_seconds
        started_at = utc_now()

        job = await self._submit(submit, label)
        self._logger.info("%s: submitted job %s", label, job.id)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        tracker = ProgressTracker(progress, total=100, logger=self._logger)
        history: list[PollResult] = []

        transition(job, JobStatus.POLLING)
        scope = asyncio.timeout_at(deadline)
        try:
            async with scope:
                await self._poll_until_terminal(
                    job, get_status, history, interval, cancel_event, tracker, label
                )
        except TimeoutError:
            if not scope.expired():
                raise
            job.error = f"Job {job.id} did not complete within {budget:g} seconds"
            transition(job, JobStatus.TIMED_OUT)
            self._logger.warning("%s: %s", label, job.error)
        except asyncio.CancelledError:
            if not job.is_terminal:
                job.error = "Polling cancelled"
                transition(job, JobStatus.CANCELLED)
            self._logger.info("%s: polling of job %s cancelled", label, job.id)
            raise

        if job.status is JobStatus.CANCELLED and cancel is not None:
            await self._cancel_remote(cancel, job, label)

        artifact: DownloadResult | None = None
        if job.status is JobStatus.COMPLETED:
            artifact = await self._download(download, job, label, cancel_event)

        return JobOutcome(
            job=job,
            artifact=artifact,
            poll_history=tuple(history),
            started_at=started_at,
            completed_at=utc_now(),
        )

    async def run_backend(
        self,
        backend: JobBackend,
        payload: Any,
        *,
        cancel_remote: bool = False,
        **kwargs: Any,
    ) -> JobOutcome:
        """Run a job through a ``JobBackend`` implementation."""

        cancel: CancelFn | None = None
        if cancel_remote and isinstance(backend, CancellableJobBackend):
            cancel = backend.cancel

        async def _submit() -> SubmitResult:
            return await backend.submit(payload)

        return await self.run(_submit, backend.poll, backend.download, cancel=cancel, **kwargs)

    async def run_to_result(
        self,
        submit: SubmitFn,
        get_status: StatusFn,
        download: DownloadFn,
        **kwargs: Any,
    ) -> DownloadResult:
        """Run a job and return its artifact, raising a typed error otherwise."""

        outcome = await self.run(submit, get_status, download, **kwargs)
        return self._aggregator.unwrap_job(outcome)

    async def _submit(self, submit: SubmitFn, label: str) -> Job:
        try:
            submitted = await submit()
        except Exception as exc:
            raise JobSubmissionError(f"{label}: job submission failed: {exc}") from exc

        job_id = submitted.job_id if isinstance(submitted, SubmitResult) else submitted
        if not job_id:
            raise JobSubmissionError(f"{label}: job submission returned no job id")
        return Job(id=JobId(str(job_id)))

    async def _poll_until_terminal(
        self,
        job: Job,
        get_status: StatusFn,
        history: list[PollResult],
        interval: float,
        cancel_event: asyncio.Event | None,
        tracker: ProgressTracker,
        label: str,
    ) -> None:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                self._mark_cancelled(job, label)
                return

            try:
                report = await self._poll_once(job, get_status, label, cancel_event)
            except _CancelRequested:
                self._mark_cancelled(job, label)
                return
            history.append(report)
            job.polls += 1
            job.last_polled_at = utc_now()
            if report.percentage is not None:
                job.percentage = max(0, min(100, report.percentage))

            status = classify_status(report.status)
            transition(job, status)
            if job.percentage is not None:
                await tracker.report(job.percentage, f"{label}: {report.status}")

            if status is JobStatus.COMPLETED:
                self._logger.info("%s: job %s completed after %d poll(s)", label, job.id, job.polls)
                return
            if status is JobStatus.FAILED:
                job.error = report.message or f"Job reported status '{report.status}'"
                self._logger.warning("%s: job %s failed: %s", label, job.id, job.error)
                return

            self._logger.debug(
                "%s: job %s in progress (%s, poll #%d)", label, job.id, report.status, job.polls
            )
            if await self._sleep(interval, cancel_event):
                self._mark_cancelled(job, label)
                return

    async def _poll_once(
        self,
        job: Job,
        get_status: StatusFn,
        label: str,
        cancel_event: asyncio.Event | None,
    ) -> PollResult:
        attempts = self._status_retries + 1
        attempt = 1
        while True:
            try:
                return await self._unless_cancelled(get_status(job.id), cancel_event)
            except _CancelRequested:
                raise
            except Exception as exc:
                if attempt >= attempts:
                    msg = f"{label}: status request for job {job.id} failed: {exc}"
                    raise JobPollingTransportError(msg, job=job) from exc
                self._logger.warning(
                    "%s: status request for job %s failed (attempt %d/%d): %s",
                    label,
                    job.id,
                    attempt,
                    attempts,
                    exc,
                )
            attempt += 1
            if await self._sleep(self._status_retry_backoff_seconds, cancel_event):
                raise _CancelRequested

    async def _sleep(self, interval: float, cancel_event: asyncio.Event | None) -> bool:
        """Sleep for ``interval``; return True when the cancel event fired first."""

        if cancel_event is None:
            await asyncio.sleep(interval)
            return False
        try:
            async with asyncio.timeout(interval):
                await cancel_event.wait()
        except TimeoutError:
            return False
        return True

    def _mark_cancelled(self, job: Job, label: str) -> None:
        job.error = "Polling cancelled by caller"
        transition(job, JobStatus.CANCELLED)
        self._logger.info("%s: polling of job %s cancelled", label, job.id)

    async def _cancel_remote(self, cancel: CancelFn, job: Job, label: str) -> None:
        try:
            await cancel(job.id)
        except Exception as exc:
            self._logger.warning("%s: remote cancel of job %s failed: %s", label, job.id, exc)

    async def _unless_cancelled(
        self,
        awaitable: Awaitable[_T],
        cancel_event: asyncio.Event | None,
    ) -> _T:
        """Await ``awaitable``, abandoning it as soon as ``cancel_event`` fires."""

        if cancel_event is None:
            return await awaitable
        call = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not call.done():
                call.cancel()
        if call not in done:
            raise _CancelRequested
        return call.result()

    async def _download(
        self,
        download: DownloadFn,
        job: Job,
        label: str,
        cancel_event: asyncio.Event | None,
    ) -> DownloadResult:
        try:
            artifact = await self._unless_cancelled(download(job.id), cancel_event)
        except _CancelRequested:
            msg = f"{label}: download of job {job.id} cancelled"
            self._logger.info("%s", msg)
            raise JobCancelledError(msg, job=job) from None
        except Exception as exc:
            raise DownloadError(f"{label}: download of job {job.id} failed: {exc}", job=job) from exc
        job.result_ref = artifact.reference
        return artifact


__all__ = ["JobPoller", "transition"]
