"""Outcome classification shared by fan-out and job orchestration."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import timedelta

from switchboard.domain import (
    FailureReason,
    Job,
    JobStatus,
    OutcomeKind,
    ProviderFailure,
    ProviderRequest,
    ProviderResult,
)
from switchboard.providers import DownloadResult, ProviderInvocationError, ProviderInvoker

from .exceptions import (
    JobCancelledError,
    JobError,
    JobFailedError,
    JobTimeoutError,
    LifecycleError,
)
from .models import JobOutcome


class ResultAggregator:
    """Turns raw outcomes into typed results and typed failures."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    async def settle(
        self,
        invoker: ProviderInvoker,
        request: ProviderRequest,
        *,
        timeout: float | None = None,
    ) -> ProviderResult:
        """Invoke one provider and capture its outcome as a ``ProviderResult``.

        Any ``Exception`` is converted into a failed result; cancellation
        still propagates to the caller.
        """

        loop = asyncio.get_running_loop()
        scope = asyncio.timeout(timeout)
        started = loop.time()
        try:
            async with scope:
                payload = await invoker.invoke(request)
        except TimeoutError as exc:
            elapsed = timedelta(seconds=loop.time() - started)
            if scope.expired():
                failure = ProviderFailure(
                    reason=FailureReason.TIMEOUT,
                    message="timeout",
                    exception_type=type(exc).__name__,
                )
            else:
                failure = self.describe_exception(exc)
            return ProviderResult.failure(request.provider_id, failure, elapsed=elapsed)
        except Exception as exc:
            elapsed = timedelta(seconds=loop.time() - started)
            return ProviderResult.failure(
                request.provider_id, self.describe_exception(exc), elapsed=elapsed
            )

        elapsed = timedelta(seconds=loop.time() - started)
        if payload is None:
            failure = ProviderFailure(reason=FailureReason.EMPTY, message="empty response")
            return ProviderResult.failure(request.provider_id, failure, elapsed=elapsed)
        return ProviderResult.success(request.provider_id, payload, elapsed=elapsed)

    def describe_exception(self, exc: BaseException) -> ProviderFailure:
        if isinstance(exc, ProviderInvocationError):
            message = exc.args[0] if exc.args else type(exc).__name__
            return ProviderFailure(
                message=str(message),
                status_code=exc.status_code,
                vendor_message=exc.vendor_message,
                exception_type=type(exc).__name__,
            )
        return ProviderFailure(
            message=str(exc) or type(exc).__name__,
            exception_type=type(exc).__name__,
        )

    def cancelled(self, request: ProviderRequest, *, elapsed: timedelta) -> ProviderResult:
        failure = ProviderFailure(reason=FailureReason.CANCELLED, message="cancelled")
        return ProviderResult.failure(request.provider_id, failure, elapsed=elapsed)

    def classify(self, result: ProviderResult) -> OutcomeKind:
        return OutcomeKind.SUCCESS if result.succeeded else OutcomeKind.SKIP

    def classify_exception(self, exc: BaseException) -> OutcomeKind:
        """Job-level errors are fatal; any other error only skips its branch."""

        if isinstance(exc, JobError):
            return OutcomeKind.FATAL
        return OutcomeKind.SKIP

    def classify_job(self, job: Job) -> OutcomeKind:
        if not job.is_terminal:
            raise LifecycleError(f"Job {job.id} is not terminal ({job.status})")
        if job.status is JobStatus.COMPLETED:
            return OutcomeKind.SUCCESS
        return OutcomeKind.FATAL

    def select(
        self,
        results: Iterable[ProviderResult],
        *,
        include_failures: bool = False,
    ) -> list[ProviderResult]:
        """Filter settled results, keeping their order."""

        if include_failures:
            return list(results)
        return [result for result in results if self.classify(result) is OutcomeKind.SUCCESS]

    def log_failures(self, results: Iterable[ProviderResult]) -> None:
        for result in results:
            if result.succeeded or result.error is None:
                continue
            self._logger.warning(
                "Provider %s failed after %.3fs (%s): %s",
                result.provider_id,
                result.elapsed_seconds,
                result.error.reason,
                result.error.describe(),
            )

    def unwrap_job(self, outcome: JobOutcome) -> DownloadResult:
        """Return the artifact of a completed job or raise the matching typed error."""

        job = outcome.job
        kind = self.classify_job(job)
        if kind is OutcomeKind.SUCCESS:
            if outcome.artifact is None:
                raise LifecycleError(f"Job {job.id} completed without an artifact")
            return outcome.artifact
        if job.status is JobStatus.TIMED_OUT:
            raise JobTimeoutError(job.error or f"Job {job.id} timed out", job=job)
        if job.status is JobStatus.CANCELLED:
            raise JobCancelledError(job.error or f"Job {job.id} was cancelled", job=job)
        raise JobFailedError(job.error or f"Job {job.id} failed", reason=job.error, job=job)


__all__ = ["ResultAggregator"]
