from __future__ import annotations

import asyncio
import json
import time

import pytest

from switchboard.domain import Job, JobId, JobStatus, OutcomeKind
from switchboard.providers import PollResult, ProviderInvocationError, SubmitResult
from switchboard.providers.local import ScriptedJobBackend
from switchboard.runtime import (
    CollectingProgressSink,
    DownloadError,
    InvalidTransitionError,
    JobCancelledError,
    JobFailedError,
    JobOutcome,
    JobPoller,
    JobPollingTransportError,
    JobSubmissionError,
    JobTimeoutError,
    LifecycleError,
    ResultAggregator,
)
from switchboard.runtime.jobs import transition

PROGRESS_SCRIPT = (
    PollResult(status="processing", percentage=30),
    PollResult(status="processing", percentage=70),
    PollResult(status="completed", percentage=100),
)


def _backend(*script: PollResult | str, fail_download: bool = False) -> ScriptedJobBackend:
    return ScriptedJobBackend("media", script or PROGRESS_SCRIPT, fail_download=fail_download)


def test_job_completes_after_polling_through_progress() -> None:
    backend = _backend()
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    outcome = asyncio.run(poller.run_backend(backend, {"prompt": "cat"}))

    assert outcome.status is JobStatus.COMPLETED
    assert outcome.succeeded
    assert outcome.job.polls == 3
    assert backend.submitted == 1
    assert backend.polled == 3
    assert backend.downloaded == 1
    assert [report.percentage for report in outcome.poll_history] == [30, 70, 100]
    assert outcome.job.percentage == 100
    assert outcome.artifact is not None
    body = json.loads(outcome.artifact.content or b"{}")
    assert body["input"] == {"prompt": "cat"}
    assert outcome.job.result_ref == outcome.artifact.reference


def test_job_progress_relays_reported_percentage() -> None:
    sink = CollectingProgressSink()
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    asyncio.run(poller.run_backend(_backend(), "payload", progress=sink, label="render"))

    assert sink.completed_counts == [30, 70, 100]
    assert all(event.total == 100 for event in sink.events)
    assert sink.events[0].label == "render: processing"


def test_job_times_out_by_wall_clock() -> None:
    backend = _backend("processing")
    poller = JobPoller(poll_interval_seconds=0.2, max_wait_seconds=0.5)

    started = time.monotonic()
    outcome = asyncio.run(poller.run_backend(backend, "payload"))
    elapsed = time.monotonic() - started

    assert outcome.status is JobStatus.TIMED_OUT
    assert 0.49 <= elapsed < 0.7
    assert outcome.artifact is None
    assert backend.downloaded == 0
    assert outcome.job.error is not None
    assert "did not complete within 0.5 seconds" in outcome.job.error


def test_job_times_out_when_status_never_answers() -> None:
    async def _submit() -> str:
        return "job-1"

    async def _status(job_id: str) -> PollResult:
        await asyncio.Event().wait()
        return PollResult(status="completed")

    poller = JobPoller(poll_interval_seconds=0.2, max_wait_seconds=0.5)

    started = time.monotonic()
    outcome = asyncio.run(poller.run(_submit, _status, _status))  # type: ignore[arg-type]
    elapsed = time.monotonic() - started

    assert outcome.status is JobStatus.TIMED_OUT
    assert outcome.job.polls == 0
    assert 0.49 <= elapsed < 0.7


def test_per_call_overrides_take_precedence() -> None:
    backend = _backend("processing")
    poller = JobPoller(poll_interval_seconds=5, max_wait_seconds=300)

    outcome = asyncio.run(
        poller.run_backend(backend, "payload", poll_interval=0.01, max_wait=0.1)
    )

    assert outcome.status is JobStatus.TIMED_OUT
    assert outcome.job.polls > 2


def test_failed_job_message_is_kept_verbatim() -> None:
    backend = _backend(
        "processing",
        PollResult(status="failed", message="content policy violation: prompt rejected"),
    )
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    outcome = asyncio.run(poller.run_backend(backend, "payload"))

    assert outcome.status is JobStatus.FAILED
    assert outcome.job.error == "content policy violation: prompt rejected"
    assert backend.downloaded == 0


def test_run_to_result_raises_failed_error() -> None:
    backend = _backend(PollResult(status="Error", message="GPU out of memory"))
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    async def _submit() -> SubmitResult:
        return await backend.submit("payload")

    with pytest.raises(JobFailedError) as excinfo:
        asyncio.run(poller.run_to_result(_submit, backend.poll, backend.download))

    assert str(excinfo.value) == "GPU out of memory"
    assert excinfo.value.reason == "GPU out of memory"
    assert excinfo.value.job is not None
    assert excinfo.value.job.status is JobStatus.FAILED


def test_failure_without_message_names_status() -> None:
    backend = _backend("cancelled")
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    outcome = asyncio.run(poller.run_backend(backend, "payload"))

    assert outcome.status is JobStatus.FAILED
    assert outcome.job.error == "Job reported status 'cancelled'"


def test_run_to_result_returns_artifact() -> None:
    backend = _backend("done")
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    async def _submit() -> SubmitResult:
        return await backend.submit("payload")

    artifact = asyncio.run(poller.run_to_result(_submit, backend.poll, backend.download))
    assert artifact.content_type == "application/json"


def test_submission_failure_skips_polling() -> None:
    polled: list[str] = []

    async def _submit() -> str:
        raise ProviderInvocationError("quota exceeded", status_code=402)

    async def _status(job_id: str) -> PollResult:
        polled.append(job_id)
        return PollResult(status="completed")

    async def _download(job_id: str):  # pragma: no cover - never reached
        raise AssertionError("download must not run")

    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)
    with pytest.raises(JobSubmissionError) as excinfo:
        asyncio.run(poller.run(_submit, _status, _download))

    assert "quota exceeded" in str(excinfo.value)
    assert polled == []


def test_submission_without_job_id_is_rejected() -> None:
    async def _submit() -> str:
        return ""

    async def _status(job_id: str) -> PollResult:  # pragma: no cover - never reached
        return PollResult(status="completed")

    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)
    with pytest.raises(JobSubmissionError):
        asyncio.run(poller.run(_submit, _status, _status))  # type: ignore[arg-type]


def test_status_transport_error_is_fatal_by_default() -> None:
    calls = 0

    async def _submit() -> str:
        return "job-1"

    async def _status(job_id: str) -> PollResult:
        nonlocal calls
        calls += 1
        raise ConnectionError("connection reset")

    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)
    with pytest.raises(JobPollingTransportError) as excinfo:
        asyncio.run(poller.run(_submit, _status, _status))  # type: ignore[arg-type]

    assert calls == 1
    assert excinfo.value.job is not None
    assert excinfo.value.job.id == "job-1"
    assert ResultAggregator().classify_exception(excinfo.value) is OutcomeKind.FATAL


def test_status_retries_recover_from_transient_errors() -> None:
    backend = _backend("processing", "completed")
    failures = iter([True, False, False])

    async def _flaky_status(job_id: str) -> PollResult:
        if next(failures, False):
            raise ConnectionError("temporary glitch")
        return await backend.poll(job_id)

    async def _submit() -> SubmitResult:
        return await backend.submit("payload")

    poller = JobPoller(
        poll_interval_seconds=0.01,
        max_wait_seconds=5,
        status_retries=2,
        status_retry_backoff_seconds=0.0,
    )
    outcome = asyncio.run(poller.run(_submit, _flaky_status, backend.download))

    assert outcome.status is JobStatus.COMPLETED
    assert outcome.job.polls == 2


def test_download_failure_raises_download_error() -> None:
    backend = _backend("completed", fail_download=True)
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    with pytest.raises(DownloadError) as excinfo:
        asyncio.run(poller.run_backend(backend, "payload"))

    assert backend.downloaded == 1
    assert excinfo.value.job is not None
    assert excinfo.value.job.status is JobStatus.COMPLETED


def test_cancel_event_stops_polling_and_cancels_remote_job() -> None:
    backend = _backend("processing")
    poller = JobPoller(poll_interval_seconds=0.05, max_wait_seconds=5)

    async def _run() -> JobOutcome:
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.12, cancel.set)
        return await poller.run_backend(
            backend, "payload", cancel_event=cancel, cancel_remote=True
        )

    outcome = asyncio.run(_run())

    assert outcome.status is JobStatus.CANCELLED
    assert backend.cancelled == [outcome.job.id]
    assert backend.downloaded == 0
    with pytest.raises(JobCancelledError):
        ResultAggregator().unwrap_job(outcome)


def test_cancel_event_leaves_remote_job_alone_by_default() -> None:
    backend = _backend("processing")
    poller = JobPoller(poll_interval_seconds=0.05, max_wait_seconds=5)

    async def _run() -> JobOutcome:
        cancel = asyncio.Event()
        cancel.set()
        return await poller.run_backend(backend, "payload", cancel_event=cancel)

    outcome = asyncio.run(_run())

    assert outcome.status is JobStatus.CANCELLED
    assert outcome.job.polls == 0
    assert backend.cancelled == []


def test_cancel_event_interrupts_in_flight_status_call() -> None:
    interrupted: list[str] = []
    cancelled_remote: list[str] = []

    async def _submit() -> str:
        return "job-1"

    async def _status(job_id: str) -> PollResult:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            interrupted.append(job_id)
            raise
        return PollResult(status="completed")

    async def _cancel(job_id: str) -> None:
        cancelled_remote.append(job_id)

    poller = JobPoller(poll_interval_seconds=0.05, max_wait_seconds=1.0)

    async def _run() -> tuple[float, JobOutcome]:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, cancel.set)
        started = loop.time()
        outcome = await poller.run(
            _submit, _status, _status, cancel_event=cancel, cancel=_cancel  # type: ignore[arg-type]
        )
        elapsed = loop.time() - started
        await asyncio.sleep(0.01)
        return elapsed, outcome

    elapsed, outcome = asyncio.run(_run())

    assert outcome.status is JobStatus.CANCELLED
    assert elapsed < 0.5
    assert outcome.job.polls == 0
    assert interrupted == ["job-1"]
    assert cancelled_remote == ["job-1"]


def test_cancel_event_interrupts_status_retry_backoff() -> None:
    async def _submit() -> str:
        return "job-1"

    async def _status(job_id: str) -> PollResult:
        raise ConnectionError("connection reset")

    poller = JobPoller(
        poll_interval_seconds=0.05,
        max_wait_seconds=5,
        status_retries=3,
        status_retry_backoff_seconds=10,
    )

    async def _run() -> tuple[float, JobOutcome]:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, cancel.set)
        started = loop.time()
        outcome = await poller.run(
            _submit, _status, _status, cancel_event=cancel  # type: ignore[arg-type]
        )
        return loop.time() - started, outcome

    elapsed, outcome = asyncio.run(_run())

    assert outcome.status is JobStatus.CANCELLED
    assert elapsed < 0.5


def test_cancel_event_interrupts_download() -> None:
    backend = _backend("completed")

    async def _stalled_download(job_id: str):
        await asyncio.sleep(30)

    async def _submit() -> SubmitResult:
        return await backend.submit("payload")

    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=5)

    async def _run() -> float:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, cancel.set)
        started = loop.time()
        with pytest.raises(JobCancelledError) as excinfo:
            await poller.run(_submit, backend.poll, _stalled_download, cancel_event=cancel)
        assert excinfo.value.job is not None
        assert excinfo.value.job.status is JobStatus.COMPLETED
        return loop.time() - started

    assert asyncio.run(_run()) < 0.5


def test_task_cancellation_propagates() -> None:
    backend = _backend("processing")
    poller = JobPoller(poll_interval_seconds=0.05, max_wait_seconds=5)

    async def _run() -> None:
        task = asyncio.create_task(poller.run_backend(backend, "payload"))
        await asyncio.sleep(0.08)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_run())
    assert backend.polled >= 1
    assert backend.cancelled == []


def test_unwrap_timed_out_job_raises_timeout_error() -> None:
    poller = JobPoller(poll_interval_seconds=0.01, max_wait_seconds=0.05)
    outcome = asyncio.run(poller.run_backend(_backend("queued"), "payload"))

    with pytest.raises(JobTimeoutError):
        ResultAggregator().unwrap_job(outcome)


def test_classify_job_requires_terminal_state() -> None:
    aggregator = ResultAggregator()
    job = Job(id=JobId("job-1"))
    with pytest.raises(LifecycleError):
        aggregator.classify_job(job)

    transition(job, JobStatus.POLLING)
    transition(job, JobStatus.COMPLETED)
    assert aggregator.classify_job(job) is OutcomeKind.SUCCESS


def test_transitions_follow_job_lifecycle() -> None:
    job = Job(id=JobId("job-1"))
    with pytest.raises(InvalidTransitionError):
        transition(job, JobStatus.COMPLETED)

    transition(job, JobStatus.POLLING)
    transition(job, JobStatus.POLLING)
    transition(job, JobStatus.FAILED)
    for status in JobStatus:
        with pytest.raises(InvalidTransitionError):
            transition(job, status)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"poll_interval_seconds": 0},
        {"max_wait_seconds": -1},
        {"status_retries": -1},
    ],
)
def test_poller_rejects_invalid_settings(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        JobPoller(**kwargs)  # type: ignore[arg-type]
