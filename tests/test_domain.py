from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from switchboard.domain import (
    FailureReason,
    Job,
    JobId,
    JobStatus,
    ProgressEvent,
    ProviderFailure,
    ProviderId,
    ProviderRequest,
    ProviderResult,
    build_requests,
    classify_status,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("completed", JobStatus.COMPLETED),
        ("DONE", JobStatus.COMPLETED),
        (" done ", JobStatus.COMPLETED),
        ("failed", JobStatus.FAILED),
        ("error", JobStatus.FAILED),
        ("canceled", JobStatus.FAILED),
        ("Cancelled", JobStatus.FAILED),
        ("queued", JobStatus.POLLING),
        ("processing", JobStatus.POLLING),
        ("something-new", JobStatus.POLLING),
        ("", JobStatus.POLLING),
        (None, JobStatus.POLLING),
    ],
)
def test_classify_status(raw: str | None, expected: JobStatus) -> None:
    assert classify_status(raw) is expected


def test_terminal_statuses() -> None:
    terminal = {status for status in JobStatus if status.is_terminal}
    assert terminal == {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.TIMED_OUT,
        JobStatus.CANCELLED,
    }
    assert not Job(id=JobId("job-1")).is_terminal


def test_provider_result_requires_exactly_one_outcome() -> None:
    ok = ProviderResult.success(ProviderId("a"), {"text": "hi"}, elapsed=timedelta(seconds=1))
    assert ok.succeeded and ok.error is None and ok.elapsed_seconds == 1.0

    failed = ProviderResult.failure(ProviderId("a"), ProviderFailure(message="boom"))
    assert not failed.succeeded and failed.payload is None

    with pytest.raises(ValidationError):
        ProviderResult(provider_id=ProviderId("a"), succeeded=True, payload=None)
    with pytest.raises(ValidationError):
        ProviderResult(
            provider_id=ProviderId("a"),
            succeeded=True,
            payload="x",
            error=ProviderFailure(message="boom"),
        )
    with pytest.raises(ValidationError):
        ProviderResult(provider_id=ProviderId("a"), succeeded=False)


def test_provider_result_is_frozen() -> None:
    result = ProviderResult.success(ProviderId("a"), "payload")
    with pytest.raises(ValidationError):
        result.payload = "changed"  # type: ignore[misc]


def test_build_requests_shares_payload_and_options() -> None:
    options = {"openai": {"reasoning": {"effort": "low"}}, "google": {"thinking_budget": -1}}
    requests = build_requests(["openai", "google", "mistral"], "query", options)

    assert [request.provider_id for request in requests] == ["openai", "google", "mistral"]
    assert all(request.payload == "query" for request in requests)
    assert requests[0].provider_options == {"reasoning": {"effort": "low"}}
    assert requests[1].provider_options == {"thinking_budget": -1}
    assert requests[2].provider_options is None


def test_provider_request_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        ProviderRequest(provider_id=ProviderId("a"), payload="x", extra="nope")  # type: ignore[call-arg]


def test_progress_event_bounds() -> None:
    event = ProgressEvent(sequence=1, completed=2, total=4, label="x")
    assert event.fraction == 0.5
    with pytest.raises(ValidationError):
        ProgressEvent(sequence=1, completed=5, total=4)


def test_failure_description_includes_vendor_details() -> None:
    failure = ProviderFailure(
        reason=FailureReason.ERROR,
        message="Provider call failed",
        status_code=429,
        vendor_message="rate limited",
    )
    assert failure.describe() == "Provider call failed status=429 vendor=rate limited"


def test_request_options_are_read_only_and_not_shared() -> None:
    options = {"a": {"effort": "low", "tags": ["x"]}, "b": {"effort": "high"}}
    first, second = build_requests(["a", "b"], "query", options)

    with pytest.raises(TypeError):
        first.options["c"] = {}  # type: ignore[index]
    with pytest.raises(TypeError):
        first.options["a"]["effort"] = "max"  # type: ignore[index]

    options["a"]["effort"] = "max"
    handed_out = first.provider_options
    handed_out["effort"] = "changed"
    handed_out["tags"].append("y")

    assert first.provider_options == {"effort": "low", "tags": ["x"]}
    assert second.options["a"]["effort"] == "low"
    assert second.provider_options == {"effort": "high"}


def test_job_timestamps_accept_iso_strings() -> None:
    job = Job(id=JobId("job-1"), created_at="2025-01-02T03:04:05Z")
    assert job.created_at.utcoffset() == timedelta(0)
    assert job.created_at.hour == 3
