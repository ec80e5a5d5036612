"""Generic HTTP provider integrations backed by httpx."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any

import httpx

from switchboard.domain import ProviderRequest

from .base import CancellableJobBackend, ProviderInvoker
from .exceptions import ProviderInvocationError
from .models import DownloadResult, PollResult, SubmitResult

BodyBuilder = Callable[[ProviderRequest], Mapping[str, Any]]

_JOB_ID_KEYS = ("id", "job_id", "jobId", "inference_id", "document_id")
_PERCENT_KEYS = ("percentage", "progress", "percent")
_MESSAGE_KEYS = ("error_message", "error", "message", "detail")
_URL_KEYS = ("urls", "result_urls", "output")


def default_body(request: ProviderRequest) -> Mapping[str, Any]:
    return {"input": request.payload, "options": request.provider_options or {}}


def vendor_message(response: httpx.Response) -> str | None:
    """Extract a vendor-reported error message from an error response."""

    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None
    if isinstance(data, Mapping):
        for key in _MESSAGE_KEYS:
            value = data.get(key)
            if isinstance(value, Mapping):
                value = value.get("message")
            if value:
                return str(value)
    return None


def _raise_for_status(response: httpx.Response, *, provider_id: str | None, action: str) -> None:
    if response.is_success:
        return
    raise ProviderInvocationError(
        f"{action} failed",
        provider_id=provider_id,
        status_code=response.status_code,
        vendor_message=vendor_message(response),
    )


def _json(response: httpx.Response, *, provider_id: str | None, action: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        msg = f"{action} returned a malformed JSON payload"
        raise ProviderInvocationError(msg, provider_id=provider_id) from exc


class _HttpClientMixin:
    _base_url: str
    _headers: Mapping[str, str]
    _timeout: float
    _client: httpx.AsyncClient | None

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=dict(self._headers),
            timeout=self._timeout,
        ) as client:
            yield client


class HttpProviderInvoker(_HttpClientMixin, ProviderInvoker):
    """POSTs a request payload to a provider endpoint and returns the JSON reply."""

    def __init__(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 60.0,
        body_builder: BodyBuilder = default_body,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = ""
        self._endpoint = endpoint
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._body_builder = body_builder
        self._client = client

    async def invoke(self, request: ProviderRequest) -> Any:
        try:
            async with self._client_scope() as client:
                response = await client.post(self._endpoint, json=dict(self._body_builder(request)))
        except httpx.HTTPError as exc:
            msg = f"{type(exc).__name__}: {exc}"
            raise ProviderInvocationError(msg, provider_id=request.provider_id) from exc
        _raise_for_status(response, provider_id=request.provider_id, action="Provider call")
        return _json(response, provider_id=request.provider_id, action="Provider call")


class HttpJobBackend(_HttpClientMixin, CancellableJobBackend):
    """Submit / status / download over a conventional REST job API.

    Paths for status, download and cancel are formatted with ``job_id``.
    A download path of ``None`` means result URLs are read from the final
    status document instead of a separate artifact endpoint.
    """

    def __init__(
        self,
        base_url: str,
        *,
        submit_path: str = "/jobs",
        status_path: str = "/jobs/{job_id}",
        download_path: str | None = "/jobs/{job_id}/result",
        cancel_path: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        provider_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._submit_path = submit_path
        self._status_path = status_path
        self._download_path = download_path
        self._cancel_path = cancel_path
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._provider_id = provider_id
        self._client = client

    async def submit(self, payload: Any) -> SubmitResult:
        data = await self._request_json("POST", self._submit_path, action="Job submission", json=payload)
        job_id = _first(data, _JOB_ID_KEYS)
        if not job_id:
            raise ProviderInvocationError(
                "Job submission did not return an id", provider_id=self._provider_id
            )
        return SubmitResult(job_id=str(job_id), metadata={"status": data.get("status")})

    async def poll(self, job_id: str) -> PollResult:
        data = await self._request_json(
            "GET", self._status_path.format(job_id=job_id), action="Status request"
        )
        status = str(data.get("status") or "unknown")
        percentage = _first(data, _PERCENT_KEYS)
        message = _first(data, _MESSAGE_KEYS)
        if isinstance(message, Mapping):
            message = message.get("message")
        return PollResult(
            status=status,
            percentage=_clamp_percentage(percentage),
            message=str(message) if message else None,
            metadata=dict(data),
        )

    async def download(self, job_id: str) -> DownloadResult:
        if self._download_path is None:
            data = await self._request_json(
                "GET", self._status_path.format(job_id=job_id), action="Result lookup"
            )
            urls = _extract_urls(data)
            if not urls:
                raise ProviderInvocationError(
                    f"Job {job_id} finished without result URLs", provider_id=self._provider_id
                )
            return DownloadResult(urls=urls, content_type="text/uri-list")

        response = await self._send("GET", self._download_path.format(job_id=job_id), action="Download")
        return DownloadResult(
            content=response.content,
            content_type=response.headers.get("content-type", "application/octet-stream"),
            metadata={"job_id": job_id},
        )

    async def cancel(self, job_id: str) -> None:
        if self._cancel_path is None:
            raise ProviderInvocationError(
                "Backend has no cancel endpoint", provider_id=self._provider_id
            )
        await self._send("POST", self._cancel_path.format(job_id=job_id), action="Cancel")

    async def _send(self, method: str, path: str, *, action: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client_scope() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"{action} transport error: {type(exc).__name__}: {exc}"
            raise ProviderInvocationError(msg, provider_id=self._provider_id) from exc
        _raise_for_status(response, provider_id=self._provider_id, action=action)
        return response

    async def _request_json(self, method: str, path: str, *, action: str, **kwargs: Any) -> Mapping[str, Any]:
        response = await self._send(method, path, action=action, **kwargs)
        data = _json(response, provider_id=self._provider_id, action=action)
        if not isinstance(data, Mapping):
            msg = f"{action} returned {type(data).__name__}, expected an object"
            raise ProviderInvocationError(msg, provider_id=self._provider_id)
        return data


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _clamp_percentage(value: Any) -> int | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return max(0, min(100, round(number)))


def _extract_urls(data: Mapping[str, Any]) -> tuple[str, ...]:
    for key in _URL_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.startswith("http"):
            return (value,)
        if isinstance(value, list):
            urls = []
            for item in value:
                if isinstance(item, str):
                    urls.append(item)
                elif isinstance(item, Mapping) and isinstance(item.get("url"), str):
                    urls.append(item["url"])
            if urls:
                return tuple(urls)
    return ()


__all__ = ["HttpJobBackend", "HttpProviderInvoker", "default_body", "vendor_message"]
