"""Async client for the Napkin AI visual generation API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from napkin_visuals.errors import ApiError, RequestValidationError
from napkin_visuals.http.retry import RetryPolicy
from napkin_visuals.models import GenerationRequest, GenerationStatus, GenerationSubmission
from napkin_visuals.validation import (
    ValidationResult,
    parse_status,
    parse_submission,
    validate_request,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.napkin.ai"
DEFAULT_TIMEOUT_SECONDS = 30.0
INVALID_API_KEY_MESSAGE = "Invalid or expired API key"
_VERIFY_PROBE_ID = "api-key-check"
_HTTP_NOT_FOUND = 404
_AUTH_FAILURE_CODES = frozenset({401, 403})

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class ApiKeyCheck:
    """Result of a lightweight credential probe."""

    valid: bool
    base_url: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"valid": self.valid, "base_url": self.base_url}
        if self.error is not None:
            data["error"] = self.error
        return data


class NapkinClient:
    """Authenticated wrapper around the generation API with retry on 429/5xx.

    The client holds only immutable configuration plus one pooled
    `httpx.AsyncClient`, so concurrent workflows may share an instance.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Napkin API key is required.")
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def submit(self, request: GenerationRequest) -> GenerationSubmission:
        """Submit a generation request and return its handle and initial status."""

        check = validate_request(request)
        if not check.ok:
            raise RequestValidationError(
                message=f"Invalid generation request: {check.describe()}",
                errors=check.errors,
            )
        response = await self._send(
            "POST",
            f"{self._base_url}/v1/visual",
            json=request.to_payload(),
        )
        submission: GenerationSubmission = _parse_body(response, parse_submission)
        logger.info(
            "Submitted visual request %s (format=%s status=%s)",
            submission.id,
            request.format.value,
            submission.status.value,
        )
        if submission.warning:
            logger.warning("API warning for request %s: %s", submission.id, submission.warning)
        return submission

    async def get_status(self, request_id: str) -> GenerationStatus:
        """Fetch a fresh status snapshot for a submitted request."""

        response = await self._send("GET", self._status_url(request_id))
        return _parse_body(response, parse_status)

    async def download_file(self, file_url: str) -> bytes:
        """Download a generated file from its fully-qualified URL."""

        parsed = urlparse(file_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Expected an absolute file URL, got {file_url!r}")
        response = await self._send("GET", file_url, action="Failed to download file")
        logger.debug("Downloaded %d bytes from %s", len(response.content), parsed.path)
        return response.content

    async def verify_api_key(self) -> ApiKeyCheck:
        """Probe the API once; never raises."""

        try:
            response = await self._client.get(self._status_url(_VERIFY_PROBE_ID))
        except httpx.HTTPError as exc:
            logger.warning("API key probe could not reach %s: %s", self._base_url, exc)
            return ApiKeyCheck(
                valid=False,
                base_url=self._base_url,
                error=f"Connection failed: {exc}",
            )

        if response.is_success or response.status_code == _HTTP_NOT_FOUND:
            return ApiKeyCheck(valid=True, base_url=self._base_url)
        if response.status_code in _AUTH_FAILURE_CODES:
            return ApiKeyCheck(
                valid=False,
                base_url=self._base_url,
                error=f"{INVALID_API_KEY_MESSAGE} ({response.status_code})",
            )
        return ApiKeyCheck(
            valid=False,
            base_url=self._base_url,
            error=f"Unexpected response: {response.status_code} {response.reason_phrase}",
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NapkinClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    def _status_url(self, request_id: str) -> str:
        return f"{self._base_url}/v1/visual/{quote(request_id, safe='')}/status"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        action: str = "API request failed",
    ) -> httpx.Response:
        retry_index = 0
        while True:
            try:
                response = await self._client.request(method, url, json=json)
            except httpx.TransportError as exc:
                raise ApiError(message=f"Connection failed: {exc}") from exc

            if response.is_success:
                return response

            error = ApiError(
                message=f"{action}: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                body=response.text,
            )
            if (
                not self._retry.is_retryable(response.status_code)
                or retry_index >= self._retry.max_retries
            ):
                raise error

            delay = self._retry.delay_for(retry_index)
            logger.warning(
                "%s %s returned %d, retrying in %.2fs (%d/%d)",
                method,
                urlparse(url).path,
                response.status_code,
                delay,
                retry_index + 1,
                self._retry.max_retries,
            )
            await self._sleep(delay)
            retry_index += 1


def _parse_body(response: httpx.Response, parser: Callable[[object], ValidationResult]) -> Any:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ApiError(
            message="Invalid API response: body is not valid JSON",
            body=response.text,
        ) from exc
    result = parser(payload)
    if not result.ok:
        raise ApiError(message=f"Invalid API response: {result.describe()}", body=response.text)
    return result.value
