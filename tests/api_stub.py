"""Scripted Napkin API and timing doubles shared by tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

API_URL = "https://api.test"
FILE_URL = f"{API_URL}/files"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingSleep:
    """Async sleep stand-in that returns immediately and records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Monotonic clock advanced by a `RecordingSleep`-style sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds


def status_payload(
    request_id: str = "req-1",
    status: str = "completed",
    *,
    files: list[dict[str, Any]] | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": request_id, "status": status}
    if files is not None:
        payload["generated_files"] = files
    if error is not None:
        payload["error"] = error
    return payload


def file_payload(file_id: str, *, color_mode: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "url": f"{FILE_URL}/{file_id}",
        "visual_id": f"visual-{file_id}",
    }
    if color_mode is not None:
        payload["color_mode"] = color_mode
    return payload


class ApiStub:
    """Scripted Napkin API: one submission, a queue of statuses, file bodies."""

    def __init__(
        self,
        statuses: list[dict[str, Any]] | None = None,
        *,
        request_id: str = "req-1",
        files: dict[str, bytes] | None = None,
    ) -> None:
        self.request_id = request_id
        self.statuses = list(statuses or [])
        self.files = dict(files or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/v1/visual":
            return httpx.Response(201, json={"id": self.request_id, "status": "pending"})
        if request.method == "GET" and path.endswith("/status"):
            if len(self.statuses) > 1:
                return httpx.Response(200, json=self.statuses.pop(0))
            return httpx.Response(200, json=self.statuses[0])
        if request.method == "GET" and path.startswith("/files/"):
            body = self.files.get(path.rsplit("/", 1)[-1])
            if body is None:
                return httpx.Response(404, text="missing")
            return httpx.Response(200, content=body)
        return httpx.Response(500, text=f"unexpected {request.method} {path}")

    def count(self, method: str, suffix: str = "") -> int:
        return sum(
            1
            for request in self.requests
            if request.method == method and request.url.path.endswith(suffix)
        )
