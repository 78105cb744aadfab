from __future__ import annotations

import asyncio
import time

import allure
import httpx
import pytest

from napkin_visuals.errors import ApiError, GenerationFailedError, GenerationTimeoutError
from napkin_visuals.models import VisualStatus
from napkin_visuals.validation import request_from_mapping
from napkin_visuals.workflow import WaitOptions, generate_and_wait, wait_for_completion
from tests.api_stub import ApiStub, FakeClock, file_payload, status_payload

pytestmark = [
    allure.epic("Visual Generation"),
    allure.feature("Submit & Poll Workflow"),
]


def _request():
    return request_from_mapping({"content": "Org chart for the platform team"}).value


def test_polls_until_completed_and_reports_progress(make_client) -> None:
    stub = ApiStub(
        [
            status_payload(status="pending"),
            status_payload(status="processing"),
            status_payload(files=[file_payload("f1")]),
        ],
    )
    clock = FakeClock()
    observed: list[VisualStatus] = []

    async def scenario():
        async with make_client(stub) as client:
            return await generate_and_wait(
                client,
                _request(),
                options=WaitOptions(poll_interval_seconds=0.5, max_wait_seconds=30),
                on_progress=lambda snapshot: observed.append(snapshot.status),
                sleep=clock.sleep,
                clock=clock,
            )

    result = asyncio.run(scenario())

    assert result.status is VisualStatus.COMPLETED
    assert [item.file_id for item in result.generated_files] == ["f1"]
    assert observed == [VisualStatus.PENDING, VisualStatus.PROCESSING]
    assert clock.delays == [0.5, 0.5]
    assert stub.count("POST", "/v1/visual") == 1
    assert stub.count("GET", "/status") == 3


def test_immediate_completion_does_not_sleep(make_client) -> None:
    stub = ApiStub([status_payload(files=[])])
    clock = FakeClock()

    async def scenario():
        async with make_client(stub) as client:
            return await generate_and_wait(client, _request(), sleep=clock.sleep, clock=clock)

    result = asyncio.run(scenario())

    assert result.generated_files == ()
    assert clock.delays == []


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        ("content policy violation", "Visual generation failed: content policy violation"),
        (None, "Visual generation failed: Unknown error"),
    ],
)
def test_failed_status_raises(make_client, error, expected) -> None:
    stub = ApiStub(
        [
            status_payload(status="processing"),
            status_payload(status="failed", error=error),
        ],
    )
    clock = FakeClock()
    observed: list[VisualStatus] = []

    async def scenario():
        async with make_client(stub) as client:
            await generate_and_wait(
                client,
                _request(),
                on_progress=lambda snapshot: observed.append(snapshot.status),
                sleep=clock.sleep,
                clock=clock,
            )

    with pytest.raises(GenerationFailedError) as excinfo:
        asyncio.run(scenario())

    assert str(excinfo.value) == expected
    assert excinfo.value.status.status is VisualStatus.FAILED
    assert observed == [VisualStatus.PROCESSING]


def test_deadline_is_checked_after_each_non_terminal_snapshot(make_client) -> None:
    stub = ApiStub([status_payload(status="processing")])
    clock = FakeClock()

    async def scenario():
        async with make_client(stub) as client:
            await generate_and_wait(
                client,
                _request(),
                options=WaitOptions(poll_interval_seconds=1, max_wait_seconds=3),
                sleep=clock.sleep,
                clock=clock,
            )

    with pytest.raises(GenerationTimeoutError) as excinfo:
        asyncio.run(scenario())

    assert "timed out after 3s" in str(excinfo.value)
    assert "last status: processing" in str(excinfo.value)
    assert excinfo.value.max_wait_seconds == 3
    assert clock.delays == [1, 1, 1, 1]
    assert stub.count("GET", "/status") == 5


def test_times_out_with_real_clock(make_client) -> None:
    stub = ApiStub([status_payload(status="pending")])

    async def scenario():
        async with make_client(stub) as client:
            await generate_and_wait(
                client,
                _request(),
                options=WaitOptions.from_milliseconds(poll_interval_ms=10, max_wait_ms=50),
            )

    started = time.monotonic()
    with pytest.raises(GenerationTimeoutError):
        asyncio.run(scenario())

    assert time.monotonic() - started < 1.0
    assert stub.count("GET", "/status") >= 2


def test_status_errors_propagate_unchanged(make_client) -> None:
    stub = ApiStub([status_payload(status="pending")])

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/status"):
            return httpx.Response(404, text="unknown request")
        return stub(request)

    async def scenario():
        async with make_client(handler) as client:
            await generate_and_wait(client, _request(), sleep=FakeClock().sleep)

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.status_code == 404


def test_concurrent_waits_share_one_client(make_client) -> None:
    remaining = {"a": 2, "b": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        request_id = request.url.path.split("/")[3]
        if remaining[request_id] > 0:
            remaining[request_id] -= 1
            return httpx.Response(200, json=status_payload(request_id, "processing"))
        return httpx.Response(200, json=status_payload(request_id, files=[]))

    async def noop_sleep(_seconds: float) -> None:
        await asyncio.sleep(0)

    async def scenario():
        async with make_client(handler) as client:
            return await asyncio.gather(
                wait_for_completion(client, "a", sleep=noop_sleep),
                wait_for_completion(client, "b", sleep=noop_sleep),
            )

    first, second = asyncio.run(scenario())

    assert (first.id, second.id) == ("a", "b")
    assert first.status is second.status is VisualStatus.COMPLETED


def test_wait_options_from_milliseconds() -> None:
    options = WaitOptions.from_milliseconds(poll_interval_ms=2_000, max_wait_ms=300_000)

    assert options == WaitOptions(poll_interval_seconds=2.0, max_wait_seconds=300.0)
