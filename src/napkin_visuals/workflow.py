"""Submit-and-poll workflow for asynchronous visual generation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from napkin_visuals.errors import GenerationFailedError, GenerationTimeoutError
from napkin_visuals.http.client import Sleep
from napkin_visuals.models import (
    GenerationRequest,
    GenerationStatus,
    GenerationSubmission,
    VisualStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_WAIT_SECONDS = 300.0

ProgressObserver = Callable[[GenerationStatus], None]
Clock = Callable[[], float]


class WorkflowState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class GenerationApi(Protocol):
    """Subset of `NapkinClient` the workflow borrows."""

    async def submit(self, request: GenerationRequest) -> GenerationSubmission: ...

    async def get_status(self, request_id: str) -> GenerationStatus: ...


@dataclass(frozen=True, slots=True)
class WaitOptions:
    """Per-call polling cadence and deadline."""

    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS

    @classmethod
    def from_milliseconds(cls, *, poll_interval_ms: int, max_wait_ms: int) -> WaitOptions:
        return cls(
            poll_interval_seconds=poll_interval_ms / 1000,
            max_wait_seconds=max_wait_ms / 1000,
        )


async def generate_and_wait(
    api: GenerationApi,
    request: GenerationRequest,
    *,
    options: WaitOptions | None = None,
    on_progress: ProgressObserver | None = None,
    sleep: Sleep | None = None,
    clock: Clock = time.monotonic,
) -> GenerationStatus:
    """Submit `request` and poll until completed, failed, or timed out.

    Returns the completed snapshot. Raises `GenerationFailedError` or
    `GenerationTimeoutError`; transport errors from the client propagate.
    """

    submission = await api.submit(request)
    started_at = clock()
    logger.debug("Request %s: %s", submission.id, WorkflowState.SUBMITTED.value)
    return await wait_for_completion(
        api,
        submission.id,
        options=options,
        on_progress=on_progress,
        sleep=sleep,
        clock=clock,
        started_at=started_at,
    )


async def wait_for_completion(
    api: GenerationApi,
    request_id: str,
    *,
    options: WaitOptions | None = None,
    on_progress: ProgressObserver | None = None,
    sleep: Sleep | None = None,
    clock: Clock = time.monotonic,
    started_at: float | None = None,
) -> GenerationStatus:
    """Poll an already submitted request until it reaches a terminal state.

    The deadline is checked once per iteration against the monotonic clock;
    an in-flight status call is never interrupted.
    """

    options = options or WaitOptions()
    sleep = sleep or asyncio.sleep
    start = clock() if started_at is None else started_at

    while True:
        status = await api.get_status(request_id)

        if status.status is VisualStatus.COMPLETED:
            logger.info(
                "Request %s: %s with %d file(s)",
                request_id,
                WorkflowState.COMPLETED.value,
                len(status.generated_files),
            )
            return status

        if status.status is VisualStatus.FAILED:
            logger.info("Request %s: %s (%s)", request_id, WorkflowState.FAILED.value, status.error)
            raise GenerationFailedError(
                message=f"Visual generation failed: {status.error or 'Unknown error'}",
                status=status,
            )

        logger.debug(
            "Request %s: %s (status=%s)",
            request_id,
            WorkflowState.POLLING.value,
            status.status.value,
        )
        if on_progress is not None:
            on_progress(status)

        if clock() - start > options.max_wait_seconds:
            logger.info("Request %s: %s", request_id, WorkflowState.TIMED_OUT.value)
            raise GenerationTimeoutError(
                message=(
                    f"Visual generation timed out after {options.max_wait_seconds:g}s "
                    f"(last status: {status.status.value})"
                ),
                status=status,
                max_wait_seconds=options.max_wait_seconds,
            )

        await sleep(options.poll_interval_seconds)
