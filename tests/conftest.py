"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from napkin_visuals.http.client import NapkinClient
from napkin_visuals.http.retry import RetryPolicy
from tests.api_stub import API_URL, Handler, RecordingSleep


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def make_client(recording_sleep: RecordingSleep) -> Callable[..., NapkinClient]:
    def _make(handler: Handler, **kwargs: Any) -> NapkinClient:
        kwargs.setdefault("retry_policy", RetryPolicy())
        return NapkinClient(
            "test-key",
            base_url=API_URL,
            transport=httpx.MockTransport(handler),
            sleep=recording_sleep,
            **kwargs,
        )

    return _make
