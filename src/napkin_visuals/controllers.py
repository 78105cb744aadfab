"""Controllers for visual generation CLI commands."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from napkin_visuals.config import Settings
from napkin_visuals.http.client import NapkinClient
from napkin_visuals.models import GenerationStatus
from napkin_visuals.tools import VisualTools, list_styles

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings], NapkinClient]


def build_client(settings: Settings) -> NapkinClient:
    return NapkinClient(
        settings.api_key,
        base_url=settings.base_url,
        timeout_seconds=settings.request_timeout_seconds,
        retry_policy=settings.retry_policy(),
    )


@dataclass(slots=True)
class GenerateCommand:
    """CLI inputs for generate, wait and save commands."""

    config_path: Path | None
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class StatusCommand:
    """CLI inputs for status command."""

    config_path: Path | None
    request_id: str


@dataclass(slots=True)
class DownloadCommand:
    """CLI inputs for download command."""

    config_path: Path | None
    request_id: str
    file_id: str
    output: Path | None = None


@dataclass(slots=True)
class SaveCommand:
    """CLI inputs for generate-and-save command."""

    config_path: Path | None
    arguments: dict[str, Any] = field(default_factory=dict)
    filename: str | None = None


@dataclass(slots=True)
class ToolCallCommand:
    """CLI inputs for a raw tool call with JSON arguments."""

    config_path: Path | None
    name: str
    arguments_json: str = "{}"


class VisualCliController:
    """Coordinates visual command execution; every method returns output lines."""

    def __init__(self, client_factory: ClientFactory = build_client) -> None:
        self._client_factory = client_factory

    def generate(self, command: GenerateCommand) -> list[str]:
        return self._run(command.config_path, lambda tools: tools.generate(command.arguments))

    def status(self, command: StatusCommand) -> list[str]:
        return self._run(command.config_path, lambda tools: tools.check_status(command.request_id))

    def download(self, command: DownloadCommand) -> list[str]:
        result = self._call(
            command.config_path,
            lambda tools: tools.download_visual(command.request_id, command.file_id),
        )
        if command.output is None:
            return _json_lines(result)
        command.output.parent.mkdir(parents=True, exist_ok=True)
        command.output.write_bytes(base64.b64decode(result["content_base64"]))
        return [f"Saved {result['size_bytes']} bytes to {command.output}"]

    def wait(self, command: GenerateCommand) -> list[str]:
        return self._run(
            command.config_path,
            lambda tools: tools.generate_and_wait(command.arguments),
        )

    def save(self, command: SaveCommand) -> list[str]:
        return self._run(
            command.config_path,
            lambda tools: tools.generate_and_save(command.arguments, filename=command.filename),
        )

    def styles(self) -> list[str]:
        return _json_lines(list_styles())

    def verify_key(self, config_path: Path | None) -> tuple[bool, list[str]]:
        result = self._call(config_path, _verify)
        return bool(result["valid"]), _json_lines(result)

    def call(self, command: ToolCallCommand) -> list[str]:
        try:
            arguments = json.loads(command.arguments_json)
        except json.JSONDecodeError as error:
            raise ValueError(f"Tool arguments must be valid JSON: {error}") from error
        if not isinstance(arguments, dict):
            raise ValueError("Tool arguments must be a JSON object.")
        return self._run(
            command.config_path,
            lambda tools: tools.call_tool(command.name, arguments),
        )

    def _run(
        self,
        config_path: Path | None,
        operation: Callable[[VisualTools], Awaitable[dict[str, Any]]],
    ) -> list[str]:
        return _json_lines(self._call(config_path, operation))

    def _call(
        self,
        config_path: Path | None,
        operation: Callable[[VisualTools], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        settings = Settings.from_env(config_path=config_path)
        client = self._client_factory(settings)
        tools = VisualTools.from_settings(settings, client=client, on_progress=_log_progress)

        async def _invoke() -> dict[str, Any]:
            async with client:
                return await operation(tools)

        return asyncio.run(_invoke())


async def _verify(tools: VisualTools) -> dict[str, Any]:
    check = await tools.client.verify_api_key()
    return check.to_dict()


def _log_progress(status: GenerationStatus) -> None:
    logger.info("Request %s is %s", status.id, status.status.value)


def _json_lines(payload: dict[str, Any]) -> list[str]:
    return json.dumps(payload, indent=2, ensure_ascii=False).splitlines()
