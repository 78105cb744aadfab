"""Tool operations exposed to assistant clients.

Each operation takes JSON-shaped arguments, validates them once at this
boundary, and returns a JSON-serializable dict.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from napkin_visuals.config import Settings
from napkin_visuals.errors import (
    NapkinError,
    NoFilesGeneratedError,
    RequestValidationError,
    StorageNotConfiguredError,
)
from napkin_visuals.http.client import NapkinClient
from napkin_visuals.models import (
    MIME_TYPES,
    GeneratedFile,
    GenerationRequest,
    GenerationStatus,
)
from napkin_visuals.storage import StorageBackend, create_storage_backend
from napkin_visuals.storage.base import require_bare_filename
from napkin_visuals.validation import request_from_mapping
from napkin_visuals.workflow import ProgressObserver, WaitOptions, generate_and_wait

logger = logging.getLogger(__name__)

STYLES_URL = "https://api.napkin.ai/docs/styles/index.html"
_DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    title: str
    description: str


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        "generate_visual",
        "Generate Visual",
        "Submit a visual generation request. Returns a request ID; "
        "use check_status to poll for completion.",
    ),
    ToolSpec(
        "check_status",
        "Check Generation Status",
        "Check the status of a generation request. Lists generated files when completed.",
    ),
    ToolSpec(
        "download_visual",
        "Download Visual",
        "Download a generated file as base64. Use after check_status reports completed.",
    ),
    ToolSpec(
        "generate_and_wait",
        "Generate Visual and Wait",
        "Generate a visual and poll until it completes, fails, or times out.",
    ),
    ToolSpec(
        "generate_and_save",
        "Generate Visual and Save",
        "Generate a visual, wait for completion, and save every file to configured storage.",
    ),
    ToolSpec(
        "list_styles",
        "List Available Styles",
        "Get information about available visual styles.",
    ),
)


class VisualTools:
    """Implements the tool surface on top of a client and optional storage."""

    def __init__(
        self,
        client: NapkinClient,
        *,
        defaults: Mapping[str, Any] | None = None,
        wait_options: WaitOptions | None = None,
        storage: StorageBackend | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> None:
        self._client = client
        self._defaults = dict(defaults or {})
        self._wait_options = wait_options or WaitOptions()
        self._storage = storage
        self._on_progress = on_progress

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: NapkinClient | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> VisualTools:
        client = client or NapkinClient(
            settings.api_key,
            base_url=settings.base_url,
            timeout_seconds=settings.request_timeout_seconds,
            retry_policy=settings.retry_policy(),
        )
        storage = (
            create_storage_backend(settings.storage) if settings.storage is not None else None
        )
        return cls(
            client,
            defaults=settings.defaults.as_mapping(),
            wait_options=settings.wait_options(),
            storage=storage,
            on_progress=on_progress,
        )

    @property
    def client(self) -> NapkinClient:
        return self._client

    def build_request(self, arguments: Mapping[str, Any]) -> GenerationRequest:
        """Merge tool arguments over configured defaults and validate."""
        result = request_from_mapping(arguments, self._defaults)
        if not result.ok:
            raise RequestValidationError(
                message=f"Invalid generation request: {result.describe()}",
                errors=result.errors,
            )
        return result.value

    async def generate(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        submission = await self._client.submit(self.build_request(arguments))
        return submission.to_dict()

    async def check_status(self, request_id: str) -> dict[str, Any]:
        status = await self._client.get_status(request_id)
        return status.to_dict()

    async def download_visual(self, request_id: str, file_id: str) -> dict[str, Any]:
        status = await self._client.get_status(request_id)
        generated = status.find_file(file_id)
        if generated is None:
            raise NapkinError(
                message=f"File not found: {file_id!r} is not part of request {request_id!r}",
            )
        data = await self._client.download_file(generated.url)
        return {
            "content_base64": base64.b64encode(data).decode("ascii"),
            "size_bytes": len(data),
        }

    async def generate_and_wait(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        status = await self._wait(self.build_request(arguments))
        return status.to_dict()

    async def generate_and_save(
        self,
        arguments: Mapping[str, Any],
        filename: str | None = None,
    ) -> dict[str, Any]:
        """Generate, then store every file; any failure fails the whole call."""

        storage = self._storage
        if storage is None or not storage.is_configured():
            raise StorageNotConfiguredError(
                message="Storage not configured. Set storage configuration to use this tool.",
            )
        if filename is not None:
            require_bare_filename(filename)
        request = self.build_request(arguments)
        status = await self._wait(request)
        if not status.generated_files:
            raise NoFilesGeneratedError(message="No files generated", status=status)

        total = len(status.generated_files)
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._save_file(
                            storage, request, status, generated, index, total, filename,
                        ),
                    )
                    for index, generated in enumerate(status.generated_files)
                ]
        except ExceptionGroup as failure:
            # Remaining saves are cancelled; report the first error as-is.
            raise failure.exceptions[0] from None
        return {"request_id": status.id, "files": [task.result() for task in tasks]}

    def list_styles(self) -> dict[str, Any]:
        return list_styles()

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Dispatch a tool call by name with JSON arguments."""

        handlers: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "generate_visual": self.generate,
            "check_status": lambda args: self.check_status(_pop_required(args, "request_id")),
            "download_visual": lambda args: self.download_visual(
                _pop_required(args, "request_id"),
                _pop_required(args, "file_id"),
            ),
            "generate_and_wait": self.generate_and_wait,
            "generate_and_save": lambda args: self.generate_and_save(
                args,
                filename=args.pop("filename", None),
            ),
            "list_styles": self._list_styles_async,
        }
        handler = handlers.get(name)
        if handler is None:
            raise NapkinError(message=f"Unknown tool: {name!r}")
        logger.debug("Calling tool %s", name)
        return await handler(dict(arguments))

    async def _list_styles_async(self, _arguments: dict[str, Any]) -> dict[str, Any]:
        return self.list_styles()

    async def _wait(self, request: GenerationRequest) -> GenerationStatus:
        return await generate_and_wait(
            self._client,
            request,
            options=self._wait_options,
            on_progress=self._on_progress,
        )

    async def _save_file(
        self,
        storage: StorageBackend,
        request: GenerationRequest,
        status: GenerationStatus,
        generated: GeneratedFile,
        index: int,
        total: int,
        filename: str | None,
    ) -> dict[str, Any]:
        data = await self._client.download_file(generated.url)
        name = output_filename(
            base=filename or f"napkin-{status.id}",
            extension=request.format.value,
            index=index,
            total=total,
            color_mode=generated.color_mode.value if generated.color_mode else None,
        )
        result = await storage.store(
            data,
            name,
            mime_type=MIME_TYPES.get(request.format, _DEFAULT_MIME_TYPE),
            metadata={
                "request_id": status.id,
                "file_id": generated.file_id,
                "visual_id": generated.visual_id,
            },
        )
        logger.info("Saved %s (%d bytes) to %s", name, len(data), result.location)
        saved: dict[str, Any] = {
            "file_id": generated.file_id,
            "storage_location": result.location,
        }
        if result.public_url:
            saved["public_url"] = result.public_url
        return saved


def list_styles() -> dict[str, Any]:
    """Pointer to the style catalogue; needs no credentials."""

    return {
        "message": (
            "Napkin AI offers various visual styles. Visit the styles documentation "
            "for the complete list and style IDs."
        ),
        "styles_url": STYLES_URL,
    }


def output_filename(
    *,
    base: str,
    extension: str,
    index: int,
    total: int,
    color_mode: str | None,
) -> str:
    suffix = f"-{index + 1}" if total > 1 else ""
    colour_suffix = f"-{color_mode}" if color_mode else ""
    return f"{base}{suffix}{colour_suffix}.{extension}"


def _pop_required(arguments: dict[str, Any], key: str) -> str:
    value = arguments.pop(key, None)
    if not isinstance(value, str) or not value:
        raise NapkinError(message=f"Missing required argument: {key}")
    return value
