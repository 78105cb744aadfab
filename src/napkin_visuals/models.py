"""Domain models for visual generation requests and status snapshots."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any
from urllib.parse import urlparse


class OutputFormat(str, Enum):
    """Output file formats supported by the generation API."""

    SVG = "svg"
    PNG = "png"
    PPT = "ppt"


class ColorMode(str, Enum):
    """Colour theme of the generated visual."""

    LIGHT = "light"
    DARK = "dark"
    BOTH = "both"


class Orientation(str, Enum):
    AUTO = "auto"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    SQUARE = "square"


class TextExtractionMode(str, Enum):
    AUTO = "auto"
    REWRITE = "rewrite"
    PRESERVE = "preserve"


class SortStrategy(str, Enum):
    RELEVANCE = "relevance"
    RANDOM = "random"


class VisualStatus(str, Enum):
    """Lifecycle states reported by the status endpoint."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {VisualStatus.COMPLETED, VisualStatus.FAILED}


MIN_VISUALS = 1
MAX_VISUALS = 4
MIN_DIMENSION = 100
MAX_DIMENSION = 10_000

MIME_TYPES: dict[OutputFormat, str] = {
    OutputFormat.SVG: "image/svg+xml",
    OutputFormat.PNG: "image/png",
    OutputFormat.PPT: "application/vnd.ms-powerpoint",
}


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Full parameter set describing the visual to produce.

    Construct through `napkin_visuals.validation.request_from_mapping` (or
    check with `validate_request`) to enforce selector and range invariants.
    """

    format: OutputFormat
    content: str
    context: str | None = None
    language: str | None = None
    style_id: str | None = None
    visual_id: str | None = None
    visual_ids: tuple[str, ...] | None = None
    visual_query: str | None = None
    visual_queries: tuple[str, ...] | None = None
    number_of_visuals: int | None = None
    transparent_background: bool | None = None
    color_mode: ColorMode | None = None
    width: int | None = None
    height: int | None = None
    orientation: Orientation | None = None
    text_extraction_mode: TextExtractionMode | None = None
    sort_strategy: SortStrategy | None = None

    @property
    def effective_number_of_visuals(self) -> int:
        return self.number_of_visuals if self.number_of_visuals is not None else MIN_VISUALS

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body expected by `POST /v1/visual`."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            payload[item.name] = value
        return payload


@dataclass(frozen=True, slots=True)
class GenerationSubmission:
    """Response of a submission; `id` is the handle used for later calls."""

    id: str
    status: VisualStatus
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "status": self.status.value}
        if self.warning is not None:
            data["warning"] = self.warning
        return data


@dataclass(frozen=True, slots=True)
class GeneratedFile:
    """One downloadable artifact of a completed generation."""

    url: str
    visual_id: str
    visual_query: str | None = None
    style_id: str | None = None
    width: float | None = None
    height: float | None = None
    color_mode: ColorMode | None = None

    @property
    def file_id(self) -> str:
        """Last path segment of the download URL."""

        path = urlparse(self.url).path.rstrip("/")
        return path.rsplit("/", 1)[-1] or self.url

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file_id": self.file_id,
            "url": self.url,
            "visual_id": self.visual_id,
        }
        optional = {
            "visual_query": self.visual_query,
            "style_id": self.style_id,
            "width": self.width,
            "height": self.height,
            "color_mode": self.color_mode.value if self.color_mode else None,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass(frozen=True, slots=True)
class GenerationStatus:
    """Point-in-time snapshot returned by the status endpoint."""

    id: str
    status: VisualStatus
    generated_files: tuple[GeneratedFile, ...] = ()
    error: str | None = None
    request: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def find_file(self, file_id: str) -> GeneratedFile | None:
        for generated in self.generated_files:
            if file_id in {generated.file_id, generated.url}:
                return generated
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "generated_files": [item.to_dict() for item in self.generated_files],
        }
        if self.error is not None:
            data["error"] = self.error
        return data
