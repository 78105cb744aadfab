"""Boundary validation for generation requests and API responses.

Every external entry point (tool arguments, configuration, API response
bodies) is checked here exactly once and converted to typed values. The
functions never raise on bad input; they return a `ValidationResult` whose
`errors` lists each offending field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from napkin_visuals.models import (
    MAX_DIMENSION,
    MAX_VISUALS,
    MIN_DIMENSION,
    MIN_VISUALS,
    ColorMode,
    GeneratedFile,
    GenerationRequest,
    GenerationStatus,
    GenerationSubmission,
    Orientation,
    OutputFormat,
    SortStrategy,
    TextExtractionMode,
    VisualStatus,
)

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "format": OutputFormat,
    "color_mode": ColorMode,
    "orientation": Orientation,
    "text_extraction_mode": TextExtractionMode,
    "sort_strategy": SortStrategy,
}
_TEXT_FIELDS = ("context", "language", "style_id", "visual_id", "visual_query")
_LIST_FIELDS = ("visual_ids", "visual_queries")
_INT_FIELDS = ("number_of_visuals", "width", "height")
REQUEST_FIELDS = frozenset(
    {
        "content",
        "transparent_background",
        *_ENUM_FIELDS,
        *_TEXT_FIELDS,
        *_LIST_FIELDS,
        *_INT_FIELDS,
    },
)


@dataclass(frozen=True, slots=True)
class FieldError:
    """One field-level validation failure."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a boundary check: a value or a list of field errors."""

    value: Any = None
    errors: tuple[FieldError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def describe(self) -> str:
        return "; ".join(str(error) for error in self.errors)


def validate_request(request: GenerationRequest) -> ValidationResult:
    """Check selector exclusivity and numeric ranges of a request."""

    errors: list[FieldError] = []
    if not request.content.strip():
        errors.append(FieldError("content", "must not be empty"))

    count = request.effective_number_of_visuals
    if not MIN_VISUALS <= count <= MAX_VISUALS:
        errors.append(
            FieldError("number_of_visuals", f"must be between {MIN_VISUALS} and {MAX_VISUALS}"),
        )

    for name in ("width", "height"):
        value = getattr(request, name)
        if value is not None and not MIN_DIMENSION <= value <= MAX_DIMENSION:
            errors.append(
                FieldError(name, f"must be between {MIN_DIMENSION} and {MAX_DIMENSION}"),
            )

    selectors = [
        name
        for name in ("visual_id", "visual_ids", "visual_query", "visual_queries")
        if getattr(request, name) is not None
    ]
    if len(selectors) > 1:
        errors.append(
            FieldError(selectors[1], f"cannot be combined with {selectors[0]}"),
        )

    for name in ("visual_id", "visual_query"):
        if getattr(request, name) is not None and count > 1:
            errors.append(
                FieldError(name, "cannot be used when number_of_visuals is greater than 1"),
            )

    for name in _LIST_FIELDS:
        values = getattr(request, name)
        if values is not None and len(values) != count:
            errors.append(
                FieldError(
                    name,
                    f"length {len(values)} must equal number_of_visuals ({count})",
                ),
            )

    return ValidationResult(value=request if not errors else None, errors=tuple(errors))


def request_from_mapping(
    data: Mapping[str, Any],
    defaults: Mapping[str, Any] | None = None,
) -> ValidationResult:
    """Build a request from loosely typed tool arguments merged over defaults."""

    merged: dict[str, Any] = {
        key: value for key, value in (defaults or {}).items() if value is not None
    }
    merged.update({key: value for key, value in data.items() if value is not None})
    merged.setdefault("format", OutputFormat.SVG.value)

    errors: list[FieldError] = []
    unknown = sorted(set(merged) - REQUEST_FIELDS)
    errors.extend(FieldError(name, "unknown field") for name in unknown)

    kwargs: dict[str, Any] = {}
    content = merged.get("content")
    if not isinstance(content, str) or not content:
        errors.append(FieldError("content", "must be a non-empty string"))
    else:
        kwargs["content"] = content

    for name, enum_type in _ENUM_FIELDS.items():
        if name in merged:
            coerced = _coerce_enum(name, merged[name], enum_type, errors)
            if coerced is not None:
                kwargs[name] = coerced

    for name in _TEXT_FIELDS:
        if name in merged:
            if isinstance(merged[name], str):
                kwargs[name] = merged[name]
            else:
                errors.append(FieldError(name, "must be a string"))

    for name in _LIST_FIELDS:
        if name in merged:
            value = merged[name]
            if isinstance(value, list | tuple) and all(isinstance(item, str) for item in value):
                kwargs[name] = tuple(value)
            else:
                errors.append(FieldError(name, "must be a list of strings"))

    for name in _INT_FIELDS:
        if name in merged:
            value = merged[name]
            if isinstance(value, int) and not isinstance(value, bool):
                kwargs[name] = value
            else:
                errors.append(FieldError(name, "must be an integer"))

    if "transparent_background" in merged:
        if isinstance(merged["transparent_background"], bool):
            kwargs["transparent_background"] = merged["transparent_background"]
        else:
            errors.append(FieldError("transparent_background", "must be a boolean"))

    if errors:
        return ValidationResult(errors=tuple(errors))
    return validate_request(GenerationRequest(**kwargs))


def parse_submission(payload: object) -> ValidationResult:
    """Validate the body of `POST /v1/visual`."""

    errors: list[FieldError] = []
    if not isinstance(payload, Mapping):
        return ValidationResult(errors=(FieldError("$", "expected a JSON object"),))

    request_id = _required_str(payload, "id", errors)
    status = _coerce_enum("status", payload.get("status"), VisualStatus, errors)
    warning = _optional_str(payload, "warning", errors)
    if errors:
        return ValidationResult(errors=tuple(errors))
    return ValidationResult(
        value=GenerationSubmission(id=request_id, status=status, warning=warning),
    )


def parse_status(payload: object) -> ValidationResult:
    """Validate the body of `GET /v1/visual/{id}/status`."""

    errors: list[FieldError] = []
    if not isinstance(payload, Mapping):
        return ValidationResult(errors=(FieldError("$", "expected a JSON object"),))

    request_id = _required_str(payload, "id", errors)
    status = _coerce_enum("status", payload.get("status"), VisualStatus, errors)
    error_message = _optional_str(payload, "error", errors)

    request_echo = payload.get("request")
    if request_echo is not None and not isinstance(request_echo, Mapping):
        errors.append(FieldError("request", "expected an object"))
        request_echo = None

    files: list[GeneratedFile] = []
    raw_files = payload.get("generated_files")
    if raw_files is not None:
        if not isinstance(raw_files, list):
            errors.append(FieldError("generated_files", "expected an array"))
        else:
            for index, raw in enumerate(raw_files):
                generated = _parse_generated_file(raw, f"generated_files[{index}]", errors)
                if generated is not None:
                    files.append(generated)

    if errors:
        return ValidationResult(errors=tuple(errors))
    return ValidationResult(
        value=GenerationStatus(
            id=request_id,
            status=status,
            generated_files=tuple(files),
            error=error_message,
            request=dict(request_echo) if request_echo is not None else None,
        ),
    )


def _parse_generated_file(
    raw: object,
    path: str,
    errors: list[FieldError],
) -> GeneratedFile | None:
    if not isinstance(raw, Mapping):
        errors.append(FieldError(path, "expected an object"))
        return None

    local: list[FieldError] = []
    url = _required_str(raw, "url", local, prefix=path)
    if url is not None and not _is_absolute_url(url):
        local.append(FieldError(f"{path}.url", "must be an absolute URL"))
    visual_id = _required_str(raw, "visual_id", local, prefix=path)
    visual_query = _optional_str(raw, "visual_query", local, prefix=path)
    style_id = _optional_str(raw, "style_id", local, prefix=path)
    width = _optional_number(raw, "width", local, prefix=path)
    height = _optional_number(raw, "height", local, prefix=path)
    color_mode = None
    if raw.get("color_mode") is not None:
        color_mode = _coerce_enum(f"{path}.color_mode", raw["color_mode"], ColorMode, local)
        if color_mode is ColorMode.BOTH:
            local.append(FieldError(f"{path}.color_mode", "must be light or dark"))

    if local:
        errors.extend(local)
        return None
    return GeneratedFile(
        url=url,
        visual_id=visual_id,
        visual_query=visual_query,
        style_id=style_id,
        width=width,
        height=height,
        color_mode=color_mode,
    )


def _coerce_enum(name: str, value: object, enum_type: type[Enum], errors: list[FieldError]):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        errors.append(FieldError(name, f"must be one of: {allowed}"))
        return None


def _required_str(
    data: Mapping[str, Any],
    key: str,
    errors: list[FieldError],
    *,
    prefix: str = "",
) -> str | None:
    value = data.get(key)
    if not isinstance(value, str):
        errors.append(FieldError(_field_path(prefix, key), "required string"))
        return None
    return value


def _optional_str(
    data: Mapping[str, Any],
    key: str,
    errors: list[FieldError],
    *,
    prefix: str = "",
) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        errors.append(FieldError(_field_path(prefix, key), "expected a string"))
        return None
    return value


def _optional_number(
    data: Mapping[str, Any],
    key: str,
    errors: list[FieldError],
    *,
    prefix: str = "",
) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        errors.append(FieldError(_field_path(prefix, key), "expected a number"))
        return None
    return value


def _field_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
