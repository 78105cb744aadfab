"""Storage backend contract shared by every destination kind."""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Protocol

import httpx

from napkin_visuals.errors import StorageError

StorageContent = bytes | str


@dataclass(frozen=True, slots=True)
class StorageResult:
    """Where stored bytes ended up."""

    location: str
    public_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class StorageBackend(Protocol):
    """Protocol implemented by storage backends."""

    kind: str

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        """Persist `content` under `filename` and return its location."""

    def is_configured(self) -> bool:
        """Readiness check without I/O."""


def decode_content(content: StorageContent) -> bytes:
    """Return raw bytes; text content is treated as base64."""

    if isinstance(content, bytes | bytearray):
        return bytes(content)
    try:
        return base64.b64decode(content, validate=True)
    except binascii.Error as exc:
        raise ValueError("String content must be base64-encoded.") from exc


def require_bare_filename(filename: str) -> str:
    if not filename or PurePath(filename).name != filename or filename in {".", ".."}:
        raise ValueError(f"Filename must not contain directory components: {filename!r}")
    return filename


def resolve_credential(
    explicit: str | None,
    env_var: str,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Explicit value wins; otherwise fall back to `env_var`."""

    if explicit:
        return explicit
    value = (os.environ if environ is None else environ).get(env_var, "").strip()
    return value or None


def string_metadata(metadata: Mapping[str, Any] | None) -> dict[str, str]:
    return {key: str(value) for key, value in (metadata or {}).items() if value is not None}


def checked_json(response: httpx.Response, *, backend: str, action: str) -> dict[str, Any]:
    """Decode a backend HTTP response, raising `StorageError` on failure."""

    if not response.is_success:
        raise StorageError(
            message=f"{action} failed: {response.status_code} {response.text}",
            backend=backend,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise StorageError(message=f"{action} returned a non-JSON body", backend=backend) from exc
    if not isinstance(payload, dict):
        raise StorageError(message=f"{action} returned an unexpected body", backend=backend)
    return payload
