"""Filesystem storage backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from napkin_visuals.errors import StorageError
from napkin_visuals.storage.base import (
    StorageContent,
    StorageResult,
    decode_content,
    require_bare_filename,
)
from napkin_visuals.storage.destinations import LocalDestination

logger = logging.getLogger(__name__)


class LocalStorage:
    """Writes files to `{directory}/{filename}`, creating the directory tree."""

    kind = LocalDestination.kind

    def __init__(self, destination: LocalDestination) -> None:
        if not destination.directory.strip():
            raise ValueError("Local storage directory must not be empty.")
        self._directory = Path(destination.directory).expanduser().resolve()

    @property
    def directory(self) -> Path:
        return self._directory

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        require_bare_filename(filename)
        data = decode_content(content)
        path = await asyncio.to_thread(self._write, filename, data)
        logger.info("Stored %d bytes at %s", len(data), path)
        return StorageResult(
            location=str(path),
            metadata={
                "directory": str(self._directory),
                "filename": filename,
                "size": len(data),
            },
        )

    def is_configured(self) -> bool:
        return bool(str(self._directory))

    def _write(self, filename: str, data: bytes) -> Path:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to create storage directory {str(self._directory)!r}: {exc}",
                backend=self.kind,
            ) from exc

        path = self._directory / filename
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to write {str(path)!r}: {exc}",
                backend=self.kind,
            ) from exc
        return path
