"""Error taxonomy for transport, generation and storage failures."""

from __future__ import annotations

from dataclasses import dataclass

from napkin_visuals.models import GenerationStatus
from napkin_visuals.validation import FieldError


@dataclass(slots=True)
class NapkinError(Exception):
    """Base error with a human-readable message."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ApiError(NapkinError):
    """Non-2xx response, malformed body, or connection failure.

    `status_code` is None when the HTTP exchange itself succeeded but the body
    did not match the expected shape, or when no response was received.
    """

    status_code: int | None = None
    body: str | None = None


@dataclass(slots=True)
class RequestValidationError(NapkinError):
    """Generation request rejected before any network call."""

    errors: tuple[FieldError, ...] = ()


@dataclass(slots=True)
class GenerationFailedError(NapkinError):
    """The API reported a failed generation."""

    status: GenerationStatus | None = None


@dataclass(slots=True)
class GenerationTimeoutError(NapkinError):
    """No terminal status was observed within the configured bound."""

    status: GenerationStatus | None = None
    max_wait_seconds: float = 0.0


@dataclass(slots=True)
class NoFilesGeneratedError(NapkinError):
    """A completed generation carried no files."""

    status: GenerationStatus | None = None


@dataclass(slots=True)
class StorageError(NapkinError):
    """Upload or authentication failure of a storage backend."""

    backend: str = "unknown"

    def __str__(self) -> str:
        return f"[{self.backend}] {self.message}"


@dataclass(slots=True)
class StorageNotConfiguredError(NapkinError):
    """No usable storage destination is configured."""
