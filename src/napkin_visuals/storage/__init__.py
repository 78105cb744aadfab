"""Pluggable storage sinks for generated visuals.

`create_storage_backend` maps each destination kind to one backend through a
dispatch table; adding a destination without a builder fails loudly.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from napkin_visuals.storage.base import StorageBackend, StorageResult
from napkin_visuals.storage.destinations import (
    DESTINATION_TYPES,
    DiscordDestination,
    GoogleDriveDestination,
    LocalDestination,
    NotionDestination,
    S3Destination,
    SlackDestination,
    StorageDestination,
    TelegramDestination,
    destination_from_mapping,
)
from napkin_visuals.storage.discord import DiscordStorage
from napkin_visuals.storage.google_drive import GoogleDriveStorage
from napkin_visuals.storage.local import LocalStorage
from napkin_visuals.storage.notion import NotionStorage
from napkin_visuals.storage.s3 import S3Storage
from napkin_visuals.storage.slack import SlackStorage
from napkin_visuals.storage.telegram import TelegramStorage

BackendBuilder = Callable[[StorageDestination, Mapping[str, str] | None], StorageBackend]

_BUILDERS: dict[type, BackendBuilder] = {
    LocalDestination: lambda destination, _environ: LocalStorage(destination),
    S3Destination: lambda destination, _environ: S3Storage(destination),
    GoogleDriveDestination: lambda destination, _environ: GoogleDriveStorage(destination),
    SlackDestination: lambda destination, environ: SlackStorage(destination, environ=environ),
    NotionDestination: lambda destination, environ: NotionStorage(destination, environ=environ),
    TelegramDestination: lambda destination, environ: TelegramStorage(
        destination,
        environ=environ,
    ),
    DiscordDestination: lambda destination, _environ: DiscordStorage(destination),
}

STORAGE_TYPES = tuple(DESTINATION_TYPES)


def create_storage_backend(
    destination: StorageDestination,
    *,
    environ: Mapping[str, str] | None = None,
) -> StorageBackend:
    """Construct the backend for `destination`; credentials resolve once here."""

    builder = _BUILDERS.get(type(destination))
    if builder is None:
        raise TypeError(f"Unsupported storage destination: {type(destination).__name__}")
    return builder(destination, environ)


__all__ = [
    "STORAGE_TYPES",
    "DiscordDestination",
    "GoogleDriveDestination",
    "LocalDestination",
    "NotionDestination",
    "S3Destination",
    "SlackDestination",
    "StorageBackend",
    "StorageDestination",
    "StorageResult",
    "TelegramDestination",
    "create_storage_backend",
    "destination_from_mapping",
]
