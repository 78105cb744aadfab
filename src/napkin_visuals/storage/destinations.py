"""Storage destination configuration: a closed tagged union."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar
from urllib.parse import urlparse

from napkin_visuals.validation import FieldError, ValidationResult


@dataclass(frozen=True, slots=True)
class LocalDestination:
    kind: ClassVar[str] = "local"

    directory: str


@dataclass(frozen=True, slots=True)
class S3Destination:
    kind: ClassVar[str] = "s3"

    bucket: str
    region: str
    prefix: str | None = None
    endpoint: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    force_path_style: bool = False


@dataclass(frozen=True, slots=True)
class GoogleDriveDestination:
    kind: ClassVar[str] = "google-drive"

    folder_id: str
    credentials_path: str | None = None
    credentials: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class SlackDestination:
    kind: ClassVar[str] = "slack"

    channel_id: str
    token: str | None = None


@dataclass(frozen=True, slots=True)
class NotionDestination:
    kind: ClassVar[str] = "notion"

    page_id: str | None = None
    token: str | None = None
    database_id: str | None = None


@dataclass(frozen=True, slots=True)
class TelegramDestination:
    kind: ClassVar[str] = "telegram"

    chat_id: str
    bot_token: str | None = None


@dataclass(frozen=True, slots=True)
class DiscordDestination:
    kind: ClassVar[str] = "discord"

    webhook_url: str
    username: str | None = None


StorageDestination = (
    LocalDestination
    | S3Destination
    | GoogleDriveDestination
    | SlackDestination
    | NotionDestination
    | TelegramDestination
    | DiscordDestination
)

DESTINATION_TYPES: dict[str, type] = {
    destination.kind: destination
    for destination in (
        LocalDestination,
        S3Destination,
        GoogleDriveDestination,
        SlackDestination,
        NotionDestination,
        TelegramDestination,
        DiscordDestination,
    )
}

_REQUIRED: dict[str, tuple[str, ...]] = {
    "local": ("directory",),
    "s3": ("bucket", "region"),
    "google-drive": ("folder_id",),
    "slack": ("channel_id",),
    "notion": (),
    "telegram": ("chat_id",),
    "discord": ("webhook_url",),
}
# At least one of these must be a non-empty string.
_ONE_OF: dict[str, tuple[str, ...]] = {
    "notion": ("page_id", "database_id"),
}
_URL_FIELDS = ("endpoint", "webhook_url")


def destination_from_mapping(data: Mapping[str, Any]) -> ValidationResult:
    """Validate a JSON `storage` object keyed by `type`."""

    kind = data.get("type")
    destination_type = DESTINATION_TYPES.get(kind) if isinstance(kind, str) else None
    if destination_type is None:
        allowed = ", ".join(DESTINATION_TYPES)
        return ValidationResult(
            errors=(FieldError("storage.type", f"must be one of: {allowed}"),),
        )

    errors: list[FieldError] = []
    allowed_fields = set(destination_type.__dataclass_fields__) - {"kind"}
    kwargs = {key: value for key, value in data.items() if key != "type"}
    errors.extend(
        FieldError(f"storage.{name}", "unknown field")
        for name in sorted(set(kwargs) - allowed_fields)
    )

    for name in _REQUIRED[kind]:
        value = kwargs.get(name)
        if not isinstance(value, str) or not value.strip():
            errors.append(FieldError(f"storage.{name}", "required non-empty string"))

    alternatives = _ONE_OF.get(kind, ())
    if alternatives and not any(
        isinstance(kwargs.get(name), str) and kwargs[name].strip() for name in alternatives
    ):
        listed = ", ".join(alternatives)
        errors.append(FieldError(f"storage.{alternatives[0]}", f"one of {listed} is required"))

    for name, value in kwargs.items():
        if name not in allowed_fields or name in _REQUIRED[kind] or name == "credentials":
            continue
        if value is None:
            continue
        expected = bool if name == "force_path_style" else str
        if not isinstance(value, expected):
            errors.append(FieldError(f"storage.{name}", f"expected {expected.__name__}"))

    for name in _URL_FIELDS:
        value = kwargs.get(name)
        if value is not None and not _is_http_url(value):
            errors.append(FieldError(f"storage.{name}", "must be an absolute http(s) URL"))

    credentials = kwargs.get("credentials")
    if credentials is not None:
        if not isinstance(credentials, Mapping) or not all(
            isinstance(credentials.get(key), str) for key in ("client_email", "private_key")
        ):
            errors.append(
                FieldError(
                    "storage.credentials",
                    "must be an object with client_email and private_key",
                ),
            )

    if errors:
        return ValidationResult(errors=tuple(errors))
    return ValidationResult(value=destination_type(**kwargs))


def _is_http_url(value: object) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
