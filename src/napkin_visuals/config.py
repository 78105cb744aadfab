"""Runtime configuration loaded from a JSON file and environment variables."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from napkin_visuals.http.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from napkin_visuals.http.retry import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_RETRIES, RetryPolicy
from napkin_visuals.models import ColorMode, Orientation, OutputFormat
from napkin_visuals.storage.destinations import StorageDestination, destination_from_mapping
from napkin_visuals.validation import FieldError
from napkin_visuals.workflow import WaitOptions

DEFAULT_CONFIG_FILENAME = "config.json"
POLLING_INTERVAL_RANGE_MS = (500, 30_000)
MAX_WAIT_RANGE_MS = (10_000, 600_000)

_STORAGE_ENV: dict[str, dict[str, str]] = {
    "local": {"directory": "NAPKIN_STORAGE_LOCAL_DIR"},
    "s3": {
        "bucket": "NAPKIN_STORAGE_S3_BUCKET",
        "region": "NAPKIN_STORAGE_S3_REGION",
        "prefix": "NAPKIN_STORAGE_S3_PREFIX",
        "endpoint": "NAPKIN_STORAGE_S3_ENDPOINT",
        "access_key_id": "AWS_ACCESS_KEY_ID",
        "secret_access_key": "AWS_SECRET_ACCESS_KEY",
    },
    "google-drive": {
        "folder_id": "NAPKIN_STORAGE_GDRIVE_FOLDER_ID",
        "credentials_path": "NAPKIN_STORAGE_GDRIVE_CREDENTIALS",
    },
    "slack": {
        "channel_id": "NAPKIN_STORAGE_SLACK_CHANNEL",
        "token": "NAPKIN_STORAGE_SLACK_TOKEN",
    },
    "notion": {
        "token": "NAPKIN_STORAGE_NOTION_TOKEN",
        "page_id": "NAPKIN_STORAGE_NOTION_PAGE_ID",
        "database_id": "NAPKIN_STORAGE_NOTION_DATABASE_ID",
    },
    "telegram": {
        "bot_token": "NAPKIN_STORAGE_TELEGRAM_BOT_TOKEN",
        "chat_id": "NAPKIN_STORAGE_TELEGRAM_CHAT_ID",
    },
    "discord": {
        "webhook_url": "NAPKIN_STORAGE_DISCORD_WEBHOOK_URL",
        "username": "NAPKIN_STORAGE_DISCORD_USERNAME",
    },
}
_STORAGE_REQUIRED_ENV: dict[str, tuple[str, ...]] = {
    "local": ("directory",),
    "s3": ("bucket", "region"),
    "google-drive": ("folder_id",),
    "slack": ("channel_id",),
    "notion": ("token",),
    "telegram": ("bot_token", "chat_id"),
    "discord": ("webhook_url",),
}
_STORAGE_ONE_OF_ENV: dict[str, tuple[str, ...]] = {
    "notion": ("page_id", "database_id"),
}
_DEFAULTS_ENV = {
    "format": "NAPKIN_DEFAULT_FORMAT",
    "language": "NAPKIN_DEFAULT_LANGUAGE",
    "style_id": "NAPKIN_DEFAULT_STYLE_ID",
    "color_mode": "NAPKIN_DEFAULT_COLOR_MODE",
    "orientation": "NAPKIN_DEFAULT_ORIENTATION",
}


@dataclass(slots=True)
class GenerationDefaults:
    """Server-level fallbacks merged under every tool call."""

    format: str | None = None
    context: str | None = None
    language: str | None = None
    style_id: str | None = None
    color_mode: str | None = None
    orientation: str | None = None

    def as_mapping(self) -> dict[str, str]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(slots=True)
class Settings:
    """Validated configuration consumed by the tool layer and CLI."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    polling_interval_ms: int = 2_000
    max_wait_ms: int = 300_000
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    defaults: GenerationDefaults = field(default_factory=GenerationDefaults)
    storage: StorageDestination | None = None

    @classmethod
    def from_env(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Load settings; environment variables override the JSON config file."""

        env = os.environ if environ is None else environ
        merged = _merge(_load_config_file(config_path, env), _config_from_env(env))
        settings = cls.from_mapping(merged)
        settings.validate()
        return settings

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Settings:
        """Build settings from a JSON-shaped mapping (snake_case keys)."""

        errors: list[FieldError] = []
        known = {item.name for item in fields(cls)}
        errors.extend(FieldError(name, "unknown field") for name in sorted(set(data) - known))

        kwargs: dict[str, Any] = {
            key: value
            for key, value in data.items()
            if key in known and key not in {"defaults", "storage"}
        }
        raw_defaults = data.get("defaults") or {}
        if not isinstance(raw_defaults, Mapping):
            errors.append(FieldError("defaults", "expected an object"))
        else:
            default_names = {item.name for item in fields(GenerationDefaults)}
            errors.extend(
                FieldError(f"defaults.{name}", "unknown field")
                for name in sorted(set(raw_defaults) - default_names)
            )
            kwargs["defaults"] = GenerationDefaults(
                **{key: value for key, value in raw_defaults.items() if key in default_names},
            )

        raw_storage = data.get("storage")
        if raw_storage is not None:
            if not isinstance(raw_storage, Mapping):
                errors.append(FieldError("storage", "expected an object"))
            else:
                parsed = destination_from_mapping(raw_storage)
                errors.extend(parsed.errors)
                kwargs["storage"] = parsed.value

        if errors:
            raise ValueError(_format_errors(errors))
        return cls(**kwargs)

    def validate(self) -> None:
        """Raise one `ValueError` listing every invalid field."""

        errors: list[FieldError] = []
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            errors.append(FieldError("api_key", "required (set NAPKIN_API_KEY)"))
        parsed = urlparse(self.base_url) if isinstance(self.base_url, str) else None
        if parsed is None or parsed.scheme not in {"http", "https"} or not parsed.netloc:
            errors.append(FieldError("base_url", "must be an absolute http(s) URL"))
        _check_int_range(
            errors,
            "polling_interval_ms",
            self.polling_interval_ms,
            POLLING_INTERVAL_RANGE_MS,
        )
        _check_int_range(errors, "max_wait_ms", self.max_wait_ms, MAX_WAIT_RANGE_MS)
        if not _is_number(self.request_timeout_seconds) or self.request_timeout_seconds <= 0:
            errors.append(FieldError("request_timeout_seconds", "must be > 0"))
        if not _is_int(self.max_retries) or self.max_retries < 0:
            errors.append(FieldError("max_retries", "must be an integer >= 0"))
        if not _is_number(self.retry_base_delay_seconds) or self.retry_base_delay_seconds < 0:
            errors.append(FieldError("retry_base_delay_seconds", "must be >= 0"))

        enum_defaults = (
            ("format", OutputFormat),
            ("color_mode", ColorMode),
            ("orientation", Orientation),
        )
        for name, enum_type in enum_defaults:
            value = getattr(self.defaults, name)
            if value is not None and (
                not isinstance(value, str) or value not in {member.value for member in enum_type}
            ):
                allowed = ", ".join(member.value for member in enum_type)
                errors.append(FieldError(f"defaults.{name}", f"must be one of: {allowed}"))
        for name in ("context", "language", "style_id"):
            value = getattr(self.defaults, name)
            if value is not None and not isinstance(value, str):
                errors.append(FieldError(f"defaults.{name}", "expected a string"))

        if errors:
            raise ValueError(_format_errors(errors))

    def wait_options(self) -> WaitOptions:
        return WaitOptions.from_milliseconds(
            poll_interval_ms=self.polling_interval_ms,
            max_wait_ms=self.max_wait_ms,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_seconds=self.retry_base_delay_seconds,
        )


def _load_config_file(config_path: Path | None, env: Mapping[str, str]) -> dict[str, Any]:
    explicit = config_path
    if explicit is None and env.get("NAPKIN_CONFIG_PATH"):
        explicit = Path(env["NAPKIN_CONFIG_PATH"])
    if explicit is None:
        candidate = Path(DEFAULT_CONFIG_FILENAME)
        if not candidate.is_file():
            return {}
        explicit = candidate
    if not explicit.is_file():
        raise ValueError(f"Configuration file not found: {explicit}")
    try:
        data = json.loads(explicit.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON in configuration file {explicit}: {error}") from error
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {explicit} must contain a JSON object.")
    return data


def _config_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    config: dict[str, Any] = {}
    if env.get("NAPKIN_API_KEY"):
        config["api_key"] = env["NAPKIN_API_KEY"]
    if env.get("NAPKIN_API_BASE_URL"):
        config["base_url"] = env["NAPKIN_API_BASE_URL"]
    for key, name in (
        ("polling_interval_ms", "NAPKIN_POLLING_INTERVAL"),
        ("max_wait_ms", "NAPKIN_MAX_WAIT_TIME"),
    ):
        if env.get(name):
            config[key] = _env_int(env, name)

    defaults = {key: env[name] for key, name in _DEFAULTS_ENV.items() if env.get(name)}
    if defaults:
        config["defaults"] = defaults

    storage = _storage_from_env(env)
    if storage is not None:
        config["storage"] = storage
    return config


def _storage_from_env(env: Mapping[str, str]) -> dict[str, Any] | None:
    storage_type = env.get("NAPKIN_STORAGE_TYPE", "").strip()
    if not storage_type:
        return None
    variables = _STORAGE_ENV.get(storage_type)
    if variables is None:
        raise ValueError(f"Unknown storage type: {storage_type!r}")

    missing = [
        variables[key] for key in _STORAGE_REQUIRED_ENV[storage_type] if not env.get(variables[key])
    ]
    alternatives = _STORAGE_ONE_OF_ENV.get(storage_type, ())
    if alternatives and not any(env.get(variables[key]) for key in alternatives):
        missing.append(" or ".join(variables[key] for key in alternatives))
    if missing:
        raise ValueError(
            f"{' and '.join(missing)} required when storage type is {storage_type!r}",
        )
    storage: dict[str, Any] = {"type": storage_type}
    storage.update({key: env[name] for key, name in variables.items() if env.get(name)})
    return storage


def _merge(*configs: Mapping[str, Any]) -> dict[str, Any]:
    """Later configs win; `defaults` merges key by key, `storage` is replaced."""

    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is None:
                continue
            previous = result.get(key)
            if key == "defaults" and isinstance(value, Mapping) and isinstance(previous, Mapping):
                result[key] = {**previous, **value}
            else:
                result[key] = value
    return result


def _check_int_range(
    errors: list[FieldError],
    name: str,
    value: object,
    bounds: tuple[int, int],
) -> None:
    low, high = bounds
    if not _is_int(value) or not low <= value <= high:
        errors.append(FieldError(name, f"must be an integer between {low} and {high}"))


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _env_int(env: Mapping[str, str], name: str) -> int:
    raw = env[name].strip()
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _format_errors(errors: list[FieldError]) -> str:
    return "Invalid configuration:\n" + "\n".join(f"  - {error}" for error in errors)
