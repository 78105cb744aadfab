"""Telegram backend: send the file as a document to a chat."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from napkin_visuals.errors import StorageError
from napkin_visuals.storage.base import (
    StorageContent,
    StorageResult,
    checked_json,
    decode_content,
    require_bare_filename,
    resolve_credential,
)
from napkin_visuals.storage.destinations import TelegramDestination

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
TELEGRAM_TOKEN_ENV = "TELEGRAM_BOT_TOKEN"
DEFAULT_TIMEOUT_SECONDS = 60.0


class TelegramStorage:
    kind = TelegramDestination.kind

    def __init__(
        self,
        destination: TelegramDestination,
        *,
        environ: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_url: str = TELEGRAM_API_URL,
    ) -> None:
        self._chat_id = destination.chat_id
        self._token = resolve_credential(destination.bot_token, TELEGRAM_TOKEN_ENV, environ)
        self._transport = transport
        self._api_url = api_url.rstrip("/")

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        require_bare_filename(filename)
        if not self.is_configured():
            raise StorageError(
                message=f"Telegram bot token not configured; set bot_token or {TELEGRAM_TOKEN_ENV}",
                backend=self.kind,
            )
        data = decode_content(content)
        caption = (metadata or {}).get("caption")
        form = {"chat_id": self._chat_id}
        if caption:
            form["caption"] = str(caption)

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=DEFAULT_TIMEOUT_SECONDS,
            ) as client:
                response = await client.post(
                    f"{self._api_url}/bot{self._token}/sendDocument",
                    data=form,
                    files={"document": (filename, data, mime_type or "application/octet-stream")},
                )
        except httpx.HTTPError as exc:
            # The request URL embeds the token; keep it out of the message.
            raise StorageError(
                message=f"Telegram request failed: {type(exc).__name__}",
                backend=self.kind,
            ) from exc

        payload = checked_json(response, backend=self.kind, action="sendDocument")
        if not payload.get("ok"):
            raise StorageError(
                message=f"sendDocument failed: {payload.get('description', 'unknown error')}",
                backend=self.kind,
            )
        message = payload.get("result") or {}
        message_id = message.get("message_id")
        document = message.get("document") or {}
        logger.info("Sent %s to Telegram chat %s (message %s)", filename, self._chat_id, message_id)
        return StorageResult(
            location=f"telegram://{self._chat_id}/{message_id}",
            metadata={
                "chat_id": self._chat_id,
                "message_id": message_id,
                "file_id": document.get("file_id"),
                "size": len(data),
            },
        )

    def is_configured(self) -> bool:
        return bool(self._chat_id and self._token)
