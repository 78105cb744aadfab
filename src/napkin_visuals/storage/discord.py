"""Discord backend: post the file through a channel webhook."""

from __future__ import annotations

import json
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
)
from napkin_visuals.storage.destinations import DiscordDestination

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class DiscordStorage:
    kind = DiscordDestination.kind

    def __init__(
        self,
        destination: DiscordDestination,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = destination.webhook_url
        self._username = destination.username
        self._transport = transport

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        require_bare_filename(filename)
        data = decode_content(content)
        message: dict[str, Any] = {}
        if self._username:
            message["username"] = self._username
        caption = (metadata or {}).get("caption")
        if caption:
            message["content"] = str(caption)

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=DEFAULT_TIMEOUT_SECONDS,
            ) as client:
                response = await client.post(
                    self._webhook_url,
                    params={"wait": "true"},
                    data={"payload_json": json.dumps(message)},
                    files={"files[0]": (filename, data, mime_type or "application/octet-stream")},
                )
        except httpx.HTTPError as exc:
            raise StorageError(
                message=f"Discord webhook request failed: {type(exc).__name__}",
                backend=self.kind,
            ) from exc

        posted = checked_json(response, backend=self.kind, action="Webhook post")
        message_id = posted.get("id")
        channel_id = posted.get("channel_id")
        attachments = posted.get("attachments") or [{}]
        attachment_url = attachments[0].get("url")
        logger.info(
            "Posted %s to Discord channel %s (message %s)",
            filename,
            channel_id,
            message_id,
        )
        return StorageResult(
            location=f"discord://{channel_id}/{message_id}",
            public_url=attachment_url,
            metadata={
                "channel_id": channel_id,
                "message_id": message_id,
                "size": len(data),
            },
        )

    def is_configured(self) -> bool:
        return bool(self._webhook_url)
