"""Slack channel upload backend (Web API external upload flow)."""

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
from napkin_visuals.storage.destinations import SlackDestination

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"
SLACK_TOKEN_ENV = "SLACK_BOT_TOKEN"
DEFAULT_TIMEOUT_SECONDS = 60.0


class SlackStorage:
    """Uploads files to a Slack channel with a bot token."""

    kind = SlackDestination.kind

    def __init__(
        self,
        destination: SlackDestination,
        *,
        environ: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_url: str = SLACK_API_URL,
    ) -> None:
        self._channel_id = destination.channel_id
        self._token = resolve_credential(destination.token, SLACK_TOKEN_ENV, environ)
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
                message=f"Slack token not configured; set token or {SLACK_TOKEN_ENV}",
                backend=self.kind,
            )
        data = decode_content(content)
        headers = {"Authorization": f"Bearer {self._token}"}

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=DEFAULT_TIMEOUT_SECONDS,
            ) as client:
                ticket = _slack_ok(
                    await client.post(
                        f"{self._api_url}/files.getUploadURLExternal",
                        headers=headers,
                        data={"filename": filename, "length": str(len(data))},
                    ),
                    action="files.getUploadURLExternal",
                )
                if not ticket.get("upload_url") or not ticket.get("file_id"):
                    raise StorageError(
                        message="files.getUploadURLExternal returned no upload ticket",
                        backend=self.kind,
                    )
                upload = await client.post(
                    ticket["upload_url"],
                    files={"file": (filename, data, mime_type or "application/octet-stream")},
                )
                if not upload.is_success:
                    raise StorageError(
                        message=f"File upload failed: {upload.status_code} {upload.text}",
                        backend=self.kind,
                    )
                completed = _slack_ok(
                    await client.post(
                        f"{self._api_url}/files.completeUploadExternal",
                        headers=headers,
                        json={
                            "files": [{"id": ticket["file_id"], "title": filename}],
                            "channel_id": self._channel_id,
                        },
                    ),
                    action="files.completeUploadExternal",
                )
        except httpx.HTTPError as exc:
            raise StorageError(message=f"Slack request failed: {exc}", backend=self.kind) from exc

        files = completed.get("files") or [{}]
        file_id = files[0].get("id") or ticket["file_id"]
        permalink = files[0].get("permalink")
        logger.info("Uploaded %s to Slack channel %s as %s", filename, self._channel_id, file_id)
        return StorageResult(
            location=f"slack://{self._channel_id}/{file_id}",
            public_url=permalink,
            metadata={"channel_id": self._channel_id, "file_id": file_id, "size": len(data)},
        )

    def is_configured(self) -> bool:
        return bool(self._channel_id and self._token)


def _slack_ok(response: httpx.Response, *, action: str) -> dict[str, Any]:
    payload = checked_json(response, backend=SlackDestination.kind, action=action)
    if not payload.get("ok"):
        raise StorageError(
            message=f"{action} failed: {payload.get('error', 'unknown error')}",
            backend=SlackDestination.kind,
        )
    return payload
