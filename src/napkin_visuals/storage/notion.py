"""Notion backend: upload a file and attach it to a page or database."""

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
from napkin_visuals.storage.destinations import NotionDestination

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
NOTION_TOKEN_ENV = "NOTION_TOKEN"
DEFAULT_TIMEOUT_SECONDS = 60.0


class NotionStorage:
    """Appends the uploaded file as a block to a page.

    With `database_id` set, a new database entry titled after the file is
    created instead and the block becomes its body.
    """

    kind = NotionDestination.kind

    def __init__(
        self,
        destination: NotionDestination,
        *,
        environ: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_url: str = NOTION_API_URL,
    ) -> None:
        self._page_id = destination.page_id
        self._database_id = destination.database_id
        self._token = resolve_credential(destination.token, NOTION_TOKEN_ENV, environ)
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
                message=f"Notion token not configured; set token or {NOTION_TOKEN_ENV}",
                backend=self.kind,
            )
        data = decode_content(content)
        content_type = mime_type or "application/octet-stream"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": NOTION_VERSION,
        }

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=DEFAULT_TIMEOUT_SECONDS,
                headers=headers,
            ) as client:
                upload = checked_json(
                    await client.post(
                        f"{self._api_url}/file_uploads",
                        json={"filename": filename, "content_type": content_type},
                    ),
                    backend=self.kind,
                    action="Create file upload",
                )
                upload_id = upload.get("id")
                if not upload_id:
                    raise StorageError(
                        message="Notion returned no file upload id",
                        backend=self.kind,
                    )
                checked_json(
                    await client.post(
                        f"{self._api_url}/file_uploads/{upload_id}/send",
                        files={"file": (filename, data, content_type)},
                    ),
                    backend=self.kind,
                    action="Send file upload",
                )
                block = _file_block(upload_id, content_type, filename)
                if self._database_id:
                    location_id, public_url = await self._create_entry(client, filename, block)
                else:
                    location_id, public_url = await self._append_block(client, block)
        except httpx.HTTPError as exc:
            raise StorageError(message=f"Notion request failed: {exc}", backend=self.kind) from exc

        logger.info("Attached %s to Notion as %s", filename, location_id)
        return StorageResult(
            location=f"notion://{location_id}",
            public_url=public_url,
            metadata={
                "page_id": self._page_id,
                "database_id": self._database_id,
                "file_upload_id": upload_id,
                "size": len(data),
            },
        )

    def is_configured(self) -> bool:
        return bool((self._page_id or self._database_id) and self._token)

    async def _append_block(
        self,
        client: httpx.AsyncClient,
        block: dict[str, Any],
    ) -> tuple[str, str]:
        appended = checked_json(
            await client.patch(
                f"{self._api_url}/blocks/{self._page_id}/children",
                json={"children": [block]},
            ),
            backend=self.kind,
            action="Append block",
        )
        results = appended.get("results") or [{}]
        block_id = results[0].get("id") or self._page_id
        return block_id, _page_url(self._page_id)

    async def _create_entry(
        self,
        client: httpx.AsyncClient,
        filename: str,
        block: dict[str, Any],
    ) -> tuple[str, str]:
        page = checked_json(
            await client.post(
                f"{self._api_url}/pages",
                json={
                    "parent": {"database_id": self._database_id},
                    "properties": {"title": {"title": [{"text": {"content": filename}}]}},
                    "children": [block],
                },
            ),
            backend=self.kind,
            action="Create database entry",
        )
        page_id = page.get("id") or ""
        return page_id, page.get("url") or _page_url(page_id)


def _file_block(upload_id: str, content_type: str, filename: str) -> dict[str, Any]:
    block_type = "image" if content_type.startswith("image/") else "file"
    body: dict[str, Any] = {"type": "file_upload", "file_upload": {"id": upload_id}}
    if block_type == "file":
        body["name"] = filename
    return {"object": "block", "type": block_type, block_type: body}


def _page_url(page_id: str) -> str:
    return f"https://www.notion.so/{page_id.replace('-', '')}"
