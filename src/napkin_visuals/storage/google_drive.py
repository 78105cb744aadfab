"""Google Drive storage backend using a service account."""

from __future__ import annotations

import asyncio
import io
import json
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from napkin_visuals.errors import StorageError
from napkin_visuals.storage.base import (
    StorageContent,
    StorageResult,
    decode_content,
    require_bare_filename,
)
from napkin_visuals.storage.destinations import GoogleDriveDestination

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive.file",)
_UPLOAD_FIELDS = "id, name, webViewLink, webContentLink"

ServiceFactory = Callable[[Mapping[str, Any]], Any]

# Malformed credentials raise ValueError; transport failures raise HttpLib2Error or OSError.
_UPLOAD_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError, ValueError)


def build_drive_service(credentials_info: Mapping[str, Any]) -> Any:
    credentials = service_account.Credentials.from_service_account_info(
        dict(credentials_info),
        scopes=list(DRIVE_SCOPES),
    )
    return build("drive", "v3", credentials=credentials, cache_discovery=False)


class GoogleDriveStorage:
    """Uploads files into a Drive folder shared with the service account.

    Inline credentials take precedence over `credentials_path`; the file is
    only read when the Drive service is first needed.
    """

    kind = GoogleDriveDestination.kind

    def __init__(
        self,
        destination: GoogleDriveDestination,
        *,
        service_factory: ServiceFactory | None = None,
    ) -> None:
        self._destination = destination
        self._service_factory = service_factory or build_drive_service
        self._service: Any | None = None

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        require_bare_filename(filename)
        data = decode_content(content)
        try:
            response = await asyncio.to_thread(self._upload, filename, data, mime_type)
        except _UPLOAD_ERRORS as exc:
            raise StorageError(
                message=f"Failed to upload {filename!r} to Google Drive: {exc}",
                backend=self.kind,
            ) from exc

        file_id = response.get("id")
        if not file_id:
            raise StorageError(
                message="Failed to upload file to Google Drive: no file ID returned",
                backend=self.kind,
            )
        logger.info("Stored %d bytes as Drive file %s", len(data), file_id)
        return StorageResult(
            location=f"gdrive://{file_id}",
            public_url=response.get("webViewLink"),
            metadata={
                "file_id": file_id,
                "name": response.get("name"),
                "web_view_link": response.get("webViewLink"),
                "web_content_link": response.get("webContentLink"),
                "folder_id": self._destination.folder_id,
            },
        )

    def is_configured(self) -> bool:
        return bool(
            self._destination.folder_id
            and (self._destination.credentials or self._destination.credentials_path),
        )

    def _upload(self, filename: str, data: bytes, mime_type: str | None) -> dict[str, Any]:
        media = MediaIoBaseUpload(
            io.BytesIO(data),
            mimetype=mime_type or "application/octet-stream",
            resumable=False,
        )
        request = self._get_service().files().create(
            body={"name": filename, "parents": [self._destination.folder_id]},
            media_body=media,
            fields=_UPLOAD_FIELDS,
        )
        return request.execute()

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = self._service_factory(self._load_credentials())
        return self._service

    def _load_credentials(self) -> Mapping[str, Any]:
        if self._destination.credentials:
            return self._destination.credentials
        if not self._destination.credentials_path:
            raise StorageError(
                message=(
                    "Google Drive credentials not configured. "
                    "Provide either credentials_path or credentials."
                ),
                backend=self.kind,
            )
        path = Path(self._destination.credentials_path).expanduser()
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise StorageError(
                message=f"Credentials file not found: {str(path)!r}",
                backend=self.kind,
            ) from exc
        except (OSError, ValueError) as exc:
            raise StorageError(
                message=f"Cannot read credentials file {str(path)!r}: {exc}",
                backend=self.kind,
            ) from exc
