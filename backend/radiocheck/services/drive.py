"""
Google Drive v3 client.

Talks to the REST API directly with httpx. Authorization uses the stored
long-lived refresh token; access tokens are exchanged on demand and cached
until shortly before they expire.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog

from radiocheck.core.config import get_settings
from radiocheck.services.errors import DriveError

logger = structlog.get_logger()

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
TOKEN_URL = "https://oauth2.googleapis.com/token"
FOLDER_MIME = "application/vnd.google-apps.folder"
FILE_FIELDS = "nextPageToken, files(id, name, webViewLink, createdTime, mimeType)"
FOLDER_FIELDS = "nextPageToken, files(id, name)"
PAGE_SIZE = 1000


@dataclass
class DriveFile:
    id: str
    name: str
    web_view_link: Optional[str] = None
    created_time: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass
class DriveFolder:
    id: str
    name: str


class DriveClient:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls) -> "DriveClient":
        settings = get_settings()
        if not settings.google_refresh_token:
            raise DriveError("Google Drive no está configurado (falta GOOGLE_REFRESH_TOKEN)")
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            refresh_token=settings.google_refresh_token,
            timeout=settings.drive_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        try:
            response = await self._http.post(
                TOKEN_URL,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DriveError(f"No se pudo autenticar con Google Drive: {exc}") from exc
        data = response.json()
        self._access_token = data["access_token"]
        # refresh a minute early
        self._token_expires_at = time.monotonic() + max(0, int(data.get("expires_in", 3600)) - 60)
        logger.info("drive.token_refreshed")
        return self._access_token

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {await self._token()}"}
        try:
            response = await self._http.request(method, f"{DRIVE_API_URL}{path}", headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DriveError(f"Google Drive {method} {path} failed: {exc}") from exc
        return response

    async def _list(self, query: str, fields: str, order_by: str) -> List[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params = {
                "q": query,
                "fields": fields,
                "orderBy": order_by,
                "pageSize": PAGE_SIZE,
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
            }
            if page_token:
                params["pageToken"] = page_token
            data = (await self._request("GET", "/files", params=params)).json()
            files.extend(data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return files

    async def list_audio_files(self, folder_id: str) -> List[DriveFile]:
        query = (
            f"'{folder_id}' in parents and trashed = false and "
            "(mimeType contains 'audio/' or mimeType = 'application/mp3')"
        )
        raw = await self._list(query, FILE_FIELDS, "createdTime desc")
        return [
            DriveFile(
                id=item["id"],
                name=item.get("name", ""),
                web_view_link=item.get("webViewLink"),
                created_time=item.get("createdTime"),
                mime_type=item.get("mimeType"),
            )
            for item in raw
        ]

    async def list_folders(self, folder_id: str) -> List[DriveFolder]:
        query = f"'{folder_id}' in parents and trashed = false and mimeType = '{FOLDER_MIME}'"
        raw = await self._list(query, FOLDER_FIELDS, "name")
        return [DriveFolder(id=item["id"], name=item.get("name", "")) for item in raw]

    async def download_file(self, file_id: str) -> bytes:
        headers = {"Authorization": f"Bearer {await self._token()}"}
        chunks: List[bytes] = []
        try:
            async with self._http.stream(
                "GET",
                f"{DRIVE_API_URL}/files/{file_id}",
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=headers,
            ) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise DriveError(f"Error descargando archivo de Drive: {exc}") from exc
        data = b"".join(chunks)
        logger.info("drive.downloaded", file_id=file_id, size=len(data))
        return data

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"/files/{file_id}", params={"supportsAllDrives": "true"})
        logger.info("drive.deleted", file_id=file_id)

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        body: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            body["parents"] = [parent_id]
        response = await self._request(
            "POST", "/files", json=body, params={"fields": "id", "supportsAllDrives": "true"}
        )
        folder_id = response.json()["id"]
        logger.info("drive.folder_created", folder_id=folder_id, name=name)
        return folder_id
