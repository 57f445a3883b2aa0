"""Loads the audio for one verification from exactly one source."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional

import structlog

from radiocheck.services.drive import DriveClient
from radiocheck.services.errors import InputError, StorageError
from radiocheck.services.storage import MinioStorageService, audio_object_key

logger = structlog.get_logger()

MISSING_FIELDS_MESSAGE = "Faltan campos requeridos (audio/path o frases)"
AMBIGUOUS_SOURCE_MESSAGE = "Indique una sola fuente de audio (archivo, audioPath o driveFileId)"

SOURCE_UPLOAD = "upload"
SOURCE_STORAGE = "storage"
SOURCE_DRIVE = "drive"


@dataclass
class AudioSource:
    upload: Optional[bytes] = None
    upload_name: Optional[str] = None
    storage_path: Optional[str] = None
    drive_file_id: Optional[str] = None

    def kinds(self) -> List[str]:
        present = []
        if self.upload:
            present.append(SOURCE_UPLOAD)
        if self.storage_path:
            present.append(SOURCE_STORAGE)
        if self.drive_file_id:
            present.append(SOURCE_DRIVE)
        return present


@dataclass
class AcquiredAudio:
    data: bytes
    filename: str
    source_kind: str
    audio_path: Optional[str] = None


def validate_request(phrases: List[str], source: AudioSource) -> str:
    """Return the single source kind, or raise InputError."""
    kinds = source.kinds()
    if not kinds or not [p for p in phrases if p and p.strip()]:
        raise InputError(MISSING_FIELDS_MESSAGE)
    if len(kinds) > 1:
        raise InputError(AMBIGUOUS_SOURCE_MESSAGE)
    return kinds[0]


async def acquire_audio(
    source: AudioSource,
    *,
    storage: Optional[MinioStorageService] = None,
    drive: Optional[DriveClient] = None,
    file_name: Optional[str] = None,
) -> AcquiredAudio:
    kinds = source.kinds()
    if len(kinds) != 1:
        raise InputError(MISSING_FIELDS_MESSAGE if not kinds else AMBIGUOUS_SOURCE_MESSAGE)
    kind = kinds[0]

    if kind == SOURCE_UPLOAD:
        return AcquiredAudio(
            data=source.upload,
            filename=source.upload_name or file_name or "upload.mp3",
            source_kind=kind,
        )

    if kind == SOURCE_STORAGE:
        if storage is None:
            raise StorageError("Storage no está configurado")
        data = await asyncio.to_thread(storage.download_bytes, source.storage_path)
        return AcquiredAudio(
            data=data,
            filename=PurePosixPath(source.storage_path).name,
            source_kind=kind,
            audio_path=source.storage_path,
        )

    if drive is None:
        drive = DriveClient.from_settings()
    data = await drive.download_file(source.drive_file_id)
    return AcquiredAudio(
        data=data,
        filename=file_name or f"{source.drive_file_id}.mp3",
        source_kind=kind,
    )


def portable_object_key(radio_id: int, acquired: AcquiredAudio, drive_file_id: Optional[str]) -> str:
    if acquired.source_kind == SOURCE_DRIVE and drive_file_id:
        return audio_object_key(radio_id, f"{drive_file_id}.mp3")
    name = PurePosixPath(acquired.filename).stem or "audio"
    return audio_object_key(radio_id, f"{uuid.uuid4().hex[:12]}_{name}.mp3")


async def publish_portable_copy(
    storage: Optional[MinioStorageService],
    object_key: str,
    data: bytes,
) -> Optional[str]:
    """
    Upload the optimized audio for later playback.

    Failures are logged and reported as None; the verification goes on.
    """
    if storage is None:
        logger.warning("acquire.storage_unavailable", key=object_key)
        return None
    try:
        return await asyncio.to_thread(storage.upload_bytes, object_key, data, content_type="audio/mpeg")
    except StorageError as exc:
        logger.warning("acquire.portable_copy_failed", key=object_key, error=str(exc))
        return None
