"""
Imports audio files from a radio's Google Drive folder tree.

Traversal is sequential and depth-bounded, with a pause between subfolder
visits to stay inside Drive's rate limits. New files become ``pending``
verification rows; files the radio already knows are skipped.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from radiocheck.core.config import get_settings
from radiocheck.models import BatchJob, Radio, Verification
from radiocheck.models.batch_job import BATCH_PROCESSING
from radiocheck.models.verification import STATUS_PENDING
from radiocheck.services import utils
from radiocheck.services.drive import DriveClient, DriveFile
from radiocheck.services.errors import DriveError, InputError

logger = structlog.get_logger()


@dataclass
class DiscoveredFile:
    file: DriveFile
    parent_folder_id: str
    parent_folder_name: str


@dataclass
class SyncResult:
    synced: int
    found: int
    batch_id: Optional[int] = None


@dataclass
class RootSyncResult:
    created_radios: int
    synced_audios: int
    total_found: int


async def traverse_folder(
    drive: DriveClient,
    folder_id: str,
    folder_name: str,
    *,
    depth: int = 0,
    max_depth: Optional[int] = None,
    delay_seconds: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[DiscoveredFile]:
    """
    Collect audio files under ``folder_id``, tagged with their direct parent.

    Folders deeper than ``max_depth`` are not visited. A folder that cannot
    be listed contributes nothing; the rest of the tree is still crawled.
    """
    settings = get_settings()
    max_depth = settings.drive_max_depth if max_depth is None else max_depth
    delay_seconds = settings.drive_request_delay_seconds if delay_seconds is None else delay_seconds
    if depth > max_depth:
        return []

    found: List[DiscoveredFile] = []
    try:
        files = await drive.list_audio_files(folder_id)
    except DriveError as exc:
        logger.warning("crawler.file_list_failed", folder_id=folder_id, error=str(exc))
        files = []
    found.extend(DiscoveredFile(file=f, parent_folder_id=folder_id, parent_folder_name=folder_name) for f in files)

    try:
        subfolders = await drive.list_folders(folder_id)
    except DriveError as exc:
        logger.warning("crawler.folder_list_failed", folder_id=folder_id, error=str(exc))
        subfolders = []

    for sub in subfolders:
        if delay_seconds:
            await sleep(delay_seconds)
        found.extend(
            await traverse_folder(
                drive,
                sub.id,
                sub.name,
                depth=depth + 1,
                max_depth=max_depth,
                delay_seconds=delay_seconds,
                sleep=sleep,
            )
        )
    return found


def _parse_created_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _known_file_ids(db: Session, radio_id: int) -> set:
    return set(
        db.scalars(
            select(Verification.drive_file_id).where(
                Verification.radio_id == radio_id,
                Verification.drive_file_id.is_not(None),
            )
        )
    )


async def sync_radio(
    db: Session,
    drive: DriveClient,
    radio: Radio,
    *,
    folder_id: Optional[str] = None,
    create_batch: bool = False,
    batch_name: Optional[str] = None,
    user_id: Optional[str] = None,
    max_depth: Optional[int] = None,
    delay_seconds: Optional[float] = None,
) -> SyncResult:
    root = folder_id or radio.drive_folder_id
    if not root:
        raise InputError("La radio no tiene una carpeta de Drive configurada")

    discovered = await traverse_folder(
        drive, root, radio.name, max_depth=max_depth, delay_seconds=delay_seconds
    )
    known = _known_file_ids(db, radio.id)
    fresh: List[DiscoveredFile] = []
    for item in discovered:
        if item.file.id in known:
            continue
        known.add(item.file.id)
        fresh.append(item)

    logger.info("crawler.scanned", radio_id=radio.id, found=len(discovered), new=len(fresh))
    if not fresh:
        return SyncResult(synced=0, found=len(discovered))

    owner = user_id or radio.user_id
    batch_id = None
    if create_batch:
        batch = BatchJob(
            radio_id=radio.id,
            user_id=owner,
            name=batch_name or f"{radio.name} {datetime.now(timezone.utc):%Y-%m-%d %H:%M}",
            status=BATCH_PROCESSING,
            total_files=len(fresh),
            processed_files=0,
        )
        db.add(batch)
        db.flush()
        batch_id = batch.id

    for item in fresh:
        broadcast_date, broadcast_time = utils.extract_broadcast_datetime(item.file.name)
        row = Verification(
            radio_id=radio.id,
            user_id=owner,
            batch_id=batch_id,
            drive_file_id=item.file.id,
            drive_web_link=item.file.web_view_link,
            drive_file_name=item.file.name,
            drive_parent_folder_id=item.parent_folder_id,
            drive_folder_name=item.parent_folder_name,
            status=STATUS_PENDING,
            broadcast_date=broadcast_date,
            broadcast_time=broadcast_time,
        )
        created = _parse_created_time(item.file.created_time)
        if created:
            row.created_at = created
        db.add(row)
    db.commit()

    logger.info("crawler.imported", radio_id=radio.id, synced=len(fresh), batch_id=batch_id)
    return SyncResult(synced=len(fresh), found=len(discovered), batch_id=batch_id)


async def sync_radios_from_root(
    db: Session,
    drive: DriveClient,
    root_folder_id: str,
    *,
    user_id: Optional[str] = None,
) -> RootSyncResult:
    """Every direct subfolder of the root is a radio; create missing ones and crawl them all."""
    settings = get_settings()
    folders = await drive.list_folders(root_folder_id)
    created = synced = found = 0
    for index, folder in enumerate(folders):
        if index and settings.drive_request_delay_seconds:
            await asyncio.sleep(settings.drive_request_delay_seconds)
        radio = db.scalar(select(Radio).where(Radio.drive_folder_id == folder.id))
        if radio is None:
            radio = Radio(name=folder.name, user_id=user_id, drive_folder_id=folder.id)
            db.add(radio)
            db.commit()
            db.refresh(radio)
            created += 1
            logger.info("crawler.radio_created", radio_id=radio.id, name=folder.name)
        result = await sync_radio(db, drive, radio, user_id=user_id)
        synced += result.synced
        found += result.found
    return RootSyncResult(created_radios=created, synced_audios=synced, total_found=found)
