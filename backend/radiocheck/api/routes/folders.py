import asyncio
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from radiocheck.api.deps import get_current_user, get_db, get_owned_radio
from radiocheck.schemas import (
    FolderCreateRequest,
    FolderCreateResponse,
    FolderListResponse,
    FolderOut,
    RadioDeleteRequest,
    RadioDeleteResponse,
    VerificationDeleteRequest,
    VerificationDeleteResponse,
)
from radiocheck.services.drive import DriveClient
from radiocheck.services.errors import DriveError, StorageError
from radiocheck.services.persistence import delete_radio, delete_verifications
from radiocheck.services.pipeline import default_storage
from radiocheck.services.storage import MinioStorageService, audio_object_key

logger = structlog.get_logger()
router = APIRouter(tags=["folders"])


def get_storage() -> Optional[MinioStorageService]:
    return default_storage()


@router.get("/folders/list", response_model=FolderListResponse)
async def list_folders(folder_id: str = Query(..., alias="folderId"), user_id: str = Depends(get_current_user)):
    """Subfolders of a Drive folder, for picking a radio's recording folder."""
    try:
        drive = DriveClient.from_settings()
        try:
            folders = await drive.list_folders(folder_id)
        finally:
            await drive.aclose()
    except DriveError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return FolderListResponse(folders=[FolderOut(id=f.id, name=f.name) for f in folders])


@router.post("/folders/create", response_model=FolderCreateResponse)
async def create_folder(payload: FolderCreateRequest, user_id: str = Depends(get_current_user)):
    if not payload.name.strip() or not payload.parent_id:
        raise HTTPException(status_code=400, detail="Missing name or parentId")
    try:
        drive = DriveClient.from_settings()
        try:
            folder_id = await drive.create_folder(payload.name.strip(), parent_id=payload.parent_id)
        finally:
            await drive.aclose()
    except DriveError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return FolderCreateResponse(folder_id=folder_id)


@router.post("/verifications/delete", response_model=VerificationDeleteResponse)
async def delete_verification_rows(
    payload: VerificationDeleteRequest,
    db: Session = Depends(get_db),
    storage: Optional[MinioStorageService] = Depends(get_storage),
    user_id: str = Depends(get_current_user),
):
    """Delete rows first, then the audio objects nothing references any more."""
    deleted, orphaned = delete_verifications(db, payload.ids, user_id)
    removed = 0
    if orphaned and storage is not None:
        try:
            removed = await asyncio.to_thread(storage.delete_objects, orphaned)
        except StorageError as exc:
            # rows are already deleted
            logger.warning("verifications.storage_cleanup_failed", keys=orphaned, error=str(exc))
    return VerificationDeleteResponse(deleted=deleted, deleted_objects=removed)


async def _delete_drive_folder(folder_id: str) -> bool:
    try:
        drive = DriveClient.from_settings()
        try:
            await drive.delete_file(folder_id)
        finally:
            await drive.aclose()
    except DriveError as exc:
        logger.warning("radios.drive_cleanup_failed", folder_id=folder_id, error=str(exc))
        return False
    return True


async def _delete_radio_objects(storage: Optional[MinioStorageService], radio_id: int) -> int:
    if storage is None:
        return 0
    try:
        keys = await asyncio.to_thread(storage.list_objects, audio_object_key(radio_id, ""))
        return await asyncio.to_thread(storage.delete_objects, keys)
    except StorageError as exc:
        logger.warning("radios.storage_cleanup_failed", radio_id=radio_id, error=str(exc))
        return 0


@router.post("/radios/delete", response_model=RadioDeleteResponse)
async def delete_radio_and_assets(
    payload: RadioDeleteRequest,
    db: Session = Depends(get_db),
    storage: Optional[MinioStorageService] = Depends(get_storage),
    user_id: str = Depends(get_current_user),
):
    """
    Delete a radio, its Drive folder, its stored audio and all its rows.

    Drive and storage cleanup are best effort; the database rows are always
    removed.
    """
    radio = get_owned_radio(db, payload.radio_id, user_id)
    radio_id = radio.id
    folder_deleted = await _delete_drive_folder(radio.drive_folder_id) if radio.drive_folder_id else False
    objects = await _delete_radio_objects(storage, radio_id)
    removed = delete_radio(db, radio)
    return RadioDeleteResponse(
        deleted_verifications=removed,
        deleted_objects=objects,
        drive_folder_deleted=folder_deleted,
    )
