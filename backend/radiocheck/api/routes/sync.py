import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from radiocheck.api.deps import get_current_user, get_db, get_owned_radio
from radiocheck.core.config import get_settings
from radiocheck.models import Radio
from radiocheck.schemas import RadioSyncResponse, SyncRequest, SyncResponse
from radiocheck.services.drive import DriveClient
from radiocheck.services.errors import DriveError, InputError
from radiocheck.services.folder_crawler import sync_radio, sync_radios_from_root

logger = structlog.get_logger()
settings = get_settings()
router = APIRouter(tags=["sync"])


@router.post("/sync-drive", response_model=SyncResponse)
async def sync_drive(
    payload: SyncRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Import new audio files from Drive as pending verifications."""
    if payload.radio_id is not None:
        radios = [get_owned_radio(db, payload.radio_id, user_id)]
    else:
        radios = list(
            db.scalars(
                select(Radio).where(Radio.user_id == user_id, Radio.drive_folder_id.is_not(None))
            )
        )

    try:
        drive = DriveClient.from_settings()
    except DriveError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    synced = 0
    batch_id = None
    try:
        for radio in radios:
            result = await sync_radio(
                db,
                drive,
                radio,
                folder_id=payload.folder_id if payload.radio_id is not None else None,
                create_batch=payload.create_batch,
                batch_name=payload.batch_name,
                user_id=user_id,
            )
            synced += result.synced
            batch_id = batch_id or result.batch_id
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    finally:
        await drive.aclose()

    return SyncResponse(synced=synced, batch_id=batch_id)


@router.post("/radios/sync", response_model=RadioSyncResponse)
async def sync_radios(db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    """Create radios from the subfolders of the configured Drive root, then crawl each."""
    if not settings.drive_root_folder_id:
        raise HTTPException(status_code=400, detail="DRIVE_ROOT_FOLDER_ID no está configurado")
    try:
        drive = DriveClient.from_settings()
    except DriveError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    try:
        result = await sync_radios_from_root(db, drive, settings.drive_root_folder_id, user_id=user_id)
    except DriveError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    finally:
        await drive.aclose()
    return RadioSyncResponse(
        created_radios=result.created_radios,
        synced_audios=result.synced_audios,
        total_found=result.total_found,
    )
