from typing import List

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from radiocheck.api.deps import get_current_user, get_db, get_owned_radio
from radiocheck.db.session import SessionLocal
from radiocheck.models import BatchJob
from radiocheck.schemas import BatchJobOut, BatchRunRequest
from radiocheck.services.batch import BatchItem, open_batch, run_batch
from radiocheck.services.errors import InputError

logger = structlog.get_logger()
router = APIRouter(prefix="/batches", tags=["batches"])


async def _run_batch_in_background(batch_id: int, phrases: List[str], items: List[BatchItem]) -> None:
    db = SessionLocal()
    try:
        await run_batch(db, phrases=phrases, items=items, batch=db.get(BatchJob, batch_id))
    except Exception as exc:
        # run_batch already marked the batch as error
        logger.error("batch.background_failed", batch_id=batch_id, error=str(exc))
    finally:
        db.close()


@router.post("/run", response_model=BatchJobOut, status_code=202)
async def start_batch(
    payload: BatchRunRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """
    Process pending verifications one by one in the background.

    Returns the BatchJob immediately; poll ``GET /batches/{id}`` for progress.
    """
    phrases = [p.strip() for p in payload.phrases if p and p.strip()]
    if not phrases or not payload.items:
        raise HTTPException(status_code=400, detail="Faltan frases o archivos para el lote")
    if payload.radio_id is not None:
        get_owned_radio(db, payload.radio_id, user_id)

    try:
        batch = open_batch(
            db,
            total=len(payload.items),
            batch_id=payload.batch_id,
            radio_id=payload.radio_id,
            user_id=user_id,
            name=payload.name,
        )
    except InputError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    items = [
        BatchItem(
            verification_id=item.verification_id,
            broadcast_date=item.broadcast_date,
            broadcast_time=item.broadcast_time,
        )
        for item in payload.items
    ]
    background_tasks.add_task(_run_batch_in_background, batch.id, phrases, items)
    return batch


@router.get("/{batch_id}", response_model=BatchJobOut)
def get_batch(batch_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    batch = db.get(BatchJob, batch_id)
    if not batch or (batch.user_id and batch.user_id != user_id):
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch
