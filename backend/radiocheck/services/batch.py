"""
Sequential batch orchestration.

Items run one after another against the shared transcription endpoint. A
failing item is marked ``error`` and the loop moves on; the BatchJob row is
updated after every item so viewers see live progress.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from radiocheck.core.config import get_settings
from radiocheck.models import BatchJob, Verification
from radiocheck.models.batch_job import BATCH_COMPLETED, BATCH_ERROR, BATCH_PROCESSING
from radiocheck.models.verification import STATUS_PENDING
from radiocheck.models.common import utcnow
from radiocheck.services.errors import InputError
from radiocheck.services.persistence import apply_broadcast_overrides, mark_error
from radiocheck.services.pipeline import VerificationInput, VerificationOutcome, verify_and_persist

logger = structlog.get_logger()

Runner = Callable[[Session, VerificationInput], Awaitable[VerificationOutcome]]


@dataclass
class BatchItem:
    verification_id: int
    broadcast_date: Optional[str] = None
    broadcast_time: Optional[str] = None


@dataclass
class BatchSummary:
    batch_id: int
    succeeded: int = 0
    failed: int = 0
    total_processing_seconds: float = 0.0
    total_duration_seconds: float = 0.0
    estimated_cost: float = 0.0
    errors: Dict[int, str] = field(default_factory=dict)


def open_batch(
    db: Session,
    *,
    total: int,
    batch_id: Optional[int] = None,
    radio_id: Optional[int] = None,
    user_id: Optional[str] = None,
    name: Optional[str] = None,
) -> BatchJob:
    """Reuse a labeled batch or create a new one, in ``processing`` state."""
    if batch_id:
        batch = db.get(BatchJob, batch_id)
        if batch is None or (user_id and batch.user_id and batch.user_id != user_id):
            raise InputError(f"Lote {batch_id} no encontrado")
        batch.total_files = max(batch.total_files or 0, total)
    else:
        batch = BatchJob(
            radio_id=radio_id,
            user_id=user_id,
            name=name or f"Lote {datetime.now(timezone.utc):%Y-%m-%d %H:%M}",
            total_files=total,
        )
        db.add(batch)
    batch.status = BATCH_PROCESSING
    batch.completed_at = None
    db.commit()
    db.refresh(batch)
    return batch


def _refusal(row: Optional[Verification], batch: BatchJob, verification_id: int) -> Optional[str]:
    """Why an item cannot run in this batch, or None."""
    if row is None:
        return f"Verificación {verification_id} no encontrada"
    if batch.user_id and row.user_id and row.user_id != batch.user_id:
        return f"Verificación {verification_id} no encontrada"
    if batch.radio_id and row.radio_id != batch.radio_id:
        return f"Verificación {verification_id} no pertenece a la radio del lote"
    if row.status != STATUS_PENDING:
        return f"Verificación {verification_id} ya está en estado '{row.status}'"
    return None


async def run_batch(
    db: Session,
    *,
    phrases: List[str],
    items: List[BatchItem],
    batch: Optional[BatchJob] = None,
    batch_id: Optional[int] = None,
    radio_id: Optional[int] = None,
    user_id: Optional[str] = None,
    name: Optional[str] = None,
    runner: Runner = verify_and_persist,
) -> BatchSummary:
    settings = get_settings()
    if batch is None:
        batch = open_batch(db, total=len(items), batch_id=batch_id, radio_id=radio_id, user_id=user_id, name=name)
    summary = BatchSummary(batch_id=batch.id)
    logger.info("batch.start", batch_id=batch.id, items=len(items))

    try:
        for index, item in enumerate(items, 1):
            started = time.monotonic()
            processing_seconds = 0.0
            row = db.get(Verification, item.verification_id)
            refusal = _refusal(row, batch, item.verification_id)
            if refusal:
                # counted as failed; the row itself is left untouched
                logger.warning(
                    "batch.item_skipped",
                    batch_id=batch.id,
                    verification_id=item.verification_id,
                    reason=refusal,
                )
                succeeded = False
                summary.errors[item.verification_id] = refusal
            else:
                try:
                    apply_broadcast_overrides(
                        db, row.id, item.broadcast_date, item.broadcast_time, batch_id=batch.id
                    )
                    db.refresh(row)
                    outcome = await runner(db, VerificationInput.from_pending_row(row, phrases))
                except Exception as exc:
                    logger.error(
                        "batch.item_failed",
                        batch_id=batch.id,
                        verification_id=item.verification_id,
                        item=index,
                        error=str(exc),
                    )
                    mark_error(db, item.verification_id, str(exc))
                    succeeded = False
                    summary.errors[item.verification_id] = str(exc)
                else:
                    succeeded = True
                    processing_seconds = outcome.processing_seconds

            elapsed = time.monotonic() - started
            if succeeded:
                summary.succeeded += 1
            else:
                summary.failed += 1
            summary.total_processing_seconds += processing_seconds
            summary.total_duration_seconds += elapsed
            summary.estimated_cost = round(settings.compute_cost_per_second * summary.total_processing_seconds, 6)

            # a reused batch keeps the totals of earlier runs
            batch.processed_files = (batch.processed_files or 0) + int(succeeded)
            batch.failed_files = (batch.failed_files or 0) + int(not succeeded)
            batch.total_processing_seconds = (batch.total_processing_seconds or 0.0) + processing_seconds
            batch.total_duration_seconds = (batch.total_duration_seconds or 0.0) + elapsed
            batch.estimated_cost = round(settings.compute_cost_per_second * batch.total_processing_seconds, 6)
            db.commit()
            logger.info("batch.progress", batch_id=batch.id, done=index, total=len(items))

        batch.status = BATCH_COMPLETED
        batch.completed_at = utcnow()
        db.commit()
    except Exception as exc:
        db.rollback()
        batch.status = BATCH_ERROR
        db.commit()
        logger.error("batch.aborted", batch_id=batch.id, error=str(exc))
        raise

    logger.info(
        "batch.completed",
        batch_id=batch.id,
        succeeded=summary.succeeded,
        failed=summary.failed,
        cost=summary.estimated_cost,
    )
    return summary
