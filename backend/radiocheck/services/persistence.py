"""
Writes phrase-match outcomes to verification rows.

One audio asset produces one row per phrase. When the asset came from a
pending row, that row is updated with the first result and committed before
the remaining results are inserted as siblings, so readers may briefly see
only the first row.
"""
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from radiocheck.models import BatchJob, Radio, Verification
from radiocheck.models.verification import STATUS_COMPLETED, STATUS_ERROR, STATUS_PENDING
from radiocheck.schemas import PhraseMatch
from radiocheck.services.errors import ConsistencyError

logger = structlog.get_logger()

NO_RESULTS_TRANSCRIPT = "No se encontraron resultados en el análisis."
CONSISTENCY_MESSAGE = (
    "Error crítico: No se pudo actualizar la verificación en la base de datos "
    "(ID no encontrado o permisos insuficientes)."
)

# metadata siblings inherit from the originating row
CLONED_FIELDS = (
    "radio_id",
    "user_id",
    "batch_id",
    "audio_path",
    "drive_file_id",
    "drive_web_link",
    "drive_file_name",
    "drive_parent_folder_id",
    "drive_folder_name",
    "broadcast_date",
    "broadcast_time",
    "created_at",
)


def result_fields(match: PhraseMatch) -> Dict[str, Any]:
    return {
        "target_phrase": match.target_phrase,
        "is_match": match.is_match,
        "transcription": match.transcription,
        "validation_rate": match.validation_rate,
        "start_seconds": match.start_seconds,
        "end_seconds": match.end_seconds,
        "timestamp_start": match.timestamp_start,
        "timestamp_end": match.timestamp_end,
        "details": match.details,
    }


def _placeholder_fields() -> Dict[str, Any]:
    return {"is_match": False, "transcription": NO_RESULTS_TRANSCRIPT}


def persist_pending_results(
    db: Session,
    verification_id: int,
    results: List[PhraseMatch],
    *,
    full_transcription: str,
    audio_path: Optional[str] = None,
    processing_seconds: Optional[float] = None,
) -> List[int]:
    """
    Close a pending row with ``results[0]`` and insert ``results[1:]``.

    Returns the ids of every row written, the originating row first.

    Raises:
        ConsistencyError: the pending row could not be updated
    """
    values: Dict[str, Any] = {
        "status": STATUS_COMPLETED,
        "full_transcription": full_transcription,
        "processing_seconds": processing_seconds,
    }
    if audio_path:
        values["audio_path"] = audio_path
    values.update(result_fields(results[0]) if results else _placeholder_fields())

    outcome = db.execute(
        update(Verification)
        .where(Verification.id == verification_id, Verification.status == STATUS_PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount != 1:
        db.rollback()
        logger.error("persist.update_missed", verification_id=verification_id, rowcount=outcome.rowcount)
        raise ConsistencyError(CONSISTENCY_MESSAGE)
    db.commit()

    written = [verification_id]
    if len(results) > 1:
        origin = db.get(Verification, verification_id, populate_existing=True)
        inherited = {field: getattr(origin, field) for field in CLONED_FIELDS}
        siblings = [
            Verification(
                **inherited,
                **result_fields(match),
                status=STATUS_COMPLETED,
                full_transcription=full_transcription,
                processing_seconds=processing_seconds,
            )
            for match in results[1:]
        ]
        db.add_all(siblings)
        db.commit()
        written.extend(sibling.id for sibling in siblings)

    logger.info("persist.pending_closed", verification_id=verification_id, rows=len(written))
    return written


def insert_completed_results(
    db: Session,
    *,
    radio_id: int,
    user_id: Optional[str],
    results: List[PhraseMatch],
    full_transcription: str,
    audio_path: Optional[str] = None,
    file_name: Optional[str] = None,
    drive_file_id: Optional[str] = None,
    broadcast_date: Optional[str] = None,
    broadcast_time: Optional[str] = None,
    processing_seconds: Optional[float] = None,
) -> List[int]:
    """Manual-upload path: one completed row per result, no pending row involved."""
    rows = [
        Verification(
            radio_id=radio_id,
            user_id=user_id,
            audio_path=audio_path,
            drive_file_id=drive_file_id,
            drive_file_name=file_name,
            broadcast_date=broadcast_date,
            broadcast_time=broadcast_time,
            status=STATUS_COMPLETED,
            full_transcription=full_transcription,
            processing_seconds=processing_seconds,
            **fields,
        )
        for fields in ([result_fields(m) for m in results] or [_placeholder_fields()])
    ]
    db.add_all(rows)
    db.commit()
    logger.info("persist.inserted", radio_id=radio_id, rows=len(rows))
    return [row.id for row in rows]


def mark_error(db: Session, verification_id: int, message: str) -> bool:
    """Move a pending row to ``error``. Rows that already completed are left alone."""
    db.rollback()
    outcome = db.execute(
        update(Verification)
        .where(Verification.id == verification_id, Verification.status == STATUS_PENDING)
        .values(status=STATUS_ERROR, transcription=f"Error: {message}")
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if outcome.rowcount != 1:
        logger.warning("persist.mark_error_skipped", verification_id=verification_id)
        return False
    return True


def apply_broadcast_overrides(
    db: Session,
    verification_id: int,
    broadcast_date: Optional[str] = None,
    broadcast_time: Optional[str] = None,
    batch_id: Optional[int] = None,
) -> None:
    """Set caller-supplied air date/time (and batch label) on a pending row."""
    values: Dict[str, Any] = {}
    if broadcast_date:
        values["broadcast_date"] = broadcast_date
    if broadcast_time:
        values["broadcast_time"] = broadcast_time
    if batch_id:
        values["batch_id"] = batch_id
    if not values:
        return
    db.execute(
        update(Verification)
        .where(Verification.id == verification_id, Verification.status == STATUS_PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def delete_verifications(db: Session, ids: List[int], user_id: str) -> Tuple[int, List[str]]:
    """
    Delete the caller's rows among ``ids``.

    Returns the number of rows deleted and the audio paths no remaining row
    points at (sibling rows share one asset), for the caller to remove from
    storage.
    """
    rows = db.scalars(
        select(Verification)
        .join(Radio, Radio.id == Verification.radio_id)
        .where(Verification.id.in_(ids), or_(Verification.user_id == user_id, Radio.user_id == user_id))
    ).all()
    paths = {row.audio_path for row in rows if row.audio_path}
    for row in rows:
        db.delete(row)
    db.flush()
    still_used = set()
    if paths:
        still_used = set(db.scalars(select(Verification.audio_path).where(Verification.audio_path.in_(paths))))
    db.commit()
    logger.info("persist.deleted", requested=len(ids), deleted=len(rows))
    return len(rows), sorted(paths - still_used)


def delete_radio(db: Session, radio: Radio) -> int:
    """Delete a radio with its verifications and batches; returns the verification count."""
    radio_id = radio.id
    removed = db.execute(delete(Verification).where(Verification.radio_id == radio_id)).rowcount
    db.execute(delete(BatchJob).where(BatchJob.radio_id == radio_id))
    db.execute(delete(Radio).where(Radio.id == radio_id))
    db.commit()
    logger.info("persist.radio_deleted", radio_id=radio_id, verifications=removed)
    return removed
