"""
Single-item verification pipeline.

lock -> acquire -> compress -> publish copy -> transcribe -> match -> persist
"""
from __future__ import annotations

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from radiocheck.models import Verification
from radiocheck.schemas import PhraseMatch, VerificationResult, VerifyRequest
from radiocheck.services import utils
from radiocheck.services.audio_acquisition import (
    SOURCE_DRIVE,
    SOURCE_STORAGE,
    AudioSource,
    acquire_audio,
    portable_object_key,
    publish_portable_copy,
    validate_request,
)
from radiocheck.services.compression import optimize_audio
from radiocheck.services.drive import DriveClient
from radiocheck.services.errors import StorageError
from radiocheck.services.persistence import (
    apply_broadcast_overrides,
    insert_completed_results,
    persist_pending_results,
)
from radiocheck.services.phrase_matcher import match_phrases
from radiocheck.services.progress_tracker import ProgressSink, ProgressTracker, create_verification_tracker
from radiocheck.services.resource_lock import compute_lock
from radiocheck.services.storage import MinioStorageService, build_storage_service
from radiocheck.services.transcription import RunPodClient, transcribe_audio

logger = structlog.get_logger()

ACQUIRE_MESSAGES = {
    "upload": "Procesando audio subido...",
    "storage": "Descargando audio desde Storage...",
    "drive": "Descargando archivo desde Google Drive...",
}

Matcher = Callable[[str, List[str]], List[PhraseMatch]]


@dataclass
class VerificationInput:
    radio_id: int
    phrases: List[str]
    source: AudioSource
    user_id: Optional[str] = None
    verification_id: Optional[int] = None
    file_name: Optional[str] = None
    broadcast_date: Optional[str] = None
    broadcast_time: Optional[str] = None

    @classmethod
    def from_request(cls, payload: VerifyRequest, user_id: Optional[str] = None) -> "VerificationInput":
        return cls(
            radio_id=payload.radio_id,
            phrases=payload.phrases,
            source=AudioSource(storage_path=payload.audio_path, drive_file_id=payload.drive_file_id),
            user_id=user_id,
            verification_id=payload.verification_id,
            file_name=payload.file_name,
            broadcast_date=payload.broadcast_date,
            broadcast_time=payload.broadcast_time,
        )

    @classmethod
    def from_pending_row(cls, row: Verification, phrases: List[str]) -> "VerificationInput":
        if row.drive_file_id:
            source = AudioSource(drive_file_id=row.drive_file_id)
        else:
            source = AudioSource(storage_path=row.audio_path)
        return cls(
            radio_id=row.radio_id,
            phrases=phrases,
            source=source,
            user_id=row.user_id,
            verification_id=row.id,
            file_name=row.drive_file_name,
            broadcast_date=row.broadcast_date,
            broadcast_time=row.broadcast_time,
        )


@dataclass
class VerificationOutcome:
    analysis: List[PhraseMatch]
    full_transcription: str
    audio_path: Optional[str]
    processing_seconds: float
    wall_seconds: float = 0.0
    verification_ids: List[int] = field(default_factory=list)

    def to_result(self) -> VerificationResult:
        return VerificationResult(
            analysis=self.analysis,
            full_transcription=self.full_transcription,
            audio_path=self.audio_path,
            processing_seconds=self.processing_seconds,
            verification_ids=self.verification_ids,
        )


def default_storage() -> Optional[MinioStorageService]:
    try:
        return build_storage_service()
    except StorageError as exc:
        logger.warning("pipeline.storage_unavailable", error=str(exc))
        return None


async def run_verification(
    params: VerificationInput,
    *,
    bind: Engine | Connection,
    tracker: Optional[ProgressTracker] = None,
    runpod: Optional[RunPodClient] = None,
    drive: Optional[DriveClient] = None,
    storage: Optional[MinioStorageService] = None,
    matcher: Matcher = match_phrases,
) -> VerificationOutcome:
    """Everything but persistence. Raises VerificationError subclasses."""
    kind = validate_request(params.phrases, params.source)
    tracker = tracker or create_verification_tracker(None, label=params.file_name)
    loop = asyncio.get_running_loop()
    started = time.monotonic()

    if storage is None:
        storage = default_storage()
    own_drive = kind == SOURCE_DRIVE and drive is None
    if own_drive:
        drive = DriveClient.from_settings()
    own_runpod = runpod is None

    def on_attempt(bitrate: str) -> None:
        loop.call_soon_threadsafe(tracker.update, 0.5, f"Optimizando audio ({bitrate})...")

    async def on_poll(attempt: int, ceiling: int) -> None:
        if attempt % 2 == 0:
            percentage = min(85, 30 + attempt // 2)
            tracker.update((percentage - 30) / 60, f"Transcribiendo audio... ({attempt}s)")

    tracker.start_step("lock")
    try:
        with compute_lock(bind):
            tracker.start_step("acquire", ACQUIRE_MESSAGES[kind])
            acquired = await acquire_audio(params.source, storage=storage, drive=drive, file_name=params.file_name)

            tracker.start_step("compress")
            data = await asyncio.to_thread(optimize_audio, acquired.data, acquired.filename, on_attempt=on_attempt)
            logger.info(
                "pipeline.audio_ready",
                radio_id=params.radio_id,
                source=kind,
                original_size=len(acquired.data),
                size=len(data),
            )

            audio_path = acquired.audio_path
            if kind != SOURCE_STORAGE:
                key = portable_object_key(params.radio_id, acquired, params.source.drive_file_id)
                audio_path = await publish_portable_copy(storage, key, data)

            tracker.start_step("transcribe")
            if runpod is None:
                runpod = RunPodClient.from_settings()
            transcript = await transcribe_audio(
                runpod, base64.b64encode(data).decode("ascii"), on_poll=on_poll
            )
    finally:
        if own_runpod and runpod is not None:
            await runpod.aclose()
        if own_drive and drive is not None:
            await drive.aclose()

    tracker.start_step("match")
    analysis = await asyncio.to_thread(matcher, transcript.context, params.phrases)

    return VerificationOutcome(
        analysis=analysis,
        full_transcription=transcript.full_transcription,
        audio_path=audio_path,
        processing_seconds=transcript.processing_seconds,
        wall_seconds=time.monotonic() - started,
    )


async def verify_and_persist(
    db: Session,
    params: VerificationInput,
    *,
    sink: Optional[ProgressSink] = None,
    **services,
) -> VerificationOutcome:
    """Run the pipeline and write its rows; returns the outcome with the row ids."""
    tracker = create_verification_tracker(sink, label=params.file_name)
    started = time.monotonic()
    outcome = await run_verification(params, bind=db.get_bind(), tracker=tracker, **services)

    tracker.start_step("persist")
    if params.verification_id:
        apply_broadcast_overrides(db, params.verification_id, params.broadcast_date, params.broadcast_time)
        outcome.verification_ids = persist_pending_results(
            db,
            params.verification_id,
            outcome.analysis,
            full_transcription=outcome.full_transcription,
            audio_path=outcome.audio_path,
            processing_seconds=outcome.processing_seconds,
        )
    else:
        broadcast_date, broadcast_time = utils.extract_broadcast_datetime(params.file_name or "")
        outcome.verification_ids = insert_completed_results(
            db,
            radio_id=params.radio_id,
            user_id=params.user_id,
            results=outcome.analysis,
            full_transcription=outcome.full_transcription,
            audio_path=outcome.audio_path,
            file_name=params.file_name or params.source.upload_name,
            drive_file_id=params.source.drive_file_id,
            broadcast_date=params.broadcast_date or broadcast_date,
            broadcast_time=params.broadcast_time or broadcast_time,
            processing_seconds=outcome.processing_seconds,
        )
    outcome.wall_seconds = time.monotonic() - started
    tracker.complete_step("Verificación completada")
    return outcome
