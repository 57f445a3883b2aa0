import asyncio
import json
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from radiocheck.api.deps import get_claimable_verification, get_current_user, get_db, get_owned_radio
from radiocheck.db.session import SessionLocal
from radiocheck.schemas import ReverifyRequest, ReverifyResponse, VerifyRequest
from radiocheck.services.audio_acquisition import AudioSource
from radiocheck.services.errors import InputError, UpstreamError, VerificationError
from radiocheck.services.persistence import mark_error
from radiocheck.services.phrase_matcher import match_phrases
from radiocheck.services.pipeline import VerificationInput, verify_and_persist
from radiocheck.services.progress_stream import NDJSON_MEDIA_TYPE, ProgressStream

logger = structlog.get_logger()
router = APIRouter(tags=["verify"])

# strong references so in-flight runs are not garbage collected
_running: set = set()


async def _run_verification(params: VerificationInput, stream: ProgressStream) -> None:
    db = SessionLocal()
    try:
        outcome = await verify_and_persist(db, params, sink=stream.progress)
        stream.result(outcome.to_result().model_dump())
    except VerificationError as exc:
        logger.warning("verify.failed", verification_id=params.verification_id, error=str(exc))
        if params.verification_id and not isinstance(exc, InputError):
            mark_error(db, params.verification_id, str(exc))
        stream.error(str(exc))
    except Exception as exc:
        logger.error("verify.unexpected_error", verification_id=params.verification_id, error=str(exc))
        if params.verification_id:
            mark_error(db, params.verification_id, str(exc))
        stream.error(f"Error interno: {exc}")
    finally:
        db.close()


def stream_verification(params: VerificationInput) -> StreamingResponse:
    """Start the run in its own task and stream its frames as NDJSON."""
    stream = ProgressStream()
    task = asyncio.create_task(_run_verification(params, stream))
    _running.add(task)
    task.add_done_callback(_running.discard)
    return StreamingResponse(stream.frames(), media_type=NDJSON_MEDIA_TYPE)


@router.post("/verify")
async def verify(
    payload: VerifyRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    get_owned_radio(db, payload.radio_id, user_id)
    if payload.verification_id:
        get_claimable_verification(db, payload.verification_id, payload.radio_id, user_id)
    return stream_verification(VerificationInput.from_request(payload, user_id))


def _parse_phrases(raw: str) -> List[str]:
    try:
        phrases = json.loads(raw)
    except json.JSONDecodeError:
        phrases = raw.splitlines()
    if not isinstance(phrases, list):
        raise HTTPException(status_code=400, detail="phrases must be a JSON array")
    return [str(p).strip() for p in phrases if str(p).strip()]


@router.post("/verify/upload")
async def verify_upload(
    audio: UploadFile = File(...),
    phrases: str = Form(...),
    radio_id: int = Form(..., alias="radioId"),
    broadcast_date: Optional[str] = Form(default=None, alias="broadcastDate"),
    broadcast_time: Optional[str] = Form(default=None, alias="broadcastTime"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    get_owned_radio(db, radio_id, user_id)
    data = await audio.read()
    params = VerificationInput(
        radio_id=radio_id,
        phrases=_parse_phrases(phrases),
        source=AudioSource(upload=data, upload_name=audio.filename),
        user_id=user_id,
        file_name=audio.filename,
        broadcast_date=broadcast_date,
        broadcast_time=broadcast_time,
    )
    return stream_verification(params)


@router.post("/reverify", response_model=ReverifyResponse)
async def reverify(payload: ReverifyRequest, user_id: str = Depends(get_current_user)):
    """Re-run only the phrase matcher against a stored transcript."""
    phrases = [p.strip() for p in payload.phrases if p and p.strip()]
    if not payload.transcription or not phrases:
        raise HTTPException(status_code=400, detail="Faltan campos requeridos (transcripción o frases)")
    try:
        analysis = await asyncio.to_thread(match_phrases, payload.transcription, phrases)
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ReverifyResponse(analysis=analysis)
