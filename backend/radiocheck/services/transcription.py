"""
Transcription via the RunPod faster-whisper serverless endpoint.

Jobs are submitted asynchronously (``/run``) and polled (``/status/{id}``)
once per interval until they reach COMPLETED or FAILED, or until the attempt
ceiling is hit. The endpoint reports no fractional progress, so callers get
the attempt number and derive coarse percentages from it.
"""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from radiocheck.core.config import get_settings
from radiocheck.services.errors import (
    TranscriptionFailedError,
    TranscriptionTimeoutError,
    UpstreamError,
)

logger = structlog.get_logger()

INITIAL_PROMPT = (
    "Esta es una grabación de radio que contiene música de fondo, canciones y publicidad "
    "mezclada con locución. Transcribe TODO lo que se hable, incluso si hay música sonando "
    "fuerte o si son letras de canciones. No omitas nada."
)

# Greedy decoding with word timestamps; thresholds tuned for speech over music.
DECODE_CONFIG: Dict[str, Any] = {
    "model": "turbo",
    "transcription": "plain_text",
    "translate": False,
    "temperature": 0,
    "best_of": 1,
    "beam_size": 1,
    "patience": 1,
    "suppress_tokens": "-1",
    "condition_on_previous_text": False,
    "temperature_increment_on_fallback": 0.2,
    "compression_ratio_threshold": 2.4,
    "logprob_threshold": -1.0,
    "no_speech_threshold": 0.8,
    "word_timestamps": True,
    "initial_prompt": INITIAL_PROMPT,
}

TIMEOUT_MESSAGE = "Tiempo de espera agotado para la transcripción."

PollCallback = Callable[[int, int], Optional[Awaitable[None]]]


def _normalize_segments(raw: Any) -> List[Dict[str, Any]]:
    segments: List[Dict[str, Any]] = []
    for seg in raw or []:
        if not isinstance(seg, dict):
            continue
        segments.append(
            {
                "start": float(seg.get("start") or 0.0),
                "end": float(seg.get("end") or 0.0),
                "text": str(seg.get("text") or "").strip(),
            }
        )
    return segments


@dataclass
class TranscriptionResult:
    segments: List[Dict[str, Any]] = field(default_factory=list)
    text: Optional[str] = None
    raw_output: Any = None
    processing_seconds: float = 0.0

    @classmethod
    def from_output(cls, output: Any, processing_seconds: float = 0.0) -> "TranscriptionResult":
        segments: List[Dict[str, Any]] = []
        text: Optional[str] = None
        if isinstance(output, dict):
            nested = output.get("output") if isinstance(output.get("output"), dict) else {}
            segments = _normalize_segments(output.get("segments") or nested.get("segments"))
            text = output.get("text") or output.get("transcription") or nested.get("text")
        elif isinstance(output, str):
            text = output
        return cls(segments=segments, text=text, raw_output=output, processing_seconds=processing_seconds)

    @property
    def context(self) -> str:
        """Transcript as sent to the phrase matcher."""
        if self.segments:
            return json.dumps(self.segments, indent=2, ensure_ascii=False)
        if self.text:
            return self.text
        return json.dumps(self.raw_output, ensure_ascii=False)

    @property
    def full_transcription(self) -> str:
        """Transcript as stored on verification rows."""
        if self.segments:
            return json.dumps(self.segments, ensure_ascii=False)
        if self.text:
            return self.text
        return json.dumps(self.raw_output, ensure_ascii=False)


class RunPodClient:
    """Thin async client for one serverless endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        endpoint_id: str,
        base_url: str = "https://api.runpod.ai/v2",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ) -> None:
        self.endpoint_id = endpoint_id
        self._base = f"{base_url.rstrip('/')}/{endpoint_id}"
        self._headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_settings(cls) -> "RunPodClient":
        settings = get_settings()
        if not settings.runpod_api_key or not settings.runpod_endpoint_id:
            raise UpstreamError("Configuración de RunPod incompleta (RUNPOD_API_KEY / RUNPOD_ENDPOINT_ID)")
        return cls(
            api_key=settings.runpod_api_key,
            endpoint_id=settings.runpod_endpoint_id,
            base_url=settings.runpod_base_url,
            timeout=settings.runpod_request_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def submit(self, audio_b64: str, config: Optional[Dict[str, Any]] = None) -> str:
        payload = {"input": {"audio_base64": audio_b64, **(config or DECODE_CONFIG)}}
        try:
            response = await self._http.post(f"{self._base}/run", json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise TranscriptionFailedError(f"Error enviando audio a RunPod: {exc}") from exc
        if response.status_code >= 400:
            raise TranscriptionFailedError(
                f"Error RunPod ({response.status_code}): {response.text[:500]}"
            )
        job_id = response.json().get("id")
        if not job_id:
            raise TranscriptionFailedError("RunPod no devolvió un ID de trabajo")
        return job_id

    async def status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Return the job status document, or None when this poll failed."""
        try:
            response = await self._http.get(f"{self._base}/status/{job_id}", headers=self._headers)
        except httpx.TransportError as exc:
            logger.warning("transcription.poll_transport_error", job_id=job_id, error=str(exc))
            return None
        if response.status_code >= 400:
            logger.warning("transcription.poll_http_error", job_id=job_id, status=response.status_code)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("transcription.poll_invalid_body", job_id=job_id, preview=response.text[:200])
            return None


async def transcribe_audio(
    client: RunPodClient,
    audio_b64: str,
    *,
    on_poll: Optional[PollCallback] = None,
    poll_interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> TranscriptionResult:
    """
    Submit ``audio_b64`` and poll until a terminal state.

    Every poll counts toward ``max_attempts`` (failed polls included), so
    the loop always ends.

    Raises:
        TranscriptionFailedError: job reported FAILED
        TranscriptionTimeoutError: ceiling reached with no terminal state
    """
    settings = get_settings()
    interval = settings.runpod_poll_interval_seconds if poll_interval is None else poll_interval
    ceiling = max_attempts or settings.runpod_max_poll_attempts

    started = time.monotonic()
    job_id = await client.submit(audio_b64)
    logger.info("transcription.job_submitted", job_id=job_id, endpoint=client.endpoint_id)

    for attempt in range(1, ceiling + 1):
        await sleep(interval)
        if on_poll:
            maybe = on_poll(attempt, ceiling)
            if maybe is not None:
                await maybe

        status = await client.status(job_id)
        if status is None:
            continue
        state = status.get("status")
        if state == "COMPLETED":
            wall = time.monotonic() - started
            execution_ms = status.get("executionTime")
            seconds = execution_ms / 1000.0 if execution_ms else wall
            logger.info("transcription.completed", job_id=job_id, attempts=attempt, seconds=seconds)
            return TranscriptionResult.from_output(status.get("output"), processing_seconds=seconds)
        if state == "FAILED":
            error = status.get("error")
            logger.error("transcription.failed", job_id=job_id, error=error)
            raise TranscriptionFailedError(
                f"Error en RunPod: {json.dumps(error, ensure_ascii=False)}", payload=error
            )

    logger.error("transcription.timeout", job_id=job_id, attempts=ceiling)
    raise TranscriptionTimeoutError(TIMEOUT_MESSAGE)
