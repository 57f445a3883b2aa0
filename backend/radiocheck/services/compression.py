"""
Adaptive audio compression.

The transcription endpoint accepts base64 audio inside a JSON body, so the
payload has to stay below a hard size ceiling. Small files pass through
untouched; larger ones are re-encoded to mono 16 kHz MP3, walking a
descending bitrate ladder until the result fits.
"""
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from radiocheck.core.config import get_settings
from radiocheck.services import utils
from radiocheck.services.errors import CapacityError

logger = structlog.get_logger()
settings = get_settings()

TOO_LARGE_MESSAGE = (
    "El archivo de audio es demasiado largo o grande para ser procesado "
    "(incluso comprimido supera los límites). Por favor, suba un archivo más corto."
)


def compress_audio(data: bytes, filename: str, bitrate: str) -> Optional[bytes]:
    """Re-encode once at ``bitrate``. Returns None if ffmpeg fails."""
    ext = utils.file_extension(filename)
    with tempfile.TemporaryDirectory(prefix="radiocheck-") as tmp:
        source = Path(tmp) / f"input.{ext}"
        target = Path(tmp) / f"output-{bitrate}.mp3"
        source.write_bytes(data)
        cmd = [
            settings.ffmpeg_bin,
            "-y",
            "-i",
            str(source),
            "-vn",
            "-ac",
            "1",
            "-ar",
            "16000",
            "-b:a",
            bitrate,
            "-f",
            "mp3",
            str(target),
        ]
        code, _, err = utils.run_cmd(cmd)
        if code != 0 or not target.exists():
            logger.error("compression.ffmpeg_failed", bitrate=bitrate, error=err[-500:])
            return None
        return target.read_bytes()


def optimize_audio(
    data: bytes,
    filename: str,
    *,
    max_bytes: Optional[int] = None,
    passthrough_bytes: Optional[int] = None,
    bitrates: Optional[List[str]] = None,
    on_attempt: Optional[Callable[[str], None]] = None,
) -> bytes:
    """
    Return ``data`` small enough to submit for transcription.

    Args:
        data: Raw audio bytes
        filename: Original name, only used for the temp file extension
        max_bytes: Ceiling for the encoded output
        passthrough_bytes: Inputs at or below this size are returned as-is
        bitrates: Ladder to walk, highest first
        on_attempt: Optional callback(bitrate) before each encode

    Raises:
        CapacityError: every bitrate still produced output above ``max_bytes``
    """
    max_bytes = max_bytes if max_bytes is not None else settings.audio_max_payload_bytes
    passthrough_bytes = passthrough_bytes if passthrough_bytes is not None else settings.audio_passthrough_bytes
    ladder = bitrates or settings.audio_bitrate_ladder

    if len(data) <= min(passthrough_bytes, max_bytes):
        return data

    for bitrate in ladder:
        if on_attempt:
            on_attempt(bitrate)
        encoded = compress_audio(data, filename, bitrate)
        if encoded is None:
            continue
        logger.info(
            "compression.attempt",
            bitrate=bitrate,
            input_size=len(data),
            output_size=len(encoded),
            fits=len(encoded) <= max_bytes,
        )
        if len(encoded) <= max_bytes:
            return encoded

    raise CapacityError(TOO_LARGE_MESSAGE)
