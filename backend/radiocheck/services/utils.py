import re
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

import structlog
from openai import OpenAI

from radiocheck.core.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

# Tried in order; the dashed form is the recorder default.
BROADCAST_PATTERNS = [
    re.compile(r"_(\d{4})-(\d{2})-(\d{2})-(\d{2})(\d{2})"),
    re.compile(r"_(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})"),
]


def get_openai_client() -> Optional[OpenAI]:
    if not settings.openai_api_key:
        return None
    return OpenAI(api_key=settings.openai_api_key)


def run_cmd(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a shell command and return exit code, stdout, stderr."""
    logger.info("exec.cmd", cmd=" ".join(shlex.quote(c) for c in cmd))
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    out, err = proc.communicate()
    return proc.returncode, out, err


def format_timestamp(seconds: Optional[float]) -> str:
    """Format offsets as ``H:MM:SS`` past the first hour, ``MM:SS`` otherwise."""
    if not seconds:
        return ""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def extract_broadcast_datetime(filename: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Best-effort broadcast date/time from a recorder filename.

    ``02-RADIO-X_2026-01-30-0644.mp3`` -> ("2026-01-30", "06:44")
    ``x_20260131064221304.aac``        -> ("2026-01-31", "06:42")
    """
    if not filename:
        return None, None
    for pattern in BROADCAST_PATTERNS:
        match = pattern.search(filename)
        if match:
            year, month, day, hour, minute = match.groups()
            return f"{year}-{month}-{day}", f"{hour}:{minute}"
    return None, None


def file_extension(filename: Optional[str], default: str = "mp3") -> str:
    suffix = Path(filename or "").suffix.lstrip(".").lower()
    return suffix or default
