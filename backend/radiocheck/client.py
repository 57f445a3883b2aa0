"""
Client for the verification stream.

    result = asyncio.run(stream_verification(
        "http://localhost:8000", token, {"radioId": 1, "phrases": ["..."], "driveFileId": "..."},
    ))
"""
from typing import Any, Callable, Dict, Optional

import httpx

from radiocheck.services.progress_stream import ProgressFrame, read_progress_stream


async def stream_verification(
    base_url: str,
    token: str,
    payload: Dict[str, Any],
    *,
    on_progress: Optional[Callable[[ProgressFrame], None]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    POST to ``/api/verify`` and return the ``result`` frame payload.

    Raises:
        StreamError: the server sent an ``error`` frame
        StreamClosedError: the connection ended without a terminal frame
    """
    client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(None, connect=30.0))
    try:
        async with client.stream(
            "POST",
            f"{base_url.rstrip('/')}/api/verify",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        ) as response:
            response.raise_for_status()
            return await read_progress_stream(response.aiter_bytes(), on_progress=on_progress)
    finally:
        if http_client is None:
            await client.aclose()
