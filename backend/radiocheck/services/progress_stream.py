"""
Newline-delimited JSON progress stream.

A verification request answers with one long-lived chunked response made of
three frame kinds::

    {"type": "progress", "percentage": 30, "message": "..."}
    {"type": "result", "data": {...}}
    {"type": "error", "error": "..."}

Exactly one ``result`` or ``error`` frame ends the stream. ``progress``
frames are advisory.
"""
from __future__ import annotations

import asyncio
import codecs
from typing import Annotated, Any, AsyncIterable, AsyncIterator, Callable, List, Literal, Optional, Union

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = structlog.get_logger()

NDJSON_MEDIA_TYPE = "application/x-ndjson"
CLOSED_WITHOUT_RESULT = "Conexión cerrada sin resultados"


class ProgressFrame(BaseModel):
    type: Literal["progress"] = "progress"
    percentage: int
    message: str


class ResultFrame(BaseModel):
    type: Literal["result"] = "result"
    data: Any = None


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    error: str


Frame = Annotated[Union[ProgressFrame, ResultFrame, ErrorFrame], Field(discriminator="type")]
_frame_adapter: TypeAdapter = TypeAdapter(Frame)


def encode_frame(frame: BaseModel) -> bytes:
    return (frame.model_dump_json() + "\n").encode("utf-8")


class ProgressStream:
    """Append-only producer side of a stream."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def progress(self, percentage: float, message: str) -> None:
        if self._closed:
            return
        self._queue.put_nowait(ProgressFrame(percentage=int(round(percentage)), message=message))

    def result(self, data: Any) -> None:
        self._finish(ResultFrame(data=data))

    def error(self, message: str) -> None:
        self._finish(ErrorFrame(error=message))

    def _finish(self, frame: BaseModel) -> None:
        if self._closed:
            logger.warning("stream.extra_terminal_frame", frame_type=frame.type)
            return
        self._closed = True
        self._queue.put_nowait(frame)
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[bytes]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield encode_frame(frame)


class StreamError(Exception):
    """The server ended the stream with an ``error`` frame."""


class StreamClosedError(StreamError):
    """The stream ended without a terminal frame."""


class FrameDecoder:
    """Incremental decoder; tolerates frames and UTF-8 sequences split across chunks."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[BaseModel]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [frame for frame in map(self._parse, lines) if frame is not None]

    def flush(self) -> List[BaseModel]:
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        frame = self._parse(rest)
        return [frame] if frame is not None else []

    @staticmethod
    def _parse(line: str) -> Optional[BaseModel]:
        line = line.strip()
        if not line:
            return None
        try:
            return _frame_adapter.validate_json(line)
        except ValidationError:
            logger.warning("stream.invalid_line", preview=line[:200])
            return None


async def read_progress_stream(
    chunks: AsyncIterable[bytes],
    on_progress: Optional[Callable[[ProgressFrame], None]] = None,
) -> Any:
    """
    Consume a stream and return the ``result`` payload.

    Raises:
        StreamError: an ``error`` frame arrived
        StreamClosedError: the stream closed without ``result``/``error``
    """
    decoder = FrameDecoder()

    def handle(frames: List[BaseModel]) -> Union[ResultFrame, ErrorFrame, None]:
        for frame in frames:
            if isinstance(frame, ProgressFrame):
                if on_progress:
                    on_progress(frame)
            else:
                return frame
        return None

    async for chunk in chunks:
        terminal = handle(decoder.feed(chunk))
        if terminal is not None:
            break
    else:
        terminal = handle(decoder.flush())

    if isinstance(terminal, ResultFrame):
        return terminal.data
    if isinstance(terminal, ErrorFrame):
        raise StreamError(terminal.error)
    raise StreamClosedError(CLOSED_WITHOUT_RESULT)
