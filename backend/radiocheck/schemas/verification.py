from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerifyRequest(BaseModel):
    """Body of the single-item verification endpoint.

    Field names follow the web client's camelCase payload; snake_case is
    accepted too so internal callers can build requests directly.
    """

    radio_id: int = Field(alias="radioId")
    phrases: List[str] = Field(default_factory=list)
    drive_file_id: Optional[str] = Field(default=None, alias="driveFileId")
    audio_path: Optional[str] = Field(default=None, alias="audioPath")
    file_name: Optional[str] = Field(default=None, alias="fileName")
    verification_id: Optional[int] = Field(default=None, alias="verificationId")
    broadcast_date: Optional[str] = Field(default=None, alias="broadcastDate")
    broadcast_time: Optional[str] = Field(default=None, alias="broadcastTime")

    model_config = ConfigDict(populate_by_name=True)


class PhraseMatch(BaseModel):
    target_phrase: str
    is_match: bool = False
    transcription: str = ""
    validation_rate: Optional[str] = None  # High|Medium|Low
    start_seconds: Optional[float] = None
    end_seconds: Optional[float] = None
    timestamp_start: str = ""
    timestamp_end: str = ""
    details: Optional[str] = None


class VerificationResult(BaseModel):
    """Payload of the terminal ``result`` frame."""

    success: bool = True
    analysis: List[PhraseMatch]
    full_transcription: str
    audio_path: Optional[str] = None
    processing_seconds: float = 0.0
    verification_ids: List[int] = Field(default_factory=list)


class ReverifyRequest(BaseModel):
    transcription: str
    phrases: List[str]


class ReverifyResponse(BaseModel):
    success: bool = True
    analysis: List[PhraseMatch]


class VerificationOut(BaseModel):
    id: int
    radio_id: int
    batch_id: Optional[int] = None
    audio_path: Optional[str] = None
    drive_file_id: Optional[str] = None
    drive_web_link: Optional[str] = None
    drive_file_name: Optional[str] = None
    drive_parent_folder_id: Optional[str] = None
    drive_folder_name: Optional[str] = None
    target_phrase: Optional[str] = None
    is_match: Optional[bool] = None
    validation_rate: Optional[str] = None
    timestamp_start: Optional[str] = None
    timestamp_end: Optional[str] = None
    transcription: Optional[str] = None
    details: Optional[str] = None
    status: str
    broadcast_date: Optional[str] = None
    broadcast_time: Optional[str] = None
    processing_seconds: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
