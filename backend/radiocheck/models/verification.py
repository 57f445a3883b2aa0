from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radiocheck.db.base import Base
from radiocheck.models.common import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from radiocheck.models.radio import Radio

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"


class Verification(Base, TimestampMixin):
    __tablename__ = "verifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    radio_id: Mapped[int] = mapped_column(ForeignKey("radios.id"), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String, index=True)
    batch_id: Mapped[Optional[int]] = mapped_column(ForeignKey("batch_jobs.id"), index=True)

    # {radioId}/{filename} inside the audio bucket
    audio_path: Mapped[Optional[str]] = mapped_column(String)
    drive_file_id: Mapped[Optional[str]] = mapped_column(String, index=True)
    drive_web_link: Mapped[Optional[str]] = mapped_column(String)
    drive_file_name: Mapped[Optional[str]] = mapped_column(String)
    drive_parent_folder_id: Mapped[Optional[str]] = mapped_column(String)
    drive_folder_name: Mapped[Optional[str]] = mapped_column(String)

    target_phrase: Mapped[Optional[str]] = mapped_column(Text)
    is_match: Mapped[Optional[bool]] = mapped_column(Boolean)
    validation_rate: Mapped[Optional[str]] = mapped_column(String)  # High|Medium|Low
    start_seconds: Mapped[Optional[float]] = mapped_column(Float)
    end_seconds: Mapped[Optional[float]] = mapped_column(Float)
    timestamp_start: Mapped[Optional[str]] = mapped_column(String)
    timestamp_end: Mapped[Optional[str]] = mapped_column(String)
    transcription: Mapped[Optional[str]] = mapped_column(Text)
    details: Mapped[Optional[str]] = mapped_column(Text)
    full_transcription: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String, default=STATUS_PENDING, index=True)  # pending|completed|error
    broadcast_date: Mapped[Optional[str]] = mapped_column(String)  # YYYY-MM-DD
    broadcast_time: Mapped[Optional[str]] = mapped_column(String)  # HH:MM
    processing_seconds: Mapped[Optional[float]] = mapped_column(Float)

    radio: Mapped["Radio"] = relationship("Radio", back_populates="verifications")
