from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from radiocheck.db.base import Base
from radiocheck.models.common import TimestampMixin

BATCH_PROCESSING = "processing"
BATCH_COMPLETED = "completed"
BATCH_ERROR = "error"


class BatchJob(Base, TimestampMixin):
    __tablename__ = "batch_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    radio_id: Mapped[Optional[int]] = mapped_column(ForeignKey("radios.id"), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String, index=True)
    name: Mapped[Optional[str]] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default=BATCH_PROCESSING)  # processing|completed|error
    total_files: Mapped[int] = mapped_column(Integer, default=0)
    processed_files: Mapped[int] = mapped_column(Integer, default=0)
    failed_files: Mapped[int] = mapped_column(Integer, default=0)
    total_duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    total_processing_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_cost: Mapped[float] = mapped_column(Float, default=0.0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
