from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchRunItem(BaseModel):
    verification_id: int = Field(alias="verificationId")
    broadcast_date: Optional[str] = Field(default=None, alias="broadcastDate")
    broadcast_time: Optional[str] = Field(default=None, alias="broadcastTime")

    model_config = ConfigDict(populate_by_name=True)


class BatchRunRequest(BaseModel):
    phrases: List[str]
    items: List[BatchRunItem]
    batch_id: Optional[int] = Field(default=None, alias="batchId")
    radio_id: Optional[int] = Field(default=None, alias="radioId")
    name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class BatchJobOut(BaseModel):
    id: int
    radio_id: Optional[int] = None
    name: Optional[str] = None
    status: str
    total_files: int
    processed_files: int
    failed_files: int
    total_duration_seconds: float
    total_processing_seconds: float
    estimated_cost: float
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
