from typing import Optional

from pydantic import BaseModel


class ComputeStatusOut(BaseModel):
    endpoint_id: str
    name: Optional[str] = None
    workers_min: int = 0
    workers_max: int = 0
    active_workers: int = 0
    is_on: bool = False
    lock_count: int = 0


class ComputeToggleRequest(BaseModel):
    enable: bool
