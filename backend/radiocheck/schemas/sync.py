from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncRequest(BaseModel):
    radio_id: Optional[int] = Field(default=None, alias="radioId")
    folder_id: Optional[str] = Field(default=None, alias="folderId")
    create_batch: bool = Field(default=False, alias="createBatch")
    batch_name: Optional[str] = Field(default=None, alias="batchName")

    model_config = ConfigDict(populate_by_name=True)


class SyncResponse(BaseModel):
    synced: int
    batch_id: Optional[int] = Field(default=None, serialization_alias="batchId")


class RadioSyncResponse(BaseModel):
    created_radios: int = Field(serialization_alias="createdRadios")
    synced_audios: int = Field(serialization_alias="syncedAudios")
    total_found: int = Field(serialization_alias="totalFound")
