from typing import List

from pydantic import BaseModel, ConfigDict, Field


class FolderCreateRequest(BaseModel):
    name: str
    parent_id: str = Field(alias="parentId")

    model_config = ConfigDict(populate_by_name=True)


class FolderCreateResponse(BaseModel):
    success: bool = True
    folder_id: str = Field(serialization_alias="folderId")


class FolderOut(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class FolderListResponse(BaseModel):
    success: bool = True
    folders: List[FolderOut]


class VerificationDeleteRequest(BaseModel):
    ids: List[int] = Field(min_length=1)


class VerificationDeleteResponse(BaseModel):
    success: bool = True
    deleted: int
    deleted_objects: int = Field(serialization_alias="deletedObjects")


class RadioDeleteRequest(BaseModel):
    radio_id: int = Field(alias="radioId")

    model_config = ConfigDict(populate_by_name=True)


class RadioDeleteResponse(BaseModel):
    success: bool = True
    deleted_verifications: int = Field(serialization_alias="deletedVerifications")
    deleted_objects: int = Field(serialization_alias="deletedObjects")
    drive_folder_deleted: bool = Field(serialization_alias="driveFolderDeleted")
