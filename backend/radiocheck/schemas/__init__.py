from radiocheck.schemas.verification import (
    VerifyRequest,
    PhraseMatch,
    VerificationResult,
    ReverifyRequest,
    ReverifyResponse,
    VerificationOut,
)
from radiocheck.schemas.batch import BatchRunItem, BatchRunRequest, BatchJobOut
from radiocheck.schemas.sync import SyncRequest, SyncResponse, RadioSyncResponse
from radiocheck.schemas.compute import ComputeStatusOut, ComputeToggleRequest
from radiocheck.schemas.folders import (
    FolderCreateRequest,
    FolderCreateResponse,
    FolderOut,
    FolderListResponse,
    RadioDeleteRequest,
    RadioDeleteResponse,
    VerificationDeleteRequest,
    VerificationDeleteResponse,
)

__all__ = [
    "VerifyRequest",
    "PhraseMatch",
    "VerificationResult",
    "ReverifyRequest",
    "ReverifyResponse",
    "VerificationOut",
    "BatchRunItem",
    "BatchRunRequest",
    "BatchJobOut",
    "SyncRequest",
    "SyncResponse",
    "RadioSyncResponse",
    "ComputeStatusOut",
    "ComputeToggleRequest",
    "FolderCreateRequest",
    "FolderCreateResponse",
    "FolderOut",
    "FolderListResponse",
    "VerificationDeleteRequest",
    "RadioDeleteRequest",
    "RadioDeleteResponse",
    "VerificationDeleteResponse",
]
