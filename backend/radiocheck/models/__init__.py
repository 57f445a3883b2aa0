from radiocheck.models.radio import Radio
from radiocheck.models.batch_job import BatchJob
from radiocheck.models.verification import Verification
from radiocheck.models.resource_lock import ResourceLock

__all__ = [
    "Radio",
    "BatchJob",
    "Verification",
    "ResourceLock",
]
