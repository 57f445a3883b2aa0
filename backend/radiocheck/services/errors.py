"""
Error taxonomy for the verification pipeline.

Every error carries a user-facing message (shown by the web client as a
toast), so ``str(exc)`` is safe to put in an ``error`` frame or on a
verification row.
"""


class VerificationError(Exception):
    """Base class for pipeline failures."""


class InputError(VerificationError):
    """Missing phrases or a missing/ambiguous audio source."""


class CapacityError(VerificationError):
    """Audio is still too large after the whole bitrate ladder."""


class UpstreamError(VerificationError):
    """An external service failed or answered with something unusable."""


class TranscriptionFailedError(UpstreamError):
    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload


class MatcherResponseError(UpstreamError):
    pass


class DriveError(UpstreamError):
    pass


class StorageError(UpstreamError):
    pass


class TranscriptionTimeoutError(VerificationError):
    """Polling ceiling reached without a terminal job state."""


class ConsistencyError(VerificationError):
    """An update that must touch exactly one row touched none."""
