"""Error taxonomy and the outcome type returned by public operations.

Stores and collaborators raise ``SyncError`` subclasses. The conversation
store, message store and orchestrator catch them at their boundary and hand a
``SyncResult`` back to the caller instead, so no exception crosses a public
operation.
"""

from enum import Enum

from pydantic import BaseModel, Field


class SyncErrorCode(str, Enum):
    """Error codes carried by a failed SyncResult."""

    NOT_FOUND = "not_found"
    UPLOAD_FAILED = "upload_failed"
    URL_RESOLUTION_FAILED = "url_resolution_failed"
    WRITE_FAILED = "write_failed"
    READ_FAILED = "read_failed"
    MISSING_IDENTITY = "missing_identity"
    INVALID_MESSAGE = "invalid_message"
    INVALID_KEY = "invalid_key"


class SyncError(Exception):
    """Base class for failures raised below the public operations."""

    code: SyncErrorCode = SyncErrorCode.WRITE_FAILED

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NotFoundError(SyncError):
    """An expected key path has no value."""

    code = SyncErrorCode.NOT_FOUND


class WriteFailedError(SyncError):
    """The store rejected or timed out a set."""

    code = SyncErrorCode.WRITE_FAILED


class ReadFailedError(SyncError):
    """The store could not serve a read."""

    code = SyncErrorCode.READ_FAILED


class InvalidKeyError(SyncError, ValueError):
    """A key path contains characters the store rejects."""

    code = SyncErrorCode.INVALID_KEY


class UploadFailedError(SyncError):
    """The attachment bytes could not be uploaded."""

    code = SyncErrorCode.UPLOAD_FAILED


class UrlResolutionFailedError(SyncError):
    """The upload succeeded but no download URL could be resolved."""

    code = SyncErrorCode.URL_RESOLUTION_FAILED


class SyncResult(BaseModel):
    """Outcome of a public operation. Truthy on success."""

    ok: bool = Field(..., description="Whether the operation completed")
    error: SyncErrorCode | None = Field(None, description="Error code if failed")
    detail: str | None = Field(None, description="Human-readable failure detail")
    conversation_id: str | None = Field(None, description="Conversation touched by the operation")
    message_id: str | None = Field(None, description="Message written by the operation")

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, conversation_id: str | None = None, message_id: str | None = None) -> "SyncResult":
        return cls(ok=True, conversation_id=conversation_id, message_id=message_id)

    @classmethod
    def failure(
        cls,
        error: SyncErrorCode,
        detail: str | None = None,
        conversation_id: str | None = None,
        message_id: str | None = None,
    ) -> "SyncResult":
        return cls(
            ok=False,
            error=error,
            detail=detail,
            conversation_id=conversation_id,
            message_id=message_id,
        )

    @classmethod
    def from_error(cls, exc: SyncError, conversation_id: str | None = None) -> "SyncResult":
        """Build a failed result from a raised SyncError."""
        return cls.failure(exc.code, str(exc), conversation_id=conversation_id)
