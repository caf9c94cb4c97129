"""Publishing pipeline error taxonomy.

Every failure the pipeline surfaces to a client is a PublishError carrying
its HTTP status, a machine-readable code and a message that is safe to
show: no object keys, bucket names or backend error text.
"""

from __future__ import annotations


class PublishError(Exception):
    """Base class for client-visible publishing failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, *, tenant_id: str | None = None) -> None:
        self.message = message or self.default_message
        self.tenant_id = tenant_id
        super().__init__(self.message)


class UnauthorizedError(PublishError):
    """Missing or mismatching shared secret."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class BadRequestError(PublishError):
    """Malformed request: missing fields, bad identifiers, wrong content type."""

    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class StagedArchiveNotFoundError(BadRequestError):
    """No staged archive exists for the tenant (never uploaded or already published)."""

    code = "STAGED_ARCHIVE_NOT_FOUND"
    default_message = "No staged archive for this upload"


class InvalidArchiveError(BadRequestError):
    """The staged object is not a readable zip archive."""

    code = "INVALID_ARCHIVE"
    default_message = "Uploaded file is not a valid zip archive"


class InvalidArchiveEntryError(BadRequestError):
    """An entry path escapes the tenant root or is otherwise malformed."""

    code = "INVALID_ARCHIVE_ENTRY"
    default_message = "Archive contains an invalid entry path"


class PayloadTooLargeError(PublishError):
    """The archive exceeds the configured size ceiling."""

    status_code = 413
    code = "PAYLOAD_TOO_LARGE"
    default_message = "Payload too large"


class ExtractionFailedError(PublishError):
    """A storage write failed mid-extraction; partial output may remain."""

    status_code = 500
    code = "EXTRACTION_FAILED"
    default_message = "Extraction failed; retry the upload later"
