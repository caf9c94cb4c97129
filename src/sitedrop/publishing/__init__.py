"""Upload authorization, archive extraction and publishing."""

from sitedrop.publishing.authorizer import (
    STAGED_ARCHIVE_KEY,
    UploadAuthorizer,
    UploadGrant,
    check_upload_key,
    finalize_path_for,
)
from sitedrop.publishing.errors import (
    BadRequestError,
    ExtractionFailedError,
    InvalidArchiveEntryError,
    InvalidArchiveError,
    PayloadTooLargeError,
    PublishError,
    StagedArchiveNotFoundError,
    UnauthorizedError,
)
from sitedrop.publishing.extractor import ArchiveExtractor, ExtractionResult
from sitedrop.publishing.finalizer import PublishingFinalizer, PublishResult

__all__ = [
    "STAGED_ARCHIVE_KEY",
    "ArchiveExtractor",
    "BadRequestError",
    "ExtractionFailedError",
    "ExtractionResult",
    "InvalidArchiveEntryError",
    "InvalidArchiveError",
    "PayloadTooLargeError",
    "PublishError",
    "PublishResult",
    "PublishingFinalizer",
    "StagedArchiveNotFoundError",
    "UnauthorizedError",
    "UploadAuthorizer",
    "UploadGrant",
    "check_upload_key",
    "finalize_path_for",
]
