"""Upload authorization and staging credential issuance."""

from __future__ import annotations

import hmac
import logging
import uuid
from dataclasses import dataclass

from sitedrop.archive import ZIP_MEDIA_TYPES
from sitedrop.config import Settings
from sitedrop.publishing.errors import BadRequestError, UnauthorizedError
from sitedrop.storage import ObjectStore, WriteCredential

logger = logging.getLogger(__name__)

STAGED_ARCHIVE_KEY = "archive.zip"
DEFAULT_ARCHIVE_CONTENT_TYPE = "application/zip"


def finalize_path_for(tenant_id: str) -> str:
    """Return the API path that triggers finalization for a tenant."""
    return f"/uploads/{tenant_id}/finalize"


def check_upload_key(provided: str | None, expected: str | None) -> None:
    """Compare the caller's key with the shared secret.

    Comparison is byte-exact and constant-time. An unset secret rejects
    every caller.

    Raises:
        UnauthorizedError: If the key is missing or does not match.
    """
    if not provided or not expected:
        raise UnauthorizedError()
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError()


@dataclass(frozen=True)
class UploadGrant:
    """Result of a successful authorization."""

    tenant_id: str
    credential: WriteCredential
    finalize_path: str

    def to_dict(self) -> dict[str, object]:
        return {
            "tenant_id": self.tenant_id,
            "upload": self.credential.to_dict(),
            "finalize_path": self.finalize_path,
        }


class UploadAuthorizer:
    """Mints tenants and issues write-only staging credentials."""

    def __init__(self, settings: Settings, staging_store: ObjectStore) -> None:
        self._settings = settings
        self._staging_store = staging_store

    def authorize(
        self,
        api_key: str | None,
        content_type: str = DEFAULT_ARCHIVE_CONTENT_TYPE,
    ) -> UploadGrant:
        """Authorize one upload.

        Args:
            api_key: Value of the caller's ``api-key`` header, if any.
            content_type: Media type the client declares for the archive.
                The issued credential only accepts uploads carrying it.

        Returns:
            UploadGrant with a fresh tenant id, the staging credential and
            the finalize path.

        Raises:
            UnauthorizedError: Bad or missing key. Nothing is issued.
            BadRequestError: content_type is not a zip media type.
        """
        try:
            check_upload_key(api_key, self._settings.upload_key)
        except UnauthorizedError:
            logger.warning("Upload authorization rejected: bad or missing key")
            raise

        normalized_type = content_type.split(";", 1)[0].strip().lower()
        if normalized_type not in ZIP_MEDIA_TYPES:
            raise BadRequestError("Archive content type must be application/zip")

        tenant_id = str(uuid.uuid4())
        credential = self._staging_store.presign_put(
            tenant_id,
            STAGED_ARCHIVE_KEY,
            content_type=normalized_type,
            expires_in=self._settings.credential_expiry_seconds,
        )

        logger.info("Upload authorized: tenant=%s", tenant_id)

        return UploadGrant(
            tenant_id=tenant_id,
            credential=credential,
            finalize_path=finalize_path_for(tenant_id),
        )
