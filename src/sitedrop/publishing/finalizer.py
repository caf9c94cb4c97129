"""Publishing finalizer.

Runs extraction for a tenant, removes the staged archive on success and
returns the tenant's public URL. On failure the staged archive is kept for
inspection and the error propagates unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sitedrop.config import Settings
from sitedrop.publishing.authorizer import STAGED_ARCHIVE_KEY
from sitedrop.publishing.errors import BadRequestError, ExtractionFailedError
from sitedrop.publishing.extractor import ArchiveExtractor
from sitedrop.storage import ObjectNotFoundError, ObjectStorageError, ObjectStore
from sitedrop.storage.keys import is_valid_tenant_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """A published site."""

    tenant_id: str
    url: str
    object_count: int

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url}


class PublishingFinalizer:
    """Turns a staged archive into a published site."""

    def __init__(
        self,
        settings: Settings,
        extractor: ArchiveExtractor,
        published_store: ObjectStore,
        staging_store: ObjectStore,
    ) -> None:
        self._settings = settings
        self._extractor = extractor
        self._published_store = published_store
        self._staging_store = staging_store

    def finalize(self, tenant_id: str) -> PublishResult:
        """Publish a tenant's staged archive.

        Not idempotent: a second call after success fails because the
        staged archive is gone. A retry after a failed extraction runs the
        whole extraction again and overwrites any objects already written.

        Raises:
            BadRequestError: tenant_id is not a UUID.
            PublishError: Any extraction failure (see ArchiveExtractor.extract).
        """
        if not is_valid_tenant_id(tenant_id):
            raise BadRequestError("Invalid upload identifier")

        try:
            result = self._extractor.extract(tenant_id)
        except ExtractionFailedError:
            if self._settings.rollback_on_failure:
                self._rollback(tenant_id)
            raise

        try:
            self._staging_store.delete(tenant_id, STAGED_ARCHIVE_KEY)
        except ObjectNotFoundError:
            logger.warning("Staged archive vanished before cleanup: tenant=%s", tenant_id)
        else:
            logger.info("Staged archive deleted: tenant=%s", tenant_id)

        url = self._settings.public_url(tenant_id)
        logger.info("Site published: tenant=%s objects=%d", tenant_id, len(result.objects))
        return PublishResult(tenant_id=tenant_id, url=url, object_count=len(result.objects))

    def _rollback(self, tenant_id: str) -> None:
        """Best-effort removal of a failed extraction's partial output.

        Errors are logged; the original ExtractionFailedError is what the
        caller sees.
        """
        try:
            keys = self._published_store.list_keys(tenant_id)
        except ObjectStorageError:
            logger.exception("Rollback listing failed: tenant=%s", tenant_id)
            return

        removed = 0
        for key in keys:
            try:
                self._published_store.delete(tenant_id, key)
                removed += 1
            except ObjectStorageError:
                logger.exception("Rollback delete failed: tenant=%s", tenant_id)

        logger.info("Rolled back partial extraction: tenant=%s removed=%d", tenant_id, removed)
