"""Tests for the publishing finalizer."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import pytest

from sitedrop.config import Settings
from sitedrop.publishing import (
    STAGED_ARCHIVE_KEY,
    ArchiveExtractor,
    BadRequestError,
    ExtractionFailedError,
    InvalidArchiveEntryError,
    PublishingFinalizer,
    StagedArchiveNotFoundError,
)
from sitedrop.storage import FilesystemObjectStore, StorageBackendError, StoredObjectMetadata


class FailOnKeyStore(FilesystemObjectStore):
    """Published store that fails one key after the others were written."""

    def __init__(self, base_dir: str | Path | None, fail_key: str) -> None:
        super().__init__(base_dir)
        self.fail_key = fail_key

    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        if key == self.fail_key:
            raise StorageBackendError(message="throttled", tenant_id=tenant_id, key=key)
        return super().put_stream(tenant_id, key, stream, content_type=content_type)


def _finalizer(
    settings: Settings, published: FilesystemObjectStore, staging: FilesystemObjectStore
) -> PublishingFinalizer:
    extractor = ArchiveExtractor(settings, published, staging)
    return PublishingFinalizer(settings, extractor, published, staging)


@pytest.fixture
def finalizer(
    settings: Settings,
    published_store: FilesystemObjectStore,
    staging_store: FilesystemObjectStore,
) -> PublishingFinalizer:
    return _finalizer(settings, published_store, staging_store)


class TestFinalize:
    """Tests for a successful publish."""

    def test_returns_public_url(
        self,
        finalizer: PublishingFinalizer,
        staging_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """The result names https://{tenant}.{base-domain}/."""
        staging_store.put(tenant_a, STAGED_ARCHIVE_KEY, build_zip(site_files))

        result = finalizer.finalize(tenant_a)

        assert result.url == f"https://{tenant_a}.example.com/"
        assert result.object_count == 2
        assert result.to_dict() == {"url": f"https://{tenant_a}.example.com/"}

    def test_staged_archive_deleted(
        self,
        finalizer: PublishingFinalizer,
        staging_store: FilesystemObjectStore,
        published_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """On success the staging slot is emptied and the site is in place."""
        staging_store.put(tenant_a, STAGED_ARCHIVE_KEY, build_zip(site_files))

        finalizer.finalize(tenant_a)

        assert staging_store.list_keys(tenant_a) == []
        assert published_store.list_keys(tenant_a) == ["css/style.css", "index.html"]

    def test_second_finalize_fails(
        self,
        finalizer: PublishingFinalizer,
        staging_store: FilesystemObjectStore,
        published_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """Finalize is not idempotent; the published site is untouched by the retry."""
        staging_store.put(tenant_a, STAGED_ARCHIVE_KEY, build_zip(site_files))
        finalizer.finalize(tenant_a)

        with pytest.raises(StagedArchiveNotFoundError):
            finalizer.finalize(tenant_a)

        assert published_store.list_keys(tenant_a) == ["css/style.css", "index.html"]

    @pytest.mark.parametrize("tenant_id", ["", "abc", "../etc", "11111111-1111-1111-1111"])
    def test_invalid_identifier(self, finalizer: PublishingFinalizer, tenant_id: str) -> None:
        """Non-UUID identifiers are rejected before any storage access."""
        with pytest.raises(BadRequestError, match="Invalid upload identifier"):
            finalizer.finalize(tenant_id)


class TestFailures:
    """Tests for failed publishes."""

    def test_invalid_archive_keeps_staged_archive(
        self,
        finalizer: PublishingFinalizer,
        staging_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """A rejected archive stays in staging for inspection."""
        staging_store.put(tenant_a, STAGED_ARCHIVE_KEY, build_zip({"../x.html": b"x"}))

        with pytest.raises(InvalidArchiveEntryError):
            finalizer.finalize(tenant_a)

        assert staging_store.list_keys(tenant_a) == [STAGED_ARCHIVE_KEY]

    def test_partial_output_kept_by_default(
        self,
        settings: Settings,
        staging_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """Without rollback, objects written before the failure remain."""
        published = FailOnKeyStore(settings.base_dir, fail_key="z.txt")
        one_worker = settings.model_copy(update={"extract_concurrency": 1})
        finalizer = _finalizer(one_worker, published, staging_store)
        staging_store.put(
            tenant_a, STAGED_ARCHIVE_KEY, build_zip({"a.txt": b"a", "z.txt": b"z"})
        )

        with pytest.raises(ExtractionFailedError):
            finalizer.finalize(tenant_a)

        assert published.list_keys(tenant_a) == ["a.txt"]
        assert staging_store.list_keys(tenant_a) == [STAGED_ARCHIVE_KEY]

    def test_rollback_removes_partial_output(
        self,
        settings: Settings,
        staging_store: FilesystemObjectStore,
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """With rollback enabled, a failed extraction leaves the tenant empty."""
        published = FailOnKeyStore(settings.base_dir, fail_key="z.txt")
        rollback = settings.model_copy(
            update={"extract_concurrency": 1, "rollback_on_failure": True}
        )
        finalizer = _finalizer(rollback, published, staging_store)
        staging_store.put(
            tenant_a, STAGED_ARCHIVE_KEY, build_zip({"a.txt": b"a", "z.txt": b"z"})
        )

        with pytest.raises(ExtractionFailedError):
            finalizer.finalize(tenant_a)

        assert published.list_keys(tenant_a) == []
        assert staging_store.list_keys(tenant_a) == [STAGED_ARCHIVE_KEY]
