"""Tests for the archive extraction engine.

Tests cover:
1. Every file entry lands byte-identical under {tenant}/{path} with a content type
2. Directory markers produce no objects
3. Unsafe or duplicate entry paths reject the archive before any write
4. Size ceiling enforced before any write
5. Corrupt archives and corrupt entries are client errors
6. Storage failures are server errors and keep the staged archive
7. Parallel writes never exceed the configured concurrency
"""

from __future__ import annotations

import io
import random
import threading
import time
import zipfile
from collections.abc import Callable
from typing import Any, BinaryIO

import pytest

from sitedrop.archive import ArchiveEntry
from sitedrop.config import Settings
from sitedrop.publishing import (
    STAGED_ARCHIVE_KEY,
    ArchiveExtractor,
    ExtractionFailedError,
    InvalidArchiveEntryError,
    InvalidArchiveError,
    PayloadTooLargeError,
    StagedArchiveNotFoundError,
)
from sitedrop.publishing.extractor import validate_entry_paths
from sitedrop.storage import FilesystemObjectStore, StorageBackendError, StoredObjectMetadata


class FailingStore(FilesystemObjectStore):
    """Published store that fails writes for chosen keys."""

    def __init__(self, base_dir: Any, fail_keys: set[str]) -> None:
        super().__init__(base_dir)
        self.fail_keys = fail_keys

    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        if key in self.fail_keys:
            raise StorageBackendError(message="disk full", tenant_id=tenant_id, key=key)
        return super().put_stream(tenant_id, key, stream, content_type=content_type)


class RecordingStore(FilesystemObjectStore):
    """Published store that records how many writes overlap."""

    def __init__(self, base_dir: Any) -> None:
        super().__init__(base_dir)
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def put_stream(
        self,
        tenant_id: str,
        key: str,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(0.01)
            return super().put_stream(tenant_id, key, stream, content_type=content_type)
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def stage(staging_store: FilesystemObjectStore, tenant_a: str) -> Callable[[bytes], None]:
    """Return a helper that places an archive in the tenant's staging slot."""

    def _stage(body: bytes) -> None:
        staging_store.put(tenant_a, STAGED_ARCHIVE_KEY, body, content_type="application/zip")

    return _stage


@pytest.fixture
def extractor(
    settings: Settings,
    published_store: FilesystemObjectStore,
    staging_store: FilesystemObjectStore,
) -> ArchiveExtractor:
    return ArchiveExtractor(settings, published_store, staging_store)


class TestSuccessfulExtraction:
    """Tests for archives that extract cleanly."""

    def test_files_are_byte_identical(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """Each file entry becomes exactly one object with the entry's bytes."""
        stage(build_zip(site_files))

        result = extractor.extract(tenant_a)

        assert [obj.key for obj in result.objects] == ["css/style.css", "index.html"]
        assert published_store.list_keys(tenant_a) == ["css/style.css", "index.html"]
        for path, data in site_files.items():
            assert published_store.get(tenant_a, path).body == data

    def test_content_types_are_inferred(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """Objects carry the content type derived from their extension."""
        stage(build_zip(site_files))

        extractor.extract(tenant_a)

        index = published_store.head(tenant_a, "index.html")
        style = published_store.head(tenant_a, "css/style.css")
        assert index.content_type == "text/html; charset=utf-8"
        assert style.content_type == "text/css; charset=utf-8"

    def test_directory_entries_are_skipped(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """Directory markers never become objects."""
        stage(build_zip({"img/logo.png": b"\x89PNG"}, dirs=["img/", "empty/"]))

        result = extractor.extract(tenant_a)

        assert [obj.key for obj in result.objects] == ["img/logo.png"]
        assert published_store.list_keys(tenant_a) == ["img/logo.png"]

    def test_empty_archive_publishes_nothing(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """A valid archive with no files succeeds with zero objects."""
        stage(build_zip({}, dirs=["only-a-dir/"]))

        result = extractor.extract(tenant_a)

        assert result.objects == ()
        assert published_store.list_keys(tenant_a) == []

    def test_many_entries_with_stored_and_deflated_mix(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        tenant_a: str,
    ) -> None:
        """Larger archives with mixed compression extract completely."""
        rng = random.Random(42)
        files = {f"assets/{i:03d}.bin": rng.randbytes(rng.randint(0, 5000)) for i in range(40)}
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for i, (name, data) in enumerate(files.items()):
                method = zipfile.ZIP_DEFLATED if i % 2 else zipfile.ZIP_STORED
                zf.writestr(name, data, compress_type=method)
        stage(buffer.getvalue())

        result = extractor.extract(tenant_a)

        assert len(result.objects) == 40
        for name, data in files.items():
            assert published_store.get(tenant_a, name).body == data

    def test_staged_archive_is_left_for_finalizer(
        self,
        extractor: ArchiveExtractor,
        staging_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """Extraction reads the staged archive but does not delete it."""
        stage(build_zip(site_files))

        extractor.extract(tenant_a)

        assert staging_store.list_keys(tenant_a) == [STAGED_ARCHIVE_KEY]


class TestEntryPathValidation:
    """Tests for entry path checks."""

    @pytest.mark.parametrize(
        "bad_path",
        ["../escape.html", "a/../../b.html", "/etc/passwd", "..\\win.txt", "a//b.txt"],
    )
    def test_traversal_rejects_whole_archive(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
        bad_path: str,
    ) -> None:
        """One unsafe entry rejects the archive and nothing is written."""
        stage(build_zip({"index.html": b"ok", bad_path: b"evil", "z.txt": b"ok"}))

        with pytest.raises(InvalidArchiveEntryError):
            extractor.extract(tenant_a)

        assert published_store.list_keys(tenant_a) == []

    def test_duplicate_paths_rejected(self, tenant_a: str) -> None:
        """Two entries with the same path are ambiguous."""
        entries = [
            ArchiveEntry(path="index.html", is_directory=False, size=1),
            ArchiveEntry(path="index.html", is_directory=False, size=2),
        ]

        with pytest.raises(InvalidArchiveEntryError, match="duplicate"):
            validate_entry_paths(entries, tenant_a)

    def test_dotted_names_are_allowed(self, tenant_a: str) -> None:
        """Names merely containing dots are not traversal."""
        entries = [
            ArchiveEntry(path=".well-known/security.txt", is_directory=False, size=1),
            ArchiveEntry(path="v1..2/notes.txt", is_directory=False, size=1),
        ]

        validate_entry_paths(entries, tenant_a)


class TestSizeCeiling:
    """Tests for the archive size limit."""

    def test_oversize_archive_rejected_before_writes(
        self,
        settings: Settings,
        published_store: FilesystemObjectStore,
        staging_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """An archive larger than the ceiling yields PayloadTooLarge and no objects."""
        small_limit = settings.model_copy(update={"max_archive_mb": 1})
        extractor = ArchiveExtractor(small_limit, published_store, staging_store)
        big = random.Random(1).randbytes(1024 * 1024 + 1)
        stage(build_zip({"big.bin": big}, compression=zipfile.ZIP_STORED))

        with pytest.raises(PayloadTooLargeError) as exc_info:
            extractor.extract(tenant_a)

        assert exc_info.value.status_code == 413
        assert published_store.list_keys(tenant_a) == []


class TestInvalidArchives:
    """Tests for archives that cannot be decoded."""

    def test_missing_staged_archive(self, extractor: ArchiveExtractor, tenant_a: str) -> None:
        """Nothing staged for the tenant."""
        with pytest.raises(StagedArchiveNotFoundError):
            extractor.extract(tenant_a)

    def test_not_a_zip(
        self,
        extractor: ArchiveExtractor,
        published_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        tenant_a: str,
    ) -> None:
        """Arbitrary bytes are rejected as an invalid archive."""
        stage(b"<html>definitely not a zip</html>")

        with pytest.raises(InvalidArchiveError) as exc_info:
            extractor.extract(tenant_a)

        assert exc_info.value.status_code == 400
        assert published_store.list_keys(tenant_a) == []

    def test_corrupt_entry_data_is_client_error(
        self,
        extractor: ArchiveExtractor,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
    ) -> None:
        """Damaged compressed data surfaces as InvalidArchive, not a server error."""
        body = bytearray(build_zip({"page.html": random.Random(7).randbytes(4096)}))
        header_len = 30 + len("page.html")
        for offset in range(header_len, header_len + 40):
            body[offset] ^= 0xFF
        stage(bytes(body))

        with pytest.raises(InvalidArchiveError):
            extractor.extract(tenant_a)


class TestStorageFailures:
    """Tests for failures while writing entries."""

    def test_write_failure_is_server_error(
        self,
        settings: Settings,
        staging_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        site_files: dict[str, bytes],
        tenant_a: str,
    ) -> None:
        """A storage error becomes ExtractionFailed and the staged archive survives."""
        failing = FailingStore(settings.base_dir, fail_keys={"css/style.css"})
        extractor = ArchiveExtractor(settings, failing, staging_store)
        stage(build_zip(site_files))

        with pytest.raises(ExtractionFailedError) as exc_info:
            extractor.extract(tenant_a)

        assert exc_info.value.status_code == 500
        assert staging_store.list_keys(tenant_a) == [STAGED_ARCHIVE_KEY]
        assert "css/style.css" not in failing.list_keys(tenant_a)


class TestConcurrency:
    """Tests for the bounded worker pool."""

    @pytest.mark.parametrize("limit", [1, 3])
    def test_writes_never_exceed_limit(
        self,
        settings: Settings,
        staging_store: FilesystemObjectStore,
        stage: Callable[[bytes], None],
        build_zip: Callable[..., bytes],
        tenant_a: str,
        limit: int,
    ) -> None:
        """At most extract_concurrency entries are written at once."""
        bounded = settings.model_copy(update={"extract_concurrency": limit})
        recording = RecordingStore(settings.base_dir)
        extractor = ArchiveExtractor(bounded, recording, staging_store)
        stage(build_zip({f"f{i}.txt": b"x" * i for i in range(12)}))

        result = extractor.extract(tenant_a)

        assert len(result.objects) == 12
        assert 1 <= recording.max_active <= limit
