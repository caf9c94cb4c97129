"""Archive extraction engine.

Reads a tenant's staged archive and fans its files out to the published
store under the tenant prefix.

Order of operations (each step is a hard barrier for the next):
1. HEAD the staged archive and enforce the size ceiling.
2. Read the archive in full and re-check its length.
3. Parse the archive directory and validate every entry path.
4. Stream entries to storage with a bounded worker pool.

Nothing is written before step 4, so oversize archives, corrupt archives
and archives with unsafe paths leave the tenant namespace empty. A failure
during step 4 leaves already-written objects in place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from sitedrop.archive import ArchiveEntry, ArchiveFormatError, ArchiveReader, ZipArchiveReader
from sitedrop.config import Settings
from sitedrop.publishing.authorizer import STAGED_ARCHIVE_KEY
from sitedrop.publishing.content_types import content_type_for
from sitedrop.publishing.errors import (
    ExtractionFailedError,
    InvalidArchiveEntryError,
    InvalidArchiveError,
    PayloadTooLargeError,
    StagedArchiveNotFoundError,
)
from sitedrop.storage import ObjectNotFoundError, ObjectStore, StoredObjectMetadata
from sitedrop.storage.keys import is_path_traversal

logger = logging.getLogger(__name__)

ReaderFactory = Callable[[bytes], ArchiveReader]


@dataclass(frozen=True)
class ExtractionResult:
    """Summary of a successful extraction."""

    tenant_id: str
    archive_size: int
    objects: tuple[StoredObjectMetadata, ...]


def validate_entry_paths(entries: Sequence[ArchiveEntry], tenant_id: str) -> None:
    """Reject the whole archive if any file entry is unsafe.

    Raises:
        InvalidArchiveEntryError: On traversal segments, absolute paths,
            backslashes, control characters or duplicate paths.
    """
    seen: set[str] = set()
    for entry in entries:
        if is_path_traversal(entry.path):
            logger.warning(
                "Rejected archive entry: tenant=%s path=%r", tenant_id, entry.path[:200]
            )
            raise InvalidArchiveEntryError(tenant_id=tenant_id)
        if entry.path in seen:
            raise InvalidArchiveEntryError(
                "Archive contains duplicate entry paths", tenant_id=tenant_id
            )
        seen.add(entry.path)


def _is_archive_fault(exc: BaseException) -> bool:
    """True if exc (or anything it wraps) came from decoding the archive."""
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, ArchiveFormatError):
            return True
        current = current.__cause__
    return False


class ArchiveExtractor:
    """Extracts staged archives into the published store."""

    def __init__(
        self,
        settings: Settings,
        published_store: ObjectStore,
        staging_store: ObjectStore,
        reader_factory: ReaderFactory = ZipArchiveReader,
    ) -> None:
        self._settings = settings
        self._published_store = published_store
        self._staging_store = staging_store
        self._reader_factory = reader_factory

    def _check_size(self, size: int, tenant_id: str) -> None:
        if size > self._settings.max_archive_bytes:
            logger.warning(
                "Staged archive over ceiling: tenant=%s size=%d max=%d",
                tenant_id,
                size,
                self._settings.max_archive_bytes,
            )
            raise PayloadTooLargeError(tenant_id=tenant_id)

    def _read_staged_archive(self, tenant_id: str) -> bytes:
        try:
            head = self._staging_store.head(tenant_id, STAGED_ARCHIVE_KEY)
            self._check_size(head.size_bytes, tenant_id)
            staged = self._staging_store.get(tenant_id, STAGED_ARCHIVE_KEY)
        except ObjectNotFoundError as e:
            raise StagedArchiveNotFoundError(tenant_id=tenant_id) from e

        # The object may have been replaced between HEAD and GET.
        self._check_size(len(staged.body), tenant_id)
        return staged.body

    def _extract_entry(
        self, tenant_id: str, reader: ArchiveReader, entry: ArchiveEntry
    ) -> StoredObjectMetadata:
        content_type = content_type_for(entry.path)
        with reader.open_entry(entry.path) as stream:
            return self._published_store.put_stream(
                tenant_id, entry.path, stream, content_type=content_type
            )

    def _fan_out(
        self, tenant_id: str, reader: ArchiveReader, entries: Sequence[ArchiveEntry]
    ) -> list[StoredObjectMetadata]:
        """Write entries with at most extract_concurrency streams open at once."""
        results: list[StoredObjectMetadata] = []
        executor = ThreadPoolExecutor(
            max_workers=self._settings.extract_concurrency,
            thread_name_prefix="sitedrop-extract",
        )
        try:
            futures: dict[Future[StoredObjectMetadata], ArchiveEntry] = {
                executor.submit(self._extract_entry, tenant_id, reader, entry): entry
                for entry in entries
            }
            for future in as_completed(futures):
                entry = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    executor.shutdown(wait=True, cancel_futures=True)
                    if _is_archive_fault(e):
                        logger.warning(
                            "Corrupt archive entry: tenant=%s error=%s", tenant_id, e
                        )
                        raise InvalidArchiveError(tenant_id=tenant_id) from e
                    logger.exception(
                        "Entry write failed: tenant=%s path=%r", tenant_id, entry.path[:200]
                    )
                    raise ExtractionFailedError(tenant_id=tenant_id) from e
        finally:
            executor.shutdown(wait=True)

        return sorted(results, key=lambda obj: obj.key)

    def extract(self, tenant_id: str) -> ExtractionResult:
        """Extract a tenant's staged archive.

        Raises:
            StagedArchiveNotFoundError: No staged archive for the tenant.
            PayloadTooLargeError: Archive exceeds the size ceiling.
            InvalidArchiveError: Archive container or entry data is corrupt.
            InvalidArchiveEntryError: An entry path is unsafe.
            ExtractionFailedError: A storage write failed; partial output remains.
        """
        body = self._read_staged_archive(tenant_id)

        try:
            reader = self._reader_factory(body)
        except ArchiveFormatError as e:
            raise InvalidArchiveError(tenant_id=tenant_id) from e

        with reader:
            entries = [entry for entry in reader.list_entries() if not entry.is_directory]
            validate_entry_paths(entries, tenant_id)

            logger.info(
                "Extracting archive: tenant=%s entries=%d bytes=%d",
                tenant_id,
                len(entries),
                len(body),
            )
            objects = self._fan_out(tenant_id, reader, entries)

        logger.info("Extraction complete: tenant=%s objects=%d", tenant_id, len(objects))
        return ExtractionResult(
            tenant_id=tenant_id,
            archive_size=len(body),
            objects=tuple(objects),
        )
