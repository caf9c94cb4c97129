"""Archive readers used by the extraction engine."""

from sitedrop.archive.reader import (
    ZIP_MEDIA_TYPES,
    ArchiveEntry,
    ArchiveFormatError,
    ArchiveReader,
    ZipArchiveReader,
)

__all__ = [
    "ZIP_MEDIA_TYPES",
    "ArchiveEntry",
    "ArchiveFormatError",
    "ArchiveReader",
    "ZipArchiveReader",
]
