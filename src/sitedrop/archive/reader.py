"""Archive reader abstraction.

Extraction is written against ArchiveReader, which exposes only an ordered
directory of entries and lazy, single-pass entry streams. ZipArchiveReader
is the one concrete format; it parses the zip central directory up front
and decompresses an entry only when its stream is read.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import IO, BinaryIO, cast

ZIP_MEDIA_TYPES = frozenset({"application/zip", "application/x-zip-compressed"})


class ArchiveFormatError(Exception):
    """Raised when the archive container cannot be parsed or read."""


@dataclass(frozen=True)
class ArchiveEntry:
    """One item in an archive's directory.

    Attributes:
        path: Entry path as stored in the archive ("/"-separated).
        is_directory: True for directory markers (path ends in "/").
        size: Uncompressed size in bytes as declared by the archive.
    """

    path: str
    is_directory: bool
    size: int


class ArchiveReader(ABC):
    """Read-only view over a hierarchical archive."""

    @abstractmethod
    def list_entries(self) -> Sequence[ArchiveEntry]:
        """Return every entry in archive order."""
        ...

    @abstractmethod
    def open_entry(self, path: str) -> BinaryIO:
        """Open a decompressing stream over one entry.

        The stream is lazy and single-pass; callers must close it.

        Raises:
            KeyError: If no entry has this path.
            ArchiveFormatError: If the entry cannot be decoded.
        """
        ...

    def close(self) -> None:
        """Release resources held by the reader."""

    def __enter__(self) -> ArchiveReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _ZipEntryStream:
    """Read-only stream that reports corrupt entry data as ArchiveFormatError."""

    def __init__(self, raw: IO[bytes], path: str) -> None:
        self._raw = raw
        self._path = path

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        try:
            return self._raw.read(size)
        except (zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise ArchiveFormatError(f"Corrupt data in entry {self._path}: {e}") from e

    def close(self) -> None:
        self._raw.close()

    def __enter__(self) -> _ZipEntryStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ZipArchiveReader(ArchiveReader):
    """ArchiveReader over a zip container held in memory or on a seekable file."""

    def __init__(self, source: bytes | BinaryIO) -> None:
        fileobj = io.BytesIO(source) if isinstance(source, bytes) else source
        try:
            self._zip = zipfile.ZipFile(fileobj)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
            raise ArchiveFormatError(f"Not a readable zip archive: {e}") from e

        self._infos: dict[str, zipfile.ZipInfo] = {}
        for info in self._zip.infolist():
            self._infos[info.filename] = info

    def list_entries(self) -> list[ArchiveEntry]:
        """Return entries from the central directory, in archive order."""
        return [
            ArchiveEntry(
                path=info.filename,
                is_directory=info.filename.endswith("/"),
                size=info.file_size,
            )
            for info in self._zip.infolist()
        ]

    def open_entry(self, path: str) -> BinaryIO:
        """Open a lazily-decompressing stream for the entry at path."""
        info = self._infos[path]
        if info.flag_bits & 0x1:
            raise ArchiveFormatError(f"Encrypted entries are not supported: {path}")
        try:
            raw = self._zip.open(info, "r")
        except (zipfile.BadZipFile, NotImplementedError, RuntimeError) as e:
            raise ArchiveFormatError(f"Cannot open entry {path}: {e}") from e
        return cast(BinaryIO, _ZipEntryStream(raw, path))

    def close(self) -> None:
        self._zip.close()
