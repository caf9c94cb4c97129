"""Pytest configuration and fixtures for sitedrop tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import io
import os
import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from sitedrop.config import Settings, load_settings
from sitedrop.storage import FilesystemObjectStore

TEST_UPLOAD_KEY = "test-upload-key-0123456789"
TEST_BASE_DOMAIN = "example.com"

ZipBuilder = Callable[..., bytes]


@pytest.fixture(autouse=True)
def isolate_sitedrop_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear SITEDROP_* variables so host configuration never leaks into tests."""
    for name in list(os.environ):
        if name.startswith("SITEDROP_"):
            monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def tenant_a() -> str:
    """Return a valid tenant UUID for tenant A."""
    return "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def tenant_b() -> str:
    """Return a valid tenant UUID for tenant B."""
    return "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def upload_key() -> str:
    """The shared secret configured in the settings fixture."""
    return TEST_UPLOAD_KEY


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings for a filesystem-backed deployment under tmp_path."""
    return Settings(
        upload_key=TEST_UPLOAD_KEY,
        base_domain=TEST_BASE_DOMAIN,
        base_dir=str(tmp_path / "objects"),
    )


@pytest.fixture
def published_store(settings: Settings) -> FilesystemObjectStore:
    """Store holding published site objects."""
    return FilesystemObjectStore(settings.base_dir)


@pytest.fixture
def staging_store(settings: Settings) -> FilesystemObjectStore:
    """Store holding staged archives."""
    return FilesystemObjectStore(settings.base_dir, prefix=settings.staging_prefix)


@pytest.fixture
def build_zip() -> ZipBuilder:
    """Return a helper that builds an in-memory zip archive.

    Usage:
        build_zip({"index.html": b"<h1>hi</h1>"}, dirs=["css/"])
    """

    def _build(
        files: dict[str, bytes],
        *,
        dirs: tuple[str, ...] | list[str] = (),
        compression: int = zipfile.ZIP_DEFLATED,
    ) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=compression) as zf:
            for directory in dirs:
                zf.writestr(zipfile.ZipInfo(directory), b"")
            for name, data in files.items():
                zf.writestr(name, data)
        return buffer.getvalue()

    return _build


@pytest.fixture
def site_files() -> dict[str, bytes]:
    """A small two-file site."""
    return {
        "index.html": b"<!doctype html><h1>Hello</h1>",
        "css/style.css": b"body { color: #333; }",
    }
