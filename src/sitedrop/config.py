"""sitedrop runtime configuration.

Settings are read from the environment once per process and are immutable
afterwards. Request handlers receive the Settings instance through the
application state; nothing mutates it at runtime.

Environment Variables:
    SITEDROP_UPLOAD_KEY: Shared secret expected in the ``api-key`` header.
        If unset, every authorization attempt fails closed.
    SITEDROP_BASE_DOMAIN: Base domain for tenant subdomains (default: "localhost").
    SITEDROP_STORAGE_BACKEND: "filesystem" or "s3" (default: "filesystem").
    SITEDROP_BUCKET_NAME: Bucket holding published objects (required for s3).
    SITEDROP_STAGING_BUCKET_NAME: Bucket for staged archives (default: bucket name).
    SITEDROP_STAGING_PREFIX: Key prefix for staged archives (default: "staging").
    SITEDROP_OBJECT_STORE_BASE_DIR: Base directory for the filesystem backend.
    SITEDROP_MAX_CONTENT_LENGTH_MB: Archive size ceiling in MiB (default: 100).
    SITEDROP_EXTRACT_CONCURRENCY: Entries extracted in parallel (default: 4).
    SITEDROP_ROLLBACK_ON_FAILURE: Delete partial output on failure (default: off).
    SITEDROP_SERVE_SITES: Serve published sites from the API app (default: off).
    SITEDROP_AWS_REGION: AWS region for the s3 backend (optional).
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SITEDROP_UPLOAD_KEY_ENV = "SITEDROP_UPLOAD_KEY"
SITEDROP_BASE_DOMAIN_ENV = "SITEDROP_BASE_DOMAIN"
SITEDROP_STORAGE_BACKEND_ENV = "SITEDROP_STORAGE_BACKEND"
SITEDROP_BUCKET_NAME_ENV = "SITEDROP_BUCKET_NAME"
SITEDROP_STAGING_BUCKET_NAME_ENV = "SITEDROP_STAGING_BUCKET_NAME"
SITEDROP_STAGING_PREFIX_ENV = "SITEDROP_STAGING_PREFIX"
SITEDROP_OBJECT_STORE_BASE_DIR_ENV = "SITEDROP_OBJECT_STORE_BASE_DIR"
SITEDROP_MAX_CONTENT_LENGTH_MB_ENV = "SITEDROP_MAX_CONTENT_LENGTH_MB"
SITEDROP_EXTRACT_CONCURRENCY_ENV = "SITEDROP_EXTRACT_CONCURRENCY"
SITEDROP_ROLLBACK_ON_FAILURE_ENV = "SITEDROP_ROLLBACK_ON_FAILURE"
SITEDROP_SERVE_SITES_ENV = "SITEDROP_SERVE_SITES"
SITEDROP_AWS_REGION_ENV = "SITEDROP_AWS_REGION"

CREDENTIAL_EXPIRY_SECONDS = 15 * 60
DEFAULT_MAX_ARCHIVE_MB = 100
DEFAULT_EXTRACT_CONCURRENCY = 4


class ConfigError(Exception):
    """Raised when the environment holds an invalid configuration."""


class Settings(BaseModel):
    """Immutable process configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    upload_key: str | None = None
    base_domain: str = "localhost"
    storage_backend: Literal["filesystem", "s3"] = "filesystem"
    bucket_name: str | None = None
    staging_bucket_name: str | None = None
    staging_prefix: str = "staging"
    base_dir: str | None = None
    max_archive_mb: int = Field(default=DEFAULT_MAX_ARCHIVE_MB, gt=0)
    extract_concurrency: int = Field(default=DEFAULT_EXTRACT_CONCURRENCY, ge=1, le=32)
    rollback_on_failure: bool = False
    serve_sites: bool = False
    aws_region: str | None = None

    @property
    def max_archive_bytes(self) -> int:
        """Archive size ceiling in bytes."""
        return self.max_archive_mb * 1024 * 1024

    @property
    def credential_expiry_seconds(self) -> int:
        """Lifetime of a staging write credential. Not configurable."""
        return CREDENTIAL_EXPIRY_SECONDS

    def public_url(self, tenant_id: str) -> str:
        """Return the public URL a tenant's site is served from."""
        return f"https://{tenant_id}.{self.base_domain}/"


def _get_env_str(key: str) -> str | None:
    """Get a stripped string from the environment, treating blanks as unset."""
    val = os.environ.get(key, "").strip()
    return val or None


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def settings_from_env() -> Settings:
    """Build Settings from the current environment.

    Raises:
        ConfigError: If any variable fails validation.
    """
    raw: dict[str, object] = {
        "upload_key": os.environ.get(SITEDROP_UPLOAD_KEY_ENV) or None,
        "base_domain": _get_env_str(SITEDROP_BASE_DOMAIN_ENV) or "localhost",
        "storage_backend": _get_env_str(SITEDROP_STORAGE_BACKEND_ENV) or "filesystem",
        "bucket_name": _get_env_str(SITEDROP_BUCKET_NAME_ENV),
        "staging_bucket_name": _get_env_str(SITEDROP_STAGING_BUCKET_NAME_ENV),
        "staging_prefix": _get_env_str(SITEDROP_STAGING_PREFIX_ENV) or "staging",
        "base_dir": _get_env_str(SITEDROP_OBJECT_STORE_BASE_DIR_ENV),
        "max_archive_mb": _get_env_str(SITEDROP_MAX_CONTENT_LENGTH_MB_ENV)
        or DEFAULT_MAX_ARCHIVE_MB,
        "extract_concurrency": _get_env_str(SITEDROP_EXTRACT_CONCURRENCY_ENV)
        or DEFAULT_EXTRACT_CONCURRENCY,
        "rollback_on_failure": _get_env_bool(SITEDROP_ROLLBACK_ON_FAILURE_ENV),
        "serve_sites": _get_env_bool(SITEDROP_SERVE_SITES_ENV),
        "aws_region": _get_env_str(SITEDROP_AWS_REGION_ENV),
    }

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ConfigError(f"Invalid sitedrop configuration: {', '.join(fields)}") from e

    if settings.storage_backend == "s3" and not settings.bucket_name:
        raise ConfigError(
            f"{SITEDROP_BUCKET_NAME_ENV} is required when {SITEDROP_STORAGE_BACKEND_ENV}=s3"
        )

    if settings.upload_key is None:
        logger.warning("%s is not set; all uploads will be rejected", SITEDROP_UPLOAD_KEY_ENV)

    return settings


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load Settings once per process."""
    return settings_from_env()
