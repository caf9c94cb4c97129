"""sitedrop API authentication.

A single shared secret, sent in the ``api-key`` header, authorizes every
write operation. Fails closed on a missing header, a mismatching key, or
an unset secret. The provided key is never logged.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from sitedrop.api.deps import get_settings
from sitedrop.publishing import UnauthorizedError, check_upload_key

logger = logging.getLogger(__name__)

API_KEY_HEADER = "api-key"


def get_api_key(request: Request) -> str | None:
    """Return the caller-supplied key, or None when the header is absent."""
    return request.headers.get(API_KEY_HEADER)


def require_upload_key(request: Request) -> None:
    """FastAPI dependency enforcing the shared secret.

    Raises:
        UnauthorizedError: 401 on a missing or mismatching key.
    """
    settings = get_settings(request)
    try:
        check_upload_key(get_api_key(request), settings.upload_key)
    except UnauthorizedError:
        logger.warning(
            "Rejected request with bad or missing %s header: path=%s",
            API_KEY_HEADER,
            request.url.path,
        )
        raise


RequireUploadKey = Annotated[None, Depends(require_upload_key)]
