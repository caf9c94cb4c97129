"""Single-step publishing route.

POST /sites accepts the archive as a multipart/form-data ``file`` part,
stages it, and finalizes it in the same request. Intended for small
archives and scripts; large uploads should use the presigned two-step
flow in uploads.py so the bytes never transit the API process.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from sitedrop.api.auth import RequireUploadKey
from sitedrop.api.deps import FinalizerDep, SettingsDep, StagingStoreDep
from sitedrop.api.routes.uploads import PublishResponse
from sitedrop.publishing import STAGED_ARCHIVE_KEY, BadRequestError, PayloadTooLargeError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sites"])

FILE_FIELD = "file"
# Multipart framing (boundaries, part headers) on top of the archive bytes.
_MULTIPART_OVERHEAD_BYTES = 64 * 1024


def _pick_upload(form_items: list[tuple[str, object]]) -> UploadFile | None:
    """Return the "file" part, or the first file part under any name."""
    uploads: list[tuple[str, UploadFile]] = [
        (name, value) for name, value in form_items if isinstance(value, UploadFile)
    ]
    for name, upload in uploads:
        if name == FILE_FIELD:
            return upload
    return uploads[0][1] if uploads else None


@router.post("/sites", status_code=201, response_model=PublishResponse)
async def publish_site(
    request: Request,
    _auth: RequireUploadKey,
    settings: SettingsDep,
    staging_store: StagingStoreDep,
    finalizer: FinalizerDep,
) -> PublishResponse:
    """Stage and publish an archive uploaded in the request body.

    Raises:
        BadRequestError: 400 when the body is not multipart or has no file part.
        PayloadTooLargeError: 413 when the archive exceeds the size ceiling.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise BadRequestError("No multipart/form-data")

    declared_length = request.headers.get("content-length")
    if declared_length and declared_length.isdigit():
        if int(declared_length) > settings.max_archive_bytes + _MULTIPART_OVERHEAD_BYTES:
            raise PayloadTooLargeError()

    form = await request.form()
    try:
        upload = _pick_upload(list(form.multi_items()))
        if upload is None:
            raise BadRequestError("No file part")

        if upload.size is not None and upload.size > settings.max_archive_bytes:
            raise PayloadTooLargeError()

        tenant_id = str(uuid.uuid4())
        await upload.seek(0)
        await run_in_threadpool(
            staging_store.put_stream,
            tenant_id,
            STAGED_ARCHIVE_KEY,
            upload.file,
            content_type="application/zip",
        )
        logger.info("Archive staged from direct upload: tenant=%s", tenant_id)
    finally:
        await form.close()

    result = await run_in_threadpool(finalizer.finalize, tenant_id)
    return PublishResponse.model_validate(result.to_dict())
