"""Upload routes for the sitedrop API.

Two-step publishing flow:
- POST /uploads (authorizeUpload): mint a tenant and a staging write credential
- POST /uploads/{tenantId}/finalize (finalizeUpload): extract and publish
- POST /finalize?tenant_id=... (finalizeUploadByQuery): same, identifier as query

The client PUTs the archive to the credential URL between the two calls;
no archive bytes pass through this API.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from sitedrop.api.auth import RequireUploadKey, get_api_key
from sitedrop.api.deps import AuthorizerDep, FinalizerDep
from sitedrop.publishing import BadRequestError
from sitedrop.publishing.authorizer import DEFAULT_ARCHIVE_CONTENT_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


class AuthorizeUploadRequest(BaseModel):
    """Optional request body for POST /uploads."""

    model_config = ConfigDict(extra="forbid")

    content_type: Annotated[str, Field(min_length=1, max_length=255)] = (
        DEFAULT_ARCHIVE_CONTENT_TYPE
    )


class WriteCredentialResponse(BaseModel):
    """Presigned write authorization for the staging location."""

    url: str
    method: str
    headers: dict[str, str]
    expires_at: str


class UploadGrantResponse(BaseModel):
    """Response body for POST /uploads."""

    tenant_id: str
    upload: WriteCredentialResponse
    finalize_path: str


class PublishResponse(BaseModel):
    """Response body for a successful publish."""

    url: str


async def _read_authorize_body(request: Request) -> AuthorizeUploadRequest:
    """Parse the optional JSON body once the caller is authenticated.

    Raises:
        RequestValidationError: Malformed JSON or unknown fields.
    """
    raw = await request.body()
    if not raw.strip():
        return AuthorizeUploadRequest()
    try:
        return AuthorizeUploadRequest.model_validate_json(raw)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


@router.post(
    "/uploads",
    response_model=UploadGrantResponse,
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {
                "application/json": {"schema": AuthorizeUploadRequest.model_json_schema()}
            },
        }
    },
)
async def authorize_upload(
    request: Request,
    _auth: RequireUploadKey,
    authorizer: AuthorizerDep,
) -> UploadGrantResponse:
    """Authorize one archive upload.

    The api-key is checked before the body is read.

    Returns:
        Tenant id, a 15-minute write credential for the staging location,
        and the path to call once the upload has completed.

    Raises:
        UnauthorizedError: 401 on bad or missing api-key (nothing issued).
        BadRequestError: 400 when the body is malformed or the declared
            content type is not zip.
    """
    body = await _read_authorize_body(request)
    grant = await run_in_threadpool(authorizer.authorize, get_api_key(request), body.content_type)
    return UploadGrantResponse.model_validate(grant.to_dict())


@router.post("/uploads/{tenant_id}/finalize", status_code=201, response_model=PublishResponse)
def finalize_upload(
    tenant_id: str,
    _auth: RequireUploadKey,
    finalizer: FinalizerDep,
) -> PublishResponse:
    """Extract the staged archive and publish the site.

    Runs synchronously (FastAPI executes it in a worker thread); the
    response is sent only after every entry has been written.
    """
    result = finalizer.finalize(tenant_id)
    return PublishResponse.model_validate(result.to_dict())


@router.post("/finalize", status_code=201, response_model=PublishResponse)
def finalize_upload_by_query(
    _auth: RequireUploadKey,
    finalizer: FinalizerDep,
    tenant_id: Annotated[str | None, Query()] = None,
) -> PublishResponse:
    """Variant of finalize_upload taking the identifier as a query parameter."""
    if not tenant_id:
        raise BadRequestError("Missing upload identifier")
    result = finalizer.finalize(tenant_id)
    return PublishResponse.model_validate(result.to_dict())
