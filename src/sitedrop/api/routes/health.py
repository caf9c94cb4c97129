"""Health check endpoint for the sitedrop API."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel

from sitedrop import SITEDROP_VERSION

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    time: str
    version: str


@router.get("/health", response_model=HealthResponse)
def get_health() -> HealthResponse:
    """Health check endpoint. No authentication."""
    return HealthResponse(
        status="ok",
        time=datetime.now(UTC).isoformat(),
        version=SITEDROP_VERSION,
    )
