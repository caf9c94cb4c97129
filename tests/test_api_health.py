"""Tests for sitedrop API health endpoint."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from sitedrop.api.main import create_app
from sitedrop.config import Settings
from sitedrop.storage import FilesystemObjectStore


@pytest.fixture
def client(
    settings: Settings,
    published_store: FilesystemObjectStore,
    staging_store: FilesystemObjectStore,
) -> TestClient:
    """Create a test client for the sitedrop API."""
    app = create_app(settings, published_store, staging_store)
    return TestClient(app)


def test_health_returns_200(client: TestClient) -> None:
    """GET /health returns 200 OK without an api-key."""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_status_is_ok(client: TestClient) -> None:
    """GET /health returns status 'ok'."""
    data = client.get("/health").json()

    assert data["status"] == "ok"


def test_health_version(client: TestClient) -> None:
    """GET /health reports the package version."""
    data = client.get("/health").json()

    assert data["version"] == "1.0"


def test_health_time_is_iso8601(client: TestClient) -> None:
    """GET /health returns time in ISO-8601 format."""
    data = client.get("/health").json()

    parsed = datetime.fromisoformat(data["time"])
    assert parsed.tzinfo is not None


def test_health_echoes_provided_request_id(client: TestClient) -> None:
    """GET /health with X-Request-Id header echoes it back."""
    response = client.get("/health", headers={"X-Request-Id": "test-request-id-12345"})

    assert response.headers["X-Request-Id"] == "test-request-id-12345"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_health_generates_request_id(client: TestClient, header: str | None) -> None:
    """A missing or blank X-Request-Id is replaced by a UUID."""
    headers = {} if header is None else {"X-Request-Id": header}
    request_id = client.get("/health", headers=headers).headers["X-Request-Id"]

    assert len(request_id) == 36
    assert request_id.count("-") == 4


def test_request_id_is_truncated(client: TestClient) -> None:
    """Oversized request IDs are cut to 128 characters."""
    response = client.get("/health", headers={"X-Request-Id": "r" * 300})

    assert response.headers["X-Request-Id"] == "r" * 128
