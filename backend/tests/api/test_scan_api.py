"""
Tests for the scan API endpoints.

Covers scan creation (acknowledgement, authentication, body validation,
creation and scheduling failures), the uniform ``{"error": ...}`` envelope,
CORS on success and error responses, and the per-user scan history routes.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient

from leakscan.api.deps import get_event_publisher, get_scan_store
from leakscan.engine.aggregator import FindingRecord
from leakscan.engine.catalog import Severity
from leakscan.models.scan import Scan, ScanStatus

SCANS_URL = "/api/v1/scans/"
ORIGIN = "http://localhost:5173"


def _assert_cors(response) -> None:
    assert response.headers.get("access-control-allow-origin") == ORIGIN


class _BrokenStore:
    async def create_scan(self, domain: str, user_id: str) -> Scan:
        raise ConnectionError("database unreachable")


class _ExplodingPublisher:
    async def publish(self, scan_id, event_type, data) -> None:
        raise RuntimeError("unexpected failure")


# ---------------------------------------------------------------------------
# POST /scans/ -- success
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_scan_accepted(client: AsyncClient, auth_headers, user_id, session_factory) -> None:
    """POST /api/v1/scans/ stores a running scan and dispatches the background run."""
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(
            SCANS_URL,
            json={"domain": "https://www.example.com/"},
            headers=auth_headers,
        )

    assert response.status_code == 202, response.text
    data = response.json()
    assert data["message"] == "Scan initiated successfully"
    assert data["status"] == "running"
    scan_id = uuid.UUID(data["scan_id"])
    _assert_cors(response)

    mock_task.delay.assert_called_once_with(str(scan_id), "https://www.example.com/", user_id)

    async with session_factory() as session:
        scan = await session.get(Scan, scan_id)
    assert scan.status == ScanStatus.RUNNING
    assert scan.domain == "https://www.example.com/"
    assert scan.user_id == user_id


@pytest.mark.asyncio
async def test_create_scan_stores_domain_verbatim(client: AsyncClient, auth_headers, user_id, session_factory) -> None:
    """Surrounding whitespace is kept on the record and handed to the worker as typed."""
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(SCANS_URL, json={"domain": "  example.com "}, headers=auth_headers)

    assert response.status_code == 202, response.text
    scan_id = uuid.UUID(response.json()["scan_id"])

    async with session_factory() as session:
        scan = await session.get(Scan, scan_id)
    assert scan.domain == "  example.com "
    mock_task.delay.assert_called_once_with(str(scan_id), "  example.com ", user_id)


@pytest.mark.asyncio
async def test_create_scan_publishes_started_event(client: AsyncClient, auth_headers, publisher) -> None:
    with patch("leakscan.api.v1.scans.run_scan"):
        response = await client.post(SCANS_URL, json={"domain": "example.com"}, headers=auth_headers)

    scan_id = response.json()["scan_id"]
    assert publisher.types_for(scan_id) == ["scan_started"]


@pytest.mark.asyncio
async def test_create_scan_sets_security_headers(client: AsyncClient, auth_headers) -> None:
    with patch("leakscan.api.v1.scans.run_scan"):
        response = await client.post(SCANS_URL, json={"domain": "example.com"}, headers=auth_headers)

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


# ---------------------------------------------------------------------------
# POST /scans/ -- authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_scan_without_token_is_unauthorized(client: AsyncClient) -> None:
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(
            SCANS_URL,
            json={"domain": "example.com"},
            headers={"Origin": ORIGIN},
        )

    assert response.status_code == 401
    assert response.json() == {"error": "User is not authenticated."}
    _assert_cors(response)
    mock_task.delay.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "authorization",
    ["Bearer not-a-jwt", "Basic dXNlcjpwYXNz", "Bearer "],
)
async def test_create_scan_with_bad_credentials_is_unauthorized(
    client: AsyncClient,
    authorization: str,
) -> None:
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(
            SCANS_URL,
            json={"domain": "example.com"},
            headers={"Authorization": authorization, "Origin": ORIGIN},
        )

    assert response.status_code == 401
    assert "error" in response.json()
    _assert_cors(response)
    mock_task.delay.assert_not_called()


@pytest.mark.asyncio
async def test_create_scan_with_expired_token_is_unauthorized(
    client: AsyncClient,
    make_token: Callable[..., str],
    user_id: str,
) -> None:
    token = make_token(user_id, expires_in=timedelta(minutes=-5))

    response = await client.post(
        SCANS_URL,
        json={"domain": "example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized: Token has expired."}


# ---------------------------------------------------------------------------
# POST /scans/ -- body validation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{}, {"domain": ""}, {"domain": "   "}, {"domain": "https://"}, {"target": "example.com"}],
)
async def test_create_scan_without_domain_is_bad_request(
    client: AsyncClient,
    auth_headers,
    session_factory,
    body: dict,
) -> None:
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(SCANS_URL, json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Domain is required in the request body."}
    _assert_cors(response)
    mock_task.delay.assert_not_called()


@pytest.mark.asyncio
async def test_create_scan_with_malformed_json_is_bad_request(client: AsyncClient, auth_headers) -> None:
    response = await client.post(
        SCANS_URL,
        content=b'{"domain": ',
        headers={**auth_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_create_scan_with_non_string_domain_is_bad_request(client: AsyncClient, auth_headers) -> None:
    response = await client.post(SCANS_URL, json={"domain": 42}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request: domain")


# ---------------------------------------------------------------------------
# POST /scans/ -- server failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_scan_store_failure(client: AsyncClient, test_app, auth_headers) -> None:
    """A failed initial write is a 500 and nothing is scheduled."""
    test_app.dependency_overrides[get_scan_store] = lambda: _BrokenStore()

    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        response = await client.post(SCANS_URL, json={"domain": "example.com"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create scan record."}
    _assert_cors(response)
    mock_task.delay.assert_not_called()


@pytest.mark.asyncio
async def test_create_scan_dispatch_failure_marks_scan_failed(
    client: AsyncClient,
    auth_headers,
    user_id,
    session_factory,
) -> None:
    with patch("leakscan.api.v1.scans.run_scan") as mock_task:
        mock_task.delay = MagicMock(side_effect=OSError("broker unreachable"))
        response = await client.post(SCANS_URL, json={"domain": "example.com"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to schedule scan."}

    async with session_factory() as session:
        scans = (await session.execute(Scan.__table__.select())).all()
    assert len(scans) == 1
    assert scans[0].status == ScanStatus.FAILED


@pytest.mark.asyncio
async def test_unhandled_error_uses_envelope_and_keeps_cors(
    client: AsyncClient,
    test_app,
    auth_headers,
) -> None:
    test_app.dependency_overrides[get_event_publisher] = lambda: _ExplodingPublisher()

    with patch("leakscan.api.v1.scans.run_scan"):
        response = await client.post(SCANS_URL, json={"domain": "example.com"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error."}
    _assert_cors(response)


# ---------------------------------------------------------------------------
# CORS preflight and health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_preflight_allows_configured_origin(client: AsyncClient) -> None:
    response = await client.options(
        SCANS_URL,
        headers={
            "Origin": ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization,content-type",
        },
    )

    assert response.status_code == 200
    _assert_cors(response)
    assert "POST" in response.headers["access-control-allow-methods"]
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ---------------------------------------------------------------------------
# GET /scans/ and GET /scans/{id}
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_scans_only_returns_own_scans(client: AsyncClient, auth_headers, user_id, sql_store) -> None:
    mine = await sql_store.create_scan("mine.example", user_id)
    await sql_store.create_scan("theirs.example", "someone-else")

    response = await client.get(SCANS_URL, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert [item["id"] for item in data] == [str(mine.id)]
    assert data[0]["status"] == "running"
    assert data[0]["findings"] == []


@pytest.mark.asyncio
async def test_list_scans_requires_authentication(client: AsyncClient) -> None:
    response = await client.get(SCANS_URL)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_scan_detail_with_findings(client: AsyncClient, auth_headers, user_id, sql_store) -> None:
    scan = await sql_store.create_scan("example.com", user_id)
    await sql_store.append_findings(
        [FindingRecord(scan.id, user_id, "https://example.com/.env", "Environment file", Severity.CRITICAL)]
    )
    await sql_store.update_status(scan.id, ScanStatus.COMPLETED)

    response = await client.get(f"{SCANS_URL}{scan.id}", headers=auth_headers)

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "completed"
    assert [(f["url"], f["severity"]) for f in data["findings"]] == [
        ("https://example.com/.env", "Critical"),
    ]


@pytest.mark.asyncio
async def test_get_scan_of_another_user_is_not_found(client: AsyncClient, auth_headers, sql_store) -> None:
    scan = await sql_store.create_scan("theirs.example", "someone-else")

    response = await client.get(f"{SCANS_URL}{scan.id}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"error": f"Scan with id '{scan.id}' not found."}


@pytest.mark.asyncio
async def test_get_scan_with_invalid_id_is_bad_request(client: AsyncClient, auth_headers) -> None:
    response = await client.get(f"{SCANS_URL}not-a-uuid", headers=auth_headers)

    assert response.status_code == 400
    assert "error" in response.json()
