"""Ledger API endpoint tests."""

import pytest
from httpx import AsyncClient

from chiptrack.services.ledger import HEADERS, ExcelLedger

VALID_BODY = {
    "boxNumber": "A1B2",
    "product": "Resin-X",
    "netWeight": "12.5",
    "operatorName": "Jane Doe",
    "destination": "Extruder 1",
}


@pytest.mark.api
@pytest.mark.asyncio
class TestSaveEndpoint:
    """POST /save."""

    async def test_save_appends_row(self, client: AsyncClient, ledger: ExcelLedger):
        resp = await client.post("/save", json=VALID_BODY)

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert ledger.read_rows() == [
            HEADERS,
            ["A1B2", "Resin-X", "Jane Doe", "Extruder 1", "3/5/2026", "03:07 PM", "12.5"],
        ]

    async def test_values_are_trimmed(self, client: AsyncClient, ledger: ExcelLedger):
        body = {key: f"  {value}  " for key, value in VALID_BODY.items()}
        resp = await client.post("/save", json=body)

        assert resp.status_code == 200
        assert ledger.read_rows()[1][0] == "A1B2"

    async def test_each_request_is_a_new_row(self, client: AsyncClient, ledger: ExcelLedger):
        await client.post("/save", json=VALID_BODY)
        await client.post("/save", json=VALID_BODY)
        assert len(ledger.read_rows()) == 3

    async def test_missing_fields_rejected(self, client: AsyncClient, ledger: ExcelLedger):
        resp = await client.post("/save", json={"boxNumber": "A1", "product": "  "})

        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "MISSING_FIELDS"
        assert error["message"] == "Missing required fields."
        assert error["details"]["fields"] == ["product", "operatorName", "destination", "netWeight"]
        assert not ledger.path.exists()

    async def test_non_string_values_count_as_missing(self, client: AsyncClient):
        body = dict(VALID_BODY, netWeight=12.5, destination=None)
        resp = await client.post("/save", json=body)

        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["fields"] == ["destination", "netWeight"]

    async def test_non_object_body_rejected(self, client: AsyncClient):
        resp = await client.post("/save", json=["A1B2"])
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_write_failure_is_500(self, client: AsyncClient, ledger: ExcelLedger):
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_bytes(b"corrupt")

        resp = await client.post("/save", json=VALID_BODY)

        assert resp.status_code == 500
        assert resp.json()["error"] == {
            "code": "LEDGER_WRITE_FAILED",
            "message": "Unable to save data.",
        }
        assert ledger.path.read_bytes() == b"corrupt"

    async def test_cors_preflight(self, client: AsyncClient):
        resp = await client.options(
            "/save",
            headers={
                "Origin": "http://test",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://test"

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        resp = await client.get("/ledger")
        assert resp.status_code == 404
        assert resp.json() == {"error": {"code": "HTTP_404", "message": "Not Found"}}


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_ready_when_ledger_writable(self, client: AsyncClient):
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        assert resp.json()["checks"]["ledger"] == "ok"
