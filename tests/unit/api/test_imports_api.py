"""Tests for the HTTP surface: health, templates, upload, commit, cancel."""

from __future__ import annotations

import io

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import load_workbook

from bulkimport.api.app import create_app
from bulkimport.core.config import AppSettings, ImportConfig
from bulkimport.core.exceptions import SubmitError
from tests.fakes import FakeSubmitter, make_csv

SITES = make_csv("Site name,State", "Acme,Karnataka", ",Maharashtra")


# ---------- helpers ----------

def _client(submitter=None, settings=None) -> AsyncClient:
    app = create_app(settings or AppSettings(), submitter=submitter or FakeSubmitter())
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _upload(content=SITES, filename="sites.csv", content_type="text/csv"):
    return {"file": (filename, content, content_type)}


# ---------- health ----------

@pytest.mark.asyncio
async def test_health_and_ready():
    async with _client() as client:
        health = await client.get("/health")
        ready = await client.get("/ready")
    assert health.json() == {"status": "healthy"}
    assert ready.json() == {"status": "ready", "environment": "dev"}


# ---------- templates ----------

@pytest.mark.asyncio
async def test_list_kinds():
    async with _client() as client:
        response = await client.get("/imports/kinds")
    assert "sites" in response.json()["kinds"]


@pytest.mark.asyncio
async def test_download_template():
    async with _client() as client:
        response = await client.get("/imports/attendance/template", params={"year": 2024, "month": 2})
    assert response.status_code == 200
    assert "attendance_bulk_template.xlsx" in response.headers["content-disposition"]
    sheet = load_workbook(io.BytesIO(response.content)).active
    assert sheet.max_column == 2 + 29


@pytest.mark.asyncio
async def test_unknown_kind_is_404():
    async with _client() as client:
        response = await client.get("/imports/payslips/template")
    assert response.status_code == 404


# ---------- sessions ----------

@pytest.mark.asyncio
async def test_upload_preview_commit_flow():
    submitter = FakeSubmitter()
    async with _client(submitter) as client:
        created = await client.post("/imports/sites/sessions", files=_upload())
        assert created.status_code == 201
        body = created.json()
        session_id = body["session_id"]
        assert body["preview"]["state"] == "PREVIEWING"
        assert body["preview"]["summary"] == {"total": 2, "valid": 1, "invalid": 1}
        assert body["preview"]["errors"] == [
            {"row": 3, "field": "site_name", "message": "Site name is required"}
        ]

        fetched = await client.get(f"/imports/sessions/{session_id}")
        assert fetched.json()["records"][0]["site_name"] == "Acme"

        committed = await client.post(f"/imports/sessions/{session_id}/commit")
        assert committed.status_code == 200
        assert committed.json()["state"] == "COMMITTED"
        assert committed.json()["inserted_count"] == 1

        again = await client.post(f"/imports/sessions/{session_id}/commit")
        assert again.status_code == 409

    assert submitter.calls == 1


@pytest.mark.asyncio
async def test_missing_header_is_422():
    async with _client() as client:
        response = await client.post(
            "/imports/sites/sessions", files=_upload(make_csv("Site name", "Acme"))
        )
    assert response.status_code == 422
    assert response.json()["detail"]["missing"] == ["State"]


@pytest.mark.asyncio
async def test_legacy_xls_is_415():
    async with _client() as client:
        response = await client.post(
            "/imports/sites/sessions",
            files=_upload(b"\xd0\xcf\x11\xe0", "sites.xls", "application/vnd.ms-excel"),
        )
    assert response.status_code == 415


@pytest.mark.asyncio
async def test_oversized_upload_is_413():
    settings = AppSettings(imports=ImportConfig(max_file_size_bytes=10))
    async with _client(settings=settings) as client:
        response = await client.post("/imports/sites/sessions", files=_upload())
    assert response.status_code == 413


@pytest.mark.asyncio
async def test_submit_failure_is_502_and_retryable():
    submitter = FakeSubmitter(SubmitError("Upload timed out after 30.0s"))
    async with _client(submitter) as client:
        session_id = (await client.post("/imports/sites/sessions", files=_upload())).json()["session_id"]

        failed = await client.post(f"/imports/sessions/{session_id}/commit")
        assert failed.status_code == 502
        assert failed.json()["detail"]["state"] == "PREVIEWING"

        retried = await client.post(f"/imports/sessions/{session_id}/commit")
        assert retried.status_code == 200


@pytest.mark.asyncio
async def test_cancel_removes_session():
    async with _client() as client:
        session_id = (await client.post("/imports/sites/sessions", files=_upload())).json()["session_id"]
        deleted = await client.delete(f"/imports/sessions/{session_id}")
        assert deleted.status_code == 204
        missing = await client.get(f"/imports/sessions/{session_id}")
        assert missing.status_code == 404


@pytest.mark.asyncio
async def test_attendance_commit_sends_period():
    submitter = FakeSubmitter()
    days = [f"{d:02d}/02/2024" for d in range(1, 30)]
    content = make_csv(",".join(["Emp ID", "Name", *days]), ",".join(["EMP001", "John Doe"] + ["P"] * 29))
    async with _client(submitter) as client:
        created = await client.post(
            "/imports/attendance/sessions",
            params={"year": 2024, "month": 2},
            files=_upload(content, "attendance.csv"),
        )
        assert created.status_code == 201
        assert created.json()["preview"]["summary"]["valid"] == 1
        session_id = created.json()["session_id"]
        committed = await client.post(f"/imports/sessions/{session_id}/commit")

    assert committed.status_code == 200
    assert submitter.payloads[0].form_fields == {"month": "2", "year": "2024"}
