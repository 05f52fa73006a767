"""Tests for the ImportSession state machine."""

from __future__ import annotations

import io

import pytest

from bulkimport.core.config import ImportConfig
from bulkimport.core.exceptions import (
    FileTooLargeError,
    HeaderError,
    InvalidTransitionError,
    ParseError,
    SubmitError,
    UnsupportedFormatError,
)
from bulkimport.models.session import SessionState
from bulkimport.schemas.catalog import site_schema
from bulkimport.session import ImportSession
from tests.fakes import FakeSubmitter, make_csv

SITES = make_csv("Site name,State", "Acme,Karnataka", ",Maharashtra")


def _session(submitter=None, **config):
    return ImportSession(site_schema(), submitter or FakeSubmitter(), config=ImportConfig(**config))


class TestLoad:
    @pytest.mark.asyncio
    async def test_parsed_then_previewing(self):
        session = _session()
        assert session.state == SessionState.IDLE

        result = await session.load(SITES, filename="sites.csv")
        assert session.state == SessionState.PARSED
        assert result.summary.total == 2

        preview = session.preview()
        assert session.state == SessionState.PREVIEWING
        assert preview.records == [
            {"row": 2, "site_name": "Acme", "state": "Karnataka", "location": ""}
        ]
        assert preview.errors[0].message == "Site name is required"

    @pytest.mark.asyncio
    async def test_file_like_source(self):
        session = _session()
        await session.load(io.BytesIO(SITES), file_format="csv")
        assert session.state == SessionState.PARSED

    @pytest.mark.asyncio
    async def test_header_error_state(self):
        session = _session()
        with pytest.raises(HeaderError):
            await session.load(make_csv("Site name", "Acme"), filename="sites.csv")
        assert session.state == SessionState.HEADER_ERROR
        preview = session.snapshot()
        assert preview.missing_headers == ["State"]
        assert preview.summary.total == 0
        assert preview.records == []

    @pytest.mark.asyncio
    async def test_parse_error_state(self):
        session = _session()
        with pytest.raises(ParseError):
            await session.load(b"", filename="sites.csv")
        assert session.state == SessionState.PARSE_ERROR
        assert "empty" in session.last_error

    @pytest.mark.asyncio
    async def test_oversized_upload(self):
        session = _session(max_file_size_bytes=10)
        with pytest.raises(FileTooLargeError):
            await session.load(SITES, filename="sites.csv")
        assert session.state == SessionState.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            await _session().load(SITES, filename="sites.xls")

    @pytest.mark.asyncio
    async def test_cannot_load_twice(self):
        session = _session()
        await session.load(SITES, filename="sites.csv")
        with pytest.raises(InvalidTransitionError):
            await session.load(SITES, filename="sites.csv")

    @pytest.mark.asyncio
    async def test_preview_row_limit(self):
        session = _session(preview_rows=1)
        await session.load(make_csv("Site name,State", "Acme,Goa", "Contoso,Goa"), file_format="csv")
        assert len(session.preview().records) == 1
        assert len(session.preview(rows=5).records) == 2


class TestCommit:
    @pytest.mark.asyncio
    async def test_commit_before_load_rejected(self):
        with pytest.raises(InvalidTransitionError, match="Cannot commit while session is IDLE"):
            await _session().commit()

    @pytest.mark.asyncio
    async def test_commit_success(self):
        submitter = FakeSubmitter()
        session = _session(submitter)
        await session.load(SITES, filename="sites.csv")
        session.preview()

        final = await session.commit()

        assert session.state == SessionState.COMMITTED
        assert final.inserted_count == 1
        assert session.snapshot().inserted_count == 1
        assert submitter.payloads[0].row_numbers == (2,)

    @pytest.mark.asyncio
    async def test_submit_error_keeps_preview_for_retry(self):
        submitter = FakeSubmitter(SubmitError("Upload timed out after 30.0s"))
        session = _session(submitter)
        await session.load(SITES, filename="sites.csv")
        before = session.result

        with pytest.raises(SubmitError):
            await session.commit()
        assert session.state == SessionState.PREVIEWING
        assert session.last_error == "Upload timed out after 30.0s"
        assert session.result == before

        await session.commit()
        assert session.state == SessionState.COMMITTED
        assert session.last_error == ""
        assert submitter.calls == 2

    @pytest.mark.asyncio
    async def test_commit_twice_rejected(self):
        session = _session()
        await session.load(SITES, filename="sites.csv")
        await session.commit()
        with pytest.raises(InvalidTransitionError):
            await session.commit()


class TestCancel:
    @pytest.mark.asyncio
    async def test_commit_after_cancel_rejected(self):
        session = _session()
        await session.load(SITES, filename="sites.csv")
        session.cancel()
        with pytest.raises(InvalidTransitionError, match="Cannot commit while session is CANCELLED"):
            await session.commit()

    @pytest.mark.asyncio
    async def test_cancel_discards_result(self):
        session = _session()
        await session.load(SITES, filename="sites.csv")
        session.preview()
        session.cancel()
        assert session.state == SessionState.CANCELLED
        assert session.result is None

    @pytest.mark.asyncio
    async def test_cancel_blocked_while_committing(self):
        holder = {}

        async def submit(payload):
            with pytest.raises(InvalidTransitionError):
                holder["session"].cancel()
            holder["state"] = holder["session"].state
            return {"success": True}

        session = _session(submit)
        holder["session"] = session
        await session.load(SITES, filename="sites.csv")
        await session.commit()
        assert holder["state"] == SessionState.COMMITTING
        assert session.state == SessionState.COMMITTED


@pytest.mark.asyncio
async def test_sessions_share_no_state():
    first, second = _session(), _session()
    await first.load(SITES, filename="sites.csv")
    assert second.state == SessionState.IDLE
    assert second.result is None
