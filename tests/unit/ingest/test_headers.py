"""Tests for header normalization and the fail-fast header check."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from bulkimport.core.exceptions import HeaderError
from bulkimport.ingest.headers import HeaderNormalizer, normalize_header, normalize_headers
from bulkimport.schemas.catalog import attendance_schema, salary_code_schema, site_schema


def test_normalize_header_equivalences():
    assert normalize_header("Site name") == "sitename"
    assert normalize_header("site_name") == "sitename"
    assert normalize_header("SiteName") == "sitename"
    assert normalize_header("  State\tName ") == "statename"
    assert normalize_header(None) == ""


def test_date_headers_share_one_key():
    assert normalize_header("01/08/2025") == "2025-08-01"
    assert normalize_header("1-8-2025") == "2025-08-01"
    assert normalize_header("2025-08-01") == "2025-08-01"
    assert normalize_header("2025-08-01 00:00:00") == "2025-08-01"
    assert normalize_header(datetime(2025, 8, 1)) == "2025-08-01"
    assert normalize_header(date(2025, 8, 1)) == "2025-08-01"


def test_impossible_date_header_falls_back_to_text():
    assert normalize_header("31/02/2025") == "31/02/2025"


class TestNormalizeHeaders:
    def test_variant_spellings_resolve(self):
        resolution = normalize_headers(["SITE_NAME", "state"], site_schema())
        assert resolution.ok
        assert resolution.header_map["sitename"] == "SITE_NAME"
        assert resolution.original("Site name") == "SITE_NAME"

    def test_missing_listed_in_schema_order(self):
        resolution = normalize_headers(["Location"], site_schema())
        assert resolution.missing == ["Site name", "State"]

    def test_first_duplicate_wins(self):
        resolution = normalize_headers(["Site name", "site_name", "State"], site_schema())
        assert resolution.header_map["sitename"] == "Site name"

    def test_canonical_field_name_counts_as_present(self):
        resolution = normalize_headers(["site_name", "rank", "state", "base_wage"], salary_code_schema())
        assert resolution.missing == []

    def test_attendance_aliases_and_day_first_dates(self):
        days = [f"{d:02d}/02/2024" for d in range(1, 30)]
        resolution = normalize_headers(["Emp ID", "Name", *days], attendance_schema(2024, 2))
        assert resolution.missing == []
        assert resolution.original("2024-02-05") == "05/02/2024"

    def test_blank_headers_ignored(self):
        resolution = normalize_headers(["", "Site name", "State"], site_schema())
        assert "" not in resolution.header_map


class TestHeaderNormalizer:
    def test_raises_with_missing_columns(self):
        with pytest.raises(HeaderError) as exc_info:
            HeaderNormalizer(site_schema()).resolve(["Site name", "Location"])
        assert exc_info.value.missing == ["State"]
        assert str(exc_info.value) == "Missing required columns: State"

    def test_returns_resolution(self):
        resolution = HeaderNormalizer(site_schema()).resolve(["State", "Site name"])
        assert resolution.ok
