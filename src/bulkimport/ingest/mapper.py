"""RowMapper — turns a raw row into a candidate record of coerced canonical values.

Never raises on malformed cell content. A value that cannot be coerced is
recorded in ``coercion_failures`` and left for the validator to report.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

from bulkimport.ingest.headers import HeaderResolution
from bulkimport.models.records import CandidateRecord, RawRow, is_empty
from bulkimport.models.schema import ImportSchema

TRUE_LITERALS = frozenset({"true", "yes"})
FALSE_LITERALS = frozenset({"false", "no"})

# Day-first before month-first: the source files are Indian payroll sheets.
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d", "%d-%b-%Y", "%d %b %Y")

_FAILED = object()


def coerce_number(value: Any) -> float | object:
    if isinstance(value, bool):
        return _FAILED
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return _FAILED
    return number if math.isfinite(number) else _FAILED


def coerce_boolean(value: Any) -> bool | object:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    return _FAILED


def coerce_date(value: Any) -> date | object:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # Spreadsheet datetimes round-tripped through CSV carry a time part.
    if "T" in text or " 00:00:00" in text:
        text = text.replace("T", " ").split(" ", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return _FAILED


def coerce_string(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


class RowMapper:
    """Maps raw rows for one schema and one resolved header set."""

    def __init__(self, schema: ImportSchema, headers: HeaderResolution) -> None:
        self._schema = schema
        self._columns = self._resolve_columns(schema, headers)

    @staticmethod
    def _resolve_columns(schema: ImportSchema, headers: HeaderResolution) -> dict[str, str | None]:
        """Canonical field -> original file header (None when the column is absent)."""
        columns: dict[str, str | None] = {field: None for field in schema.fields}
        for normalized, field in schema.field_map.items():
            if columns[field] is None and normalized in headers.header_map:
                columns[field] = headers.header_map[normalized]
        return columns

    @property
    def columns(self) -> dict[str, str | None]:
        return dict(self._columns)

    def is_blank(self, raw: RawRow) -> bool:
        """True when every mapped column is empty in the raw row."""
        return all(
            header is None or is_empty(raw.cells.get(header))
            for header in self._columns.values()
        )

    def map_row(self, raw: RawRow) -> CandidateRecord:
        values: dict[str, Any] = {}
        failures: set[str] = set()

        for field, header in self._columns.items():
            raw_value = raw.cells.get(header, "") if header is not None else ""
            value, ok = self._coerce(field, raw_value)
            values[field] = value
            if not ok:
                failures.add(field)

        return CandidateRecord(
            row_number=raw.row_number, values=values, coercion_failures=frozenset(failures),
        )

    def _coerce(self, field: str, raw_value: Any) -> tuple[Any, bool]:
        field_type = self._schema.field_type(field)

        if is_empty(raw_value):
            if field in self._schema.defaults:
                return self._schema.defaults[field], True
            return ("" if field_type == "string" else None), True

        if field_type == "number":
            number = coerce_number(raw_value)
            return (math.nan, False) if number is _FAILED else (number, True)
        if field_type == "boolean":
            flag = coerce_boolean(raw_value)
            return (coerce_string(raw_value), False) if flag is _FAILED else (flag, True)
        if field_type == "date":
            day = coerce_date(raw_value)
            return (coerce_string(raw_value), False) if day is _FAILED else (day, True)

        text = coerce_string(raw_value)
        enum = self._schema.enum_rule(field)
        if enum is not None and not enum.case_sensitive:
            folded = text.casefold()
            for member in enum.allowed:
                if member.casefold() == folded:
                    return member, True
        return text, True
