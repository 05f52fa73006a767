"""SpreadsheetReader — decodes uploaded CSV/XLSX files into raw rows.

The whole file is buffered: header validation has to happen before any row
is processed, so rows are never streamed to later stages.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

from openpyxl import load_workbook

from bulkimport.core.config import ImportConfig
from bulkimport.core.exceptions import FileTooLargeError, ParseError, UnsupportedFormatError
from bulkimport.models.records import ParsedSheet, RawRow, RowError, is_empty

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME = "application/vnd.ms-excel"

_EXTENSIONS = {".csv": "csv", ".xlsx": "xlsx"}
_MIME_TYPES = {
    "text/csv": "csv",
    "application/csv": "csv",
    XLSX_MIME: "xlsx",
}


def detect_format(filename: str, content_type: str | None = None) -> str:
    """Resolve "csv" or "xlsx" from the file extension, falling back to MIME type."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix == ".xls" or (not suffix and content_type == XLS_MIME):
        raise UnsupportedFormatError(
            "Legacy .xls workbooks are not supported; save the file as .xlsx and upload again"
        )
    if suffix in _EXTENSIONS:
        return _EXTENSIONS[suffix]
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in _MIME_TYPES:
            return _MIME_TYPES[mime]
    raise UnsupportedFormatError("Please upload a CSV or Excel (.xlsx) file")


def check_upload(
    filename: str,
    size: int,
    content_type: str | None = None,
    max_bytes: int | None = None,
) -> str:
    """Extension/MIME and size check done before parsing. Returns the file format."""
    file_format = detect_format(filename, content_type)
    limit = ImportConfig().max_file_size_bytes if max_bytes is None else max_bytes
    if size > limit:
        raise FileTooLargeError(size, limit)
    return file_format


@dataclass(frozen=True)
class QuickScan:
    """Cheap look at the top of a file for a preview count."""

    headers: tuple[str, ...]
    rows_seen: int
    truncated: bool


def _read_content(source: Any) -> bytes:
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if hasattr(source, "read"):
        if hasattr(source, "seek"):
            source.seek(0)
        data = source.read()
        return data.encode("utf-8") if isinstance(data, str) else bytes(data or b"")
    raise ParseError(f"Unreadable upload of type {type(source).__name__}")


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _cell_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _header_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _cell_text(value)


def _is_blank_record(values: list[Any]) -> bool:
    return all(is_empty(v) for v in values)


class SpreadsheetReader:
    """Parses a buffered upload into a ``ParsedSheet``."""

    def __init__(self, config: ImportConfig | None = None) -> None:
        self._config = config or ImportConfig()

    def parse(self, source: Any, file_format: str) -> ParsedSheet:
        content = _read_content(source)
        if not content.strip():
            raise ParseError("The uploaded file is empty")

        fmt = file_format.lower().lstrip(".")
        if fmt == "csv":
            sheet = self._parse_csv(content)
        elif fmt == "xlsx":
            sheet = self._parse_xlsx(content)
        elif fmt == "xls":
            raise UnsupportedFormatError(
                "Legacy .xls workbooks are not supported; save the file as .xlsx and upload again"
            )
        else:
            raise UnsupportedFormatError(f"Unsupported file format {file_format!r}")

        if sheet.data_row_count == 0:
            raise ParseError("File must have a header row and at least one data row")
        logger.debug(
            "Parsed %s file: %d columns, %d rows, %d structural errors",
            fmt, len(sheet.headers), len(sheet.rows), len(sheet.row_errors),
        )
        return sheet

    def quick_scan(self, source: Any, file_format: str, limit: int | None = None) -> QuickScan:
        """Count non-blank data rows among the first ``limit`` rows after the header."""
        limit = self._config.quick_scan_rows if limit is None else limit
        content = _read_content(source)
        fmt = file_format.lower().lstrip(".")
        if fmt == "csv":
            records = self._iter_csv(content)
        elif fmt == "xlsx":
            records = self._iter_xlsx(content, read_only=True)
        else:
            raise UnsupportedFormatError(f"Unsupported file format {file_format!r}")

        headers: tuple[str, ...] | None = None
        scanned = seen = 0
        truncated = False
        try:
            for _, values in records:
                if headers is None:
                    if not _is_blank_record(values):
                        headers = tuple(_header_text(v) for v in values)
                    continue
                if scanned >= limit:
                    truncated = True
                    break
                scanned += 1
                if not _is_blank_record(values):
                    seen += 1
        finally:
            records.close()
        return QuickScan(headers=headers or (), rows_seen=seen, truncated=truncated)

    # ---- CSV ----

    def _iter_csv(self, content: bytes):
        text = _decode_text(content)
        try:
            for row_number, values in enumerate(csv.reader(io.StringIO(text)), start=1):
                yield row_number, values
        except csv.Error as exc:
            raise ParseError(f"Failed to parse CSV: {exc}") from exc

    def _parse_csv(self, content: bytes) -> ParsedSheet:
        headers: list[str] | None = None
        rows: list[RawRow] = []
        row_errors: list[RowError] = []

        for row_number, values in self._iter_csv(content):
            if _is_blank_record(values):
                continue
            if headers is None:
                headers = [_header_text(v) for v in values]
                continue
            if len(values) != len(headers):
                row_errors.append(RowError(
                    row=row_number,
                    field=None,
                    message=(
                        f"Column count mismatch: expected {len(headers)} values, "
                        f"found {len(values)}"
                    ),
                ))
                continue
            cells: dict[str, Any] = {}
            for header, value in zip(headers, values):
                if header and header not in cells:
                    cells[header] = value
            rows.append(RawRow(row_number=row_number, cells=cells))

        if headers is None:
            raise ParseError("CSV header row is missing")
        return ParsedSheet(
            file_format="csv", headers=tuple(headers), rows=tuple(rows), row_errors=tuple(row_errors),
        )

    # ---- XLSX ----

    def _iter_xlsx(self, content: bytes, read_only: bool = False):
        try:
            workbook = load_workbook(io.BytesIO(content), data_only=True, read_only=read_only)
        except Exception as exc:
            raise ParseError(f"Failed to parse Excel file: {exc}") from exc
        try:
            if not workbook.worksheets:
                raise ParseError("Workbook has no worksheets")
            sheet = workbook.worksheets[0]
            min_row = sheet.min_row or 1
            for row_number, values in enumerate(
                sheet.iter_rows(
                    min_row=min_row,
                    max_row=sheet.max_row,
                    min_col=sheet.min_column,
                    max_col=sheet.max_column,
                    values_only=True,
                ),
                start=min_row,
            ):
                yield row_number, list(values)
        finally:
            workbook.close()

    def _parse_xlsx(self, content: bytes) -> ParsedSheet:
        headers: list[str] | None = None
        rows: list[RawRow] = []

        for row_number, values in self._iter_xlsx(content):
            if _is_blank_record(values):
                continue
            if headers is None:
                headers = [_header_text(v) for v in values]
                continue
            cells: dict[str, Any] = {}
            for index, header in enumerate(headers):
                if not header or header in cells:
                    continue
                value = values[index] if index < len(values) else None
                cells[header] = "" if value is None else value
            rows.append(RawRow(row_number=row_number, cells=cells))

        if headers is None:
            raise ParseError("The selected sheet is empty")
        return ParsedSheet(file_format="xlsx", headers=tuple(headers), rows=tuple(rows))
