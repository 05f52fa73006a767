"""BatchAccumulator — folds mapped, validated rows into an ImportResult.

Rows are processed strictly in file order. A row with any error never reaches
``valid_records``; blank rows are skipped and not counted.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable
from typing import Any

from bulkimport.ingest.headers import HeaderNormalizer, HeaderResolution
from bulkimport.ingest.mapper import RowMapper
from bulkimport.ingest.validator import RowValidator
from bulkimport.models.records import (
    CandidateRecord,
    ImportResult,
    ImportSummary,
    ParsedSheet,
    RawRow,
    RowError,
)
from bulkimport.models.schema import ImportSchema

logger = logging.getLogger(__name__)


class BatchAccumulator:
    """Builds the pre-commit ImportResult for one schema."""

    def __init__(self, schema: ImportSchema) -> None:
        self._schema = schema
        self._validator = RowValidator(schema)

    def accumulate(
        self,
        rows: Iterable[RawRow],
        headers: HeaderResolution,
        structural_errors: Iterable[RowError] = (),
    ) -> ImportResult:
        mapper = RowMapper(self._schema, headers)
        valid: list[CandidateRecord] = []
        errors: list[RowError] = []
        total = invalid = 0
        seen_keys: dict[str, int] = {}

        # Structural (reader) errors interleave with mapped rows by row number.
        items = heapq.merge(
            ((row.row_number, 0, row) for row in rows),
            ((error.row, 1, error) for error in structural_errors),
            key=lambda item: (item[0], item[1]),
        )
        for row_number, _, item in items:
            if isinstance(item, RowError):
                total += 1
                invalid += 1
                errors.append(item)
                continue

            if mapper.is_blank(item):
                continue
            total += 1
            record = mapper.map_row(item)
            row_errors = self._validator.validate_row(record)
            if not row_errors:
                # Keys of rows that will not be imported are never registered.
                row_errors = self._check_duplicate(record, seen_keys)

            if row_errors:
                invalid += 1
                errors.extend(row_errors)
            else:
                valid.append(record)

        result = ImportResult(
            valid_records=tuple(valid),
            errors=tuple(errors),
            summary=ImportSummary(total=total, valid=len(valid), invalid=invalid),
        )
        logger.info(
            "Import %s validated: total=%d valid=%d invalid=%d",
            self._schema.kind, total, len(valid), invalid,
        )
        return result

    def _check_duplicate(self, record: CandidateRecord, seen: dict[str, int]) -> list[RowError]:
        if self._schema.row_identity is None:
            return []
        key = self._identity(record.values)
        if not key:
            return []
        first = seen.setdefault(key, record.row_number)
        if first == record.row_number:
            return []
        label = self._schema.identity_label or "key"
        return [RowError(
            row=record.row_number,
            field=None,
            message=f"Duplicate {label} '{key}' (first seen in row {first})",
        )]

    def _identity(self, values: dict[str, Any]) -> str | None:
        key = self._schema.row_identity(values)  # type: ignore[misc]
        return str(key).strip() if key is not None else None


def accumulate(sheet: ParsedSheet, schema: ImportSchema) -> ImportResult:
    """Header check, then map/validate every row. Raises HeaderError on missing columns."""
    headers = HeaderNormalizer(schema).resolve(sheet.headers)
    return BatchAccumulator(schema).accumulate(sheet.rows, headers, sheet.row_errors)
