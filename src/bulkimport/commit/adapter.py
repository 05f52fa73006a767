"""CommitAdapter — ships locally valid records to the external bulk endpoint.

One request per commit: either every locally valid record is sent, or none
is. A failed call leaves the caller's ImportResult untouched so the same
payload can be retried.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime
from typing import Any

from openpyxl import Workbook

from bulkimport.core.exceptions import SubmitError
from bulkimport.ingest.reader import XLSX_MIME
from bulkimport.models.records import (
    CandidateRecord,
    CommitPayload,
    ImportResult,
    ImportSummary,
    RowError,
    SubmitResponse,
)
from bulkimport.models.schema import ImportSchema

logger = logging.getLogger(__name__)

SubmitFn = Callable[[CommitPayload], Awaitable[Any]]


def jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class CommitAdapter:
    """Serializes valid records and relays the endpoint's per-row outcome."""

    def __init__(self, schema: ImportSchema, submit_fn: SubmitFn) -> None:
        self._schema = schema
        self._submit = submit_fn

    # ---- serialization ----

    def serialize(self, records: Sequence[CandidateRecord]) -> CommitPayload:
        if self._schema.transport == "xlsx":
            return self._to_xlsx(records)
        return self._to_json(records)

    def _to_xlsx(self, records: Sequence[CandidateRecord]) -> CommitPayload:
        fields = self._schema.fields
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self._schema.kind[:31]
        sheet.append(fields)
        for record in records:
            sheet.append([self._cell(record.get(f)) for f in fields])

        buffer = io.BytesIO()
        workbook.save(buffer)
        return CommitPayload(
            kind=self._schema.kind,
            transport="xlsx",
            row_numbers=tuple(r.row_number for r in records),
            row_offset=2,
            content=buffer.getvalue(),
            filename=f"{self._schema.kind}_import_cleaned.xlsx",
            content_type=XLSX_MIME,
            form_fields=dict(self._schema.form_fields),
        )

    @staticmethod
    def _cell(value: Any) -> Any:
        if value is None or value == "":
            return None
        return value

    def _to_json(self, records: Sequence[CandidateRecord]) -> CommitPayload:
        items = [
            {field: jsonable(record.get(field)) for field in self._schema.fields}
            for record in records
        ]
        body: Any = {self._schema.json_key: items} if self._schema.json_key else items
        return CommitPayload(
            kind=self._schema.kind,
            transport="json",
            row_numbers=tuple(r.row_number for r in records),
            row_offset=1,
            content=json.dumps(body).encode("utf-8"),
            records=body,
            filename=f"{self._schema.kind}_import.json",
            content_type="application/json",
        )

    # ---- submission ----

    async def commit(self, result: ImportResult) -> ImportResult:
        """Submit ``result.valid_records``; return a new result extended with outcomes."""
        if not result.valid_records:
            raise SubmitError("No valid records to submit")

        payload = self.serialize(result.valid_records)
        try:
            raw = await self._submit(payload)
        except SubmitError:
            raise
        except Exception as exc:
            raise SubmitError(f"Bulk submit for {self._schema.kind} failed: {exc}") from exc

        try:
            response = raw if isinstance(raw, SubmitResponse) else SubmitResponse.model_validate(raw)
        except ValueError as exc:
            raise SubmitError(f"Unexpected bulk submit response: {exc}") from exc

        if not response.success and not response.errors:
            raise SubmitError(response.message or f"Bulk submit for {self._schema.kind} was rejected")

        merged = self.merge_outcome(result, payload, response)
        logger.info(
            "Import %s committed: sent=%d inserted=%s failed=%d",
            self._schema.kind, payload.record_count, merged.inserted_count, merged.failed_count,
        )
        return merged

    @staticmethod
    def merge_outcome(
        result: ImportResult, payload: CommitPayload, response: SubmitResponse
    ) -> ImportResult:
        """Fold server-side rejections back into the row-numbered error log."""
        server_errors: list[RowError] = []
        unattributed: list[str] = []
        rejected: set[int] = set()

        for failure in response.errors:
            source_row = payload.source_row(failure.row)
            message = failure.error or "Rejected by server"
            if source_row is None:
                unattributed.append(
                    message if failure.row is None else f"Row {failure.row}: {message}"
                )
                continue
            rejected.add(source_row)
            server_errors.append(RowError(row=source_row, field=None, message=message))

        if unattributed:
            logger.warning(
                "Import %s: %d server failure(s) could not be attributed to a row",
                payload.kind, len(unattributed),
            )

        valid = tuple(r for r in result.valid_records if r.row_number not in rejected)
        errors = tuple(sorted([*result.errors, *server_errors], key=lambda e: e.row))
        failed = len(rejected) + len(unattributed)
        inserted = response.created
        if inserted is None:
            inserted = max(payload.record_count - failed, 0)

        total = result.summary.total
        return result.model_copy(update={
            "valid_records": valid,
            "errors": errors,
            "summary": ImportSummary(total=total, valid=len(valid), invalid=total - len(valid)),
            "inserted_count": inserted,
            "failed_count": failed,
            "unattributed_failures": tuple(unattributed),
        })
