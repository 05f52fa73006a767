"""ImportSession — one user's import, from uploaded file to committed batch.

State machine::

    IDLE -> PARSING -> PARSE_ERROR | HEADER_ERROR | PARSED
    PARSED -> PREVIEWING -> COMMITTING -> COMMITTED
                                       -> SUBMIT_ERROR -> PREVIEWING (retry)

A session owns all of its state; open two dialogs, use two sessions.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from bulkimport.commit.adapter import CommitAdapter, SubmitFn, jsonable
from bulkimport.core.config import ImportConfig
from bulkimport.core.exceptions import (
    FileTooLargeError,
    HeaderError,
    InvalidTransitionError,
    ParseError,
    SubmitError,
)
from bulkimport.ingest.accumulator import accumulate
from bulkimport.ingest.reader import SpreadsheetReader, detect_format
from bulkimport.models.records import ImportResult, ImportSummary
from bulkimport.models.schema import ImportSchema
from bulkimport.models.session import ImportPreview, SessionState

logger = logging.getLogger(__name__)


async def _read_source(source: Any) -> Any:
    read = getattr(source, "read", None)
    if read is None:
        return source
    seek = getattr(source, "seek", None)
    if inspect.iscoroutinefunction(read):
        if inspect.iscoroutinefunction(seek):
            await seek(0)
        return await read()
    if seek is not None:
        seek(0)
    return read()


class ImportSession:
    """Drives one import through parse, preview and commit."""

    def __init__(
        self,
        schema: ImportSchema,
        submit_fn: SubmitFn,
        config: ImportConfig | None = None,
        reader: SpreadsheetReader | None = None,
    ) -> None:
        self._schema = schema
        self._config = config or ImportConfig()
        self._reader = reader or SpreadsheetReader(self._config)
        self._adapter = CommitAdapter(schema, submit_fn)
        self._state = SessionState.IDLE
        self._parsed: ImportResult | None = None
        self._final: ImportResult | None = None
        self._missing: list[str] = []
        self._last_error = ""

    @property
    def schema(self) -> ImportSchema:
        return self._schema

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def result(self) -> ImportResult | None:
        """Final result once committed, otherwise the parsed preview result."""
        return self._final or self._parsed

    def _require(self, action: str, *allowed: SessionState) -> None:
        if self._state not in allowed:
            raise InvalidTransitionError(self._state.value, action)

    # ---- parse ----

    async def load(
        self,
        source: Any,
        *,
        filename: str | None = None,
        file_format: str | None = None,
        content_type: str | None = None,
    ) -> ImportResult:
        """Read, header-check, map and validate an uploaded file."""
        self._require("load a file", SessionState.IDLE)
        self._state = SessionState.PARSING
        try:
            content = await _read_source(source)
            if file_format is None:
                file_format = detect_format(filename or "", content_type)
            size = len(content) if isinstance(content, (bytes, bytearray, str)) else 0
            if size > self._config.max_file_size_bytes:
                raise FileTooLargeError(size, self._config.max_file_size_bytes)
            sheet = self._reader.parse(content, file_format)
            self._parsed = accumulate(sheet, self._schema)
        except HeaderError as exc:
            self._state = SessionState.HEADER_ERROR
            self._missing = exc.missing
            self._last_error = str(exc)
            self._parsed = ImportResult()
            raise
        except ParseError as exc:
            self._state = SessionState.PARSE_ERROR
            self._last_error = str(exc)
            raise
        self._state = SessionState.PARSED
        return self._parsed

    # ---- preview ----

    def preview(self, rows: int | None = None) -> ImportPreview:
        """Snapshot for display. Moves PARSED to PREVIEWING."""
        if self._state == SessionState.PARSED:
            self._state = SessionState.PREVIEWING
        return self.snapshot(rows)

    def snapshot(self, rows: int | None = None) -> ImportPreview:
        limit = self._config.preview_rows if rows is None else rows
        result = self.result or ImportResult()
        errors, hidden = result.displayed_errors(self._config.display_error_cap)
        records = [
            {"row": r.row_number, **{k: jsonable(v) for k, v in r.values.items()}}
            for r in result.valid_records[:limit]
        ]
        return ImportPreview(
            kind=self._schema.kind,
            state=self._state,
            summary=result.summary if self._parsed is not None else ImportSummary(),
            records=records,
            errors=errors,
            hidden_errors=hidden,
            missing_headers=list(self._missing),
            last_error=self._last_error,
            inserted_count=result.inserted_count,
            failed_count=result.failed_count,
            unattributed_failures=list(result.unattributed_failures),
        )

    # ---- commit ----

    async def commit(self) -> ImportResult:
        """Submit the locally valid records. On SubmitError the preview is kept for retry."""
        self._require("commit", SessionState.PARSED, SessionState.PREVIEWING)
        parsed = self._parsed
        if parsed is None:
            raise InvalidTransitionError(self._state.value, "commit")
        self._state = SessionState.COMMITTING
        try:
            final = await self._adapter.commit(parsed)
        except SubmitError as exc:
            self._state = SessionState.SUBMIT_ERROR
            self._last_error = str(exc)
            logger.warning("Import %s submit failed: %s", self._schema.kind, exc)
            self._state = SessionState.PREVIEWING
            raise
        self._final = final
        self._last_error = ""
        self._state = SessionState.COMMITTED
        return final

    # ---- cancel ----

    def cancel(self) -> None:
        """Discard the session. Not allowed while a commit is in flight."""
        if self._state in (SessionState.COMMITTING, SessionState.COMMITTED):
            raise InvalidTransitionError(self._state.value, "cancel")
        self._parsed = None
        self._state = SessionState.CANCELLED
