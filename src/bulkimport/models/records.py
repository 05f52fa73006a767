"""Row-level and batch-level data models flowing through the engine."""

from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class RawRow(BaseModel):
    """One data row as found in the file, with its 1-indexed row number."""

    model_config = {"frozen": True}

    row_number: int
    cells: dict[str, Any] = Field(default_factory=dict)  # original header -> raw value


class ParsedSheet(BaseModel):
    """Fully buffered reader output: headers, data rows, structural row errors."""

    model_config = {"frozen": True}

    file_format: Literal["csv", "xlsx"]
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...] = ()
    row_errors: tuple[RowError, ...] = ()

    @property
    def data_row_count(self) -> int:
        return len(self.rows) + len(self.row_errors)


class CandidateRecord(BaseModel):
    """A raw row mapped onto canonical fields with coerced values."""

    model_config = {"frozen": True}

    row_number: int
    values: dict[str, Any] = Field(default_factory=dict)
    coercion_failures: frozenset[str] = frozenset()

    def get(self, field: str, default: Any = None) -> Any:
        return self.values.get(field, default)

    def is_blank(self) -> bool:
        return all(is_empty(v) for v in self.values.values())


class RowError(BaseModel):
    """A recoverable, row-scoped problem. ``field`` is None for row-level errors."""

    model_config = {"frozen": True}

    row: int
    field: Optional[str] = None
    message: str


class ImportSummary(BaseModel):
    """Row counts for a batch; ``valid + invalid == total`` always."""

    model_config = {"frozen": True}

    total: int = 0
    valid: int = 0
    invalid: int = 0

    @model_validator(mode="after")
    def _check_partition(self) -> ImportSummary:
        if self.valid + self.invalid != self.total:
            raise ValueError(
                f"summary does not partition: {self.valid} + {self.invalid} != {self.total}"
            )
        return self


class ImportResult(BaseModel):
    """Outcome of parse + validate, optionally extended with commit outcomes."""

    model_config = {"frozen": True}

    valid_records: tuple[CandidateRecord, ...] = ()
    errors: tuple[RowError, ...] = ()
    summary: ImportSummary = ImportSummary()

    # Commit-phase outcome; None until a commit has succeeded.
    inserted_count: Optional[int] = None
    failed_count: int = 0
    unattributed_failures: tuple[str, ...] = ()

    @property
    def committed(self) -> bool:
        return self.inserted_count is not None

    @property
    def invalid_rows(self) -> list[int]:
        return sorted({e.row for e in self.errors})

    def errors_for_row(self, row: int) -> list[RowError]:
        return [e for e in self.errors if e.row == row]

    def displayed_errors(self, cap: int = 50) -> tuple[list[RowError], int]:
        """Return the first ``cap`` errors and how many were left out."""
        shown = list(self.errors[:cap])
        return shown, max(len(self.errors) - cap, 0)


class CommitPayload(BaseModel):
    """Serialized valid records, ready for the external bulk endpoint."""

    model_config = {"frozen": True}

    kind: str
    transport: Literal["xlsx", "json"]
    row_numbers: tuple[int, ...]  # source row of each payload record, in order
    row_offset: int  # payload position of the first record (2 for xlsx, 1 for json)
    content: bytes = b""
    records: Any = None  # JSON body for json transport
    filename: str = ""
    content_type: str = "application/json"
    form_fields: dict[str, str] = Field(default_factory=dict)  # extra multipart fields

    @property
    def record_count(self) -> int:
        return len(self.row_numbers)

    def source_row(self, payload_row: int | None) -> int | None:
        """Translate a payload position reported by the server to a file row."""
        if payload_row is None:
            return None
        index = payload_row - self.row_offset
        if 0 <= index < len(self.row_numbers):
            return self.row_numbers[index]
        return None


class SubmitRowError(BaseModel):
    """Per-record rejection reported by the bulk endpoint."""

    row: Optional[int] = None
    error: str = ""


class SubmitResponse(BaseModel):
    """Bulk endpoint response: ``{success, created?, errors?: [{row, error}]}``."""

    success: bool = True
    created: Optional[int] = None
    message: str = ""
    errors: list[SubmitRowError] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def _coerce_plain_messages(cls, value: Any) -> Any:
        # Some endpoints return bare strings with no row attribution.
        if value is None:
            return []
        return [{"error": item} if isinstance(item, str) else item for item in value]


def is_empty(value: Any) -> bool:
    """True for None, blank strings, and NaN."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return math.isnan(value)
    return False


ParsedSheet.model_rebuild()
