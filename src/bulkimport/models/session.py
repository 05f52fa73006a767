"""Import session state and preview models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from bulkimport.models.records import ImportSummary, RowError


class SessionState(StrEnum):
    IDLE = "IDLE"
    PARSING = "PARSING"
    PARSE_ERROR = "PARSE_ERROR"
    HEADER_ERROR = "HEADER_ERROR"
    PARSED = "PARSED"
    PREVIEWING = "PREVIEWING"
    COMMITTING = "COMMITTING"
    SUBMIT_ERROR = "SUBMIT_ERROR"
    COMMITTED = "COMMITTED"
    CANCELLED = "CANCELLED"


class ImportPreview(BaseModel):
    """What the user sees before (and after) committing."""

    kind: str
    state: SessionState
    summary: ImportSummary
    records: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)
    hidden_errors: int = 0
    missing_headers: list[str] = Field(default_factory=list)
    last_error: str = ""
    inserted_count: Optional[int] = None
    failed_count: int = 0
    unattributed_failures: list[str] = Field(default_factory=list)
