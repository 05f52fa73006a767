"""Shared test doubles: a scriptable submit function and file builders."""

from __future__ import annotations

import io
from collections.abc import Sequence
from typing import Any

from openpyxl import Workbook

from bulkimport.models.records import CommitPayload


class FakeSubmitter:
    """Async submit function that records payloads and replays canned outcomes.

    ``responses`` is consumed in order; an Exception instance is raised
    instead of returned. Once exhausted, every submit succeeds.
    """

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.payloads: list[CommitPayload] = []

    async def __call__(self, payload: CommitPayload) -> Any:
        self.payloads.append(payload)
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return {"success": True, "created": payload.record_count, "errors": []}

    @property
    def calls(self) -> int:
        return len(self.payloads)


def make_csv(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


def make_xlsx(rows: Sequence[Sequence[Any]], title: str = "Sheet1") -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


__all__ = ["FakeSubmitter", "make_csv", "make_xlsx"]
