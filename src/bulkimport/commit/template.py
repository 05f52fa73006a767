"""Template export: a downloadable workbook pre-filled with a schema's headers."""

from __future__ import annotations

import io

from openpyxl import Workbook
from openpyxl.styles import Font

from bulkimport.models.schema import ImportSchema


def build_template(schema: ImportSchema, include_optional: bool = True) -> bytes:
    """Return XLSX bytes with the header row and one example row."""
    headers = list(schema.required_headers)
    if include_optional:
        headers.extend(schema.optional_headers)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = schema.kind.replace("_", " ").title()[:31]
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    if schema.example_row:
        sheet.append([schema.example_row.get(h) for h in headers])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def template_filename(schema: ImportSchema) -> str:
    return f"{schema.kind}_bulk_template.xlsx"
