"""HeaderNormalizer — resolves file headers against a schema's declared headers.

Header problems are structural: any missing required header blocks the whole
batch before a single row is looked at.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from bulkimport.core.exceptions import HeaderError

if TYPE_CHECKING:
    from bulkimport.models.schema import ImportSchema

logger = logging.getLogger(__name__)

_STRIP = re.compile(r"[\s_]+")
_DAY_FIRST = re.compile(r"(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})")
_ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T]00:00(?::00)?)?")


def _date_key(text: str) -> str | None:
    """ISO date for date-like header text ("01/08/2025", "2025-08-01 00:00:00")."""
    match = _DAY_FIRST.fullmatch(text)
    if match:
        day, month, year = match.groups()
    else:
        match = _ISO_DATE.fullmatch(text)
        if not match:
            return None
        year, month, day = match.groups()
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def normalize_header(header: object) -> str:
    """Lowercase and drop whitespace/underscores: "Site name" == "site_name" == "SiteName".

    Date headers (date cells, DD/MM/YYYY, ISO) all normalize to the ISO day.
    """
    if isinstance(header, datetime):
        return header.date().isoformat()
    if isinstance(header, date):
        return header.isoformat()
    text = str(header if header is not None else "").strip()
    return _date_key(text) or _STRIP.sub("", text).lower()


@dataclass(frozen=True)
class HeaderResolution:
    header_map: dict[str, str] = field(default_factory=dict)  # normalized -> original
    missing: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    def original(self, header: str) -> str | None:
        return self.header_map.get(normalize_header(header))


def normalize_headers(headers: Sequence[str], schema: ImportSchema) -> HeaderResolution:
    """Map normalized file headers to their original text and list missing required ones."""
    header_map: dict[str, str] = {}
    for header in headers:
        key = normalize_header(header)
        if not key:
            continue
        if key in header_map:
            logger.warning(
                "Duplicate column %r collides with %r; keeping the first", header, header_map[key]
            )
            continue
        header_map[key] = header

    missing = [h for h in schema.required_headers if not _present(h, schema, header_map)]
    return HeaderResolution(header_map=header_map, missing=missing)


def _present(header: str, schema: ImportSchema, header_map: dict[str, str]) -> bool:
    key = normalize_header(header)
    if key in header_map:
        return True
    field = schema.field_map.get(key)
    return any(
        alias in header_map for alias, target in schema.field_map.items() if target == field
    )


class HeaderNormalizer:
    """Fail-fast header check for one schema."""

    def __init__(self, schema: ImportSchema) -> None:
        self._schema = schema

    def resolve(self, headers: Sequence[str]) -> HeaderResolution:
        resolution = normalize_headers(headers, self._schema)
        if resolution.missing:
            logger.info(
                "Import %s rejected: missing columns %s", self._schema.kind, resolution.missing
            )
            raise HeaderError(resolution.missing)
        return resolution
