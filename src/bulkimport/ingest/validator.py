"""RowValidator — applies a schema's per-field rules to candidate records.

Every rule on every field is evaluated; nothing short-circuits, so one row can
report several problems at once. Errors come back in field-declaration order.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any

from bulkimport.models.records import CandidateRecord, RowError, is_empty
from bulkimport.models.schema import (
    EnumRule,
    ImportSchema,
    NumericRangeRule,
    RegexRule,
    RequiredRule,
    TypeRule,
)

logger = logging.getLogger(__name__)

_TYPE_MESSAGES = {
    "number": "{label} must be a number",
    "boolean": "{label} must be true/false or yes/no",
    "date": "{label} must be a valid date",
}


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


class RowValidator:
    """Validates candidate records against one schema."""

    def __init__(self, schema: ImportSchema) -> None:
        self._schema = schema

    def validate_row(self, record: CandidateRecord) -> list[RowError]:
        errors: list[RowError] = []
        for field in self._schema.fields:
            for message in self.check_field(field, record):
                errors.append(RowError(row=record.row_number, field=field, message=message))
        if errors:
            logger.debug("Row %d failed %d check(s)", record.row_number, len(errors))
        return errors

    def check_field(self, field: str, record: CandidateRecord) -> list[str]:
        label = self._schema.label(field)
        value = record.get(field)
        coercion_failed = field in record.coercion_failures
        empty = is_empty(value) and not coercion_failed
        # NaN left by a failed number coercion counts as missing too.
        missing = empty or (coercion_failed and self._schema.field_type(field) == "number")
        messages: list[str] = []

        for rule in self._schema.rules_for(field):
            if isinstance(rule, RequiredRule):
                if missing:
                    messages.append(f"{label} is required")
            elif isinstance(rule, TypeRule):
                if coercion_failed:
                    messages.append(_TYPE_MESSAGES[rule.type].format(label=label))
            elif empty or coercion_failed:
                # Optional blanks are exempt; uncoerced values already reported.
                continue
            elif isinstance(rule, RegexRule):
                if not _compile(rule.pattern).fullmatch(str(value)):
                    messages.append(rule.message or f"{label} has invalid format")
            elif isinstance(rule, NumericRangeRule):
                messages.extend(self._check_range(label, value, rule))
            elif isinstance(rule, EnumRule):
                if not self._in_enum(value, rule):
                    messages.append(f"{label} must be one of: {', '.join(rule.allowed)}")
        return messages

    @staticmethod
    def _check_range(label: str, value: Any, rule: NumericRangeRule) -> list[str]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return []
        if rule.min is not None and value < rule.min:
            return [f"{label} must be at least {_format_bound(rule.min)}"]
        if rule.max is not None and value > rule.max:
            return [f"{label} must be at most {_format_bound(rule.max)}"]
        return []

    @staticmethod
    def _in_enum(value: Any, rule: EnumRule) -> bool:
        text = str(value)
        if rule.case_sensitive:
            return text in rule.allowed
        return text.casefold() in {member.casefold() for member in rule.allowed}
