"""Tests for RowValidator rule evaluation."""

from __future__ import annotations

import math

import pytest

from bulkimport.ingest.validator import RowValidator
from bulkimport.models.records import CandidateRecord
from bulkimport.models.schema import EnumRule, ImportSchema, NumericRangeRule, RegexRule, TypeRule


@pytest.fixture
def validator():
    schema = ImportSchema.build(
        "test",
        required={"Code": "code", "Wage": "wage"},
        optional={"Note": "note", "Level": "level", "Score": "score"},
        rules={
            "code": [RegexRule(pattern=r"[A-Z]{3}\d", message="Code must look like ABC1")],
            "wage": [TypeRule(type="number"), NumericRangeRule(min=100, max=1000)],
            "note": [RegexRule(pattern=r"\w+")],
            "level": [EnumRule(allowed=("Low", "High"))],
            "score": [
                TypeRule(type="number"),
                RegexRule(pattern=r"\d+\.0", message="Score must be whole"),
                NumericRangeRule(max=10),
            ],
        },
    )
    return RowValidator(schema)


def _record(failures=(), **values):
    base = {"code": "ABC1", "wage": 500.0, "note": "", "level": "", "score": None}
    base.update(values)
    return CandidateRecord(row_number=7, values=base, coercion_failures=frozenset(failures))


def _messages(validator, record):
    return [e.message for e in validator.validate_row(record)]


class TestRequired:
    def test_valid_row_has_no_errors(self, validator):
        assert validator.validate_row(_record()) == []

    def test_empty_required_reports_only_required(self, validator):
        assert _messages(validator, _record(code="")) == ["Code is required"]

    def test_empty_typed_required(self, validator):
        assert _messages(validator, _record(wage=None)) == ["Wage is required"]

    def test_uncoercible_number_is_missing_and_mistyped(self, validator):
        record = _record(wage=math.nan, failures={"wage"})
        assert _messages(validator, record) == ["Wage is required", "Wage must be a number"]

    def test_uncoercible_optional_number_reports_only_type(self, validator):
        record = _record(score=math.nan, failures={"score"})
        assert _messages(validator, record) == ["Score must be a number"]


class TestRules:
    def test_range_bounds(self, validator):
        assert _messages(validator, _record(wage=50.0)) == ["Wage must be at least 100"]
        assert _messages(validator, _record(wage=5000.0)) == ["Wage must be at most 1000"]

    def test_regex_custom_and_default_message(self, validator):
        assert _messages(validator, _record(code="abc")) == ["Code must look like ABC1"]
        assert _messages(validator, _record(note="!!")) == ["Note has invalid format"]

    def test_enum_case_sensitive(self, validator):
        assert _messages(validator, _record(level="low")) == ["Level must be one of: Low, High"]

    def test_optional_blanks_exempt(self, validator):
        assert validator.validate_row(_record(note="  ", level="", score=None)) == []

    def test_every_rule_evaluated(self, validator):
        assert _messages(validator, _record(score=12.5)) == [
            "Score must be whole",
            "Score must be at most 10",
        ]


def test_errors_follow_field_declaration_order(validator):
    errors = validator.validate_row(_record(level="Mid", code="", wage=1.0))
    assert [e.field for e in errors] == ["code", "wage", "level"]
    assert {e.row for e in errors} == {7}
