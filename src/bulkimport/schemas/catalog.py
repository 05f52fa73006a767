"""Import schemas for each bulk upload in the HR application.

Each factory returns a fresh, immutable ``ImportSchema``. The catalog maps
kind names ("sites", "employees", ...) to those factories.
"""

from __future__ import annotations

import calendar
from collections.abc import Callable
from datetime import date
from typing import Any

from bulkimport.core.exceptions import UnknownImportKindError
from bulkimport.models.schema import (
    EnumRule,
    ImportSchema,
    NumericRangeRule,
    RegexRule,
    TypeRule,
)

ATTENDANCE_CODES = ("P", "A", "L", "H")  # present, absent, leave, holiday

NUMBER = TypeRule(type="number")
BOOLEAN = TypeRule(type="boolean")
DATE = TypeRule(type="date")
PHONE = RegexRule(pattern=r"\+?[0-9][0-9 -]{8,14}[0-9]", message="Valid mobile number is required")


def _key(*parts: Any) -> str | None:
    if any(p in (None, "") for p in parts):
        return None
    return " / ".join(str(p) for p in parts)


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------

def site_schema() -> ImportSchema:
    return ImportSchema.build(
        "sites",
        required={"Site name": "site_name", "State": "state"},
        optional={"Location": "location"},
        row_identity=lambda v: _key(v.get("site_name"), v.get("state")),
        identity_label="site",
        transport="xlsx",
        example_row={"Site name": "Acme Plant", "Location": "Industrial Area", "State": "Karnataka"},
    )


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------

def employee_schema(today: date | None = None) -> ImportSchema:
    """Employee registration columns, validated like the registration form."""
    today = today or date.today()
    required = {
        "Employee ID": "employee_id",
        "Full Name": "full_name",
        "Date of Birth": "date_of_birth",
        "Gender": "gender",
        "Marital Status": "marital_status",
        "Nationality": "nationality",
        "Permanent Address": "permanent_address",
        "Mobile Number": "mobile_number",
        "Aadhaar Number": "aadhaar_number",
        "PAN Card Number": "pan_card_number",
        "Date of Joining": "date_of_joining",
        "Employment Type": "employment_type",
        "Department": "department",
        "Designation": "designation",
        "Work Location": "work_location",
        "Salary Code": "salary_code",
        "PF Applicability": "pf_applicability",
        "ESIC Applicability": "esic_applicability",
        "Professional Tax Applicability": "professional_tax_applicability",
        "Bank Account Number": "bank_account_number",
        "Bank Name": "bank_name",
        "IFSC Code": "ifsc_code",
        "Highest Qualification": "highest_qualification",
        "Year of Passing": "year_of_passing",
        "Experience Duration": "experience_duration",
        "Emergency Contact Name": "emergency_contact_name",
        "Emergency Relationship": "emergency_relationship",
        "Emergency Phone Number": "emergency_phone_number",
    }
    optional = {
        "Email": "email",
        "Blood Group": "blood_group",
        "Alternate Contact Number": "alternate_contact_number",
        "Voter ID or License": "voter_id_or_license",
        "UAN Number": "uan_number",
        "ESIC Number": "esic_number",
        "Reporting Manager": "reporting_manager",
        "Skill Category": "skill_category",
        "Salary Advance or Loan": "salary_advance_or_loan",
        "Additional Certifications": "additional_certifications",
    }
    rules = {
        "date_of_birth": [DATE],
        "gender": [EnumRule(allowed=("Male", "Female", "Other"), case_sensitive=False)],
        "marital_status": [
            EnumRule(allowed=("Single", "Married", "Divorced", "Widowed"), case_sensitive=False)
        ],
        "mobile_number": [PHONE],
        "aadhaar_number": [RegexRule(pattern=r"\d{12}", message="Aadhaar number must be 12 digits")],
        "pan_card_number": [RegexRule(pattern=r"[A-Z]{5}[0-9]{4}[A-Z]", message="Invalid PAN format")],
        "date_of_joining": [DATE],
        "employment_type": [
            EnumRule(allowed=("Full-time", "Part-time", "Contract", "Intern"), case_sensitive=False)
        ],
        "pf_applicability": [BOOLEAN],
        "esic_applicability": [BOOLEAN],
        "professional_tax_applicability": [BOOLEAN],
        "ifsc_code": [
            RegexRule(pattern=r"[A-Z]{4}0[A-Z0-9]{6}", message="Invalid IFSC code format")
        ],
        "year_of_passing": [NUMBER, NumericRangeRule(min=1900, max=today.year)],
        "experience_duration": [NUMBER, NumericRangeRule(min=0)],
        "emergency_phone_number": [
            RegexRule(pattern=PHONE.pattern, message="Valid emergency phone number is required")
        ],
        "email": [RegexRule(pattern=r"[^@\s]+@[^@\s]+\.[^@\s]+", message="Invalid email address")],
        "alternate_contact_number": [PHONE],
        # No default: a blank advance means "not applicable", not zero.
        "salary_advance_or_loan": [NUMBER, NumericRangeRule(min=0)],
    }
    return ImportSchema.build(
        "employees",
        required=required,
        optional=optional,
        rules=rules,
        row_identity=lambda v: _key(v.get("employee_id")),
        identity_label="Employee ID",
        transport="json",
        json_key="employees",
        example_row={
            "Employee ID": "EMP001",
            "Full Name": "John Doe",
            "Date of Birth": "1990-05-14",
            "Gender": "Male",
            "Marital Status": "Single",
            "Nationality": "Indian",
            "Permanent Address": "12 MG Road, Bengaluru",
            "Mobile Number": "9876543210",
            "Aadhaar Number": "123412341234",
            "PAN Card Number": "ABCDE1234F",
            "Date of Joining": "2024-01-01",
            "Employment Type": "Full-time",
            "Department": "Security",
            "Designation": "Guard",
            "Work Location": "Acme Plant",
            "Salary Code": "SC-001",
            "PF Applicability": "yes",
            "ESIC Applicability": "yes",
            "Professional Tax Applicability": "no",
            "Bank Account Number": "001234567890",
            "Bank Name": "State Bank of India",
            "IFSC Code": "SBIN0001234",
            "Highest Qualification": "HSC",
            "Year of Passing": 2008,
            "Experience Duration": 5,
            "Emergency Contact Name": "Jane Doe",
            "Emergency Relationship": "Spouse",
            "Emergency Phone Number": "9876501234",
        },
    )


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

def attendance_day_headers(year: int, month: int) -> list[str]:
    days = calendar.monthrange(year, month)[1]
    return [date(year, month, day).isoformat() for day in range(1, days + 1)]


def attendance_schema(year: int | None = None, month: int | None = None) -> ImportSchema:
    """Monthly sheet: one column per calendar day, cells in {P, A, L, H}."""
    today = date.today()
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")

    days = attendance_day_headers(year, month)
    required = {"Employee ID": "employee_id", "Employee Name": "employee_name"}
    required.update({day: day for day in days})
    code = EnumRule(allowed=ATTENDANCE_CODES, case_sensitive=False)
    example = {"Employee ID": "EMP001", "Employee Name": "John Doe"}
    example.update({day: "P" for day in days})
    return ImportSchema.build(
        "attendance",
        required=required,
        rules={day: [code] for day in days},
        blank_ok=days,
        aliases={"Emp ID": "employee_id", "Name": "employee_name"},
        row_identity=lambda v: _key(v.get("employee_id")),
        identity_label="Employee ID",
        transport="xlsx",
        form_fields={"month": str(month), "year": str(year)},
        example_row=example,
    )


# ---------------------------------------------------------------------------
# Salary codes and deductions
# ---------------------------------------------------------------------------

def salary_code_schema() -> ImportSchema:
    return ImportSchema.build(
        "salary_codes",
        required={"Site name": "site_name", "Rank": "rank", "State Name": "state", "Wages": "base_wage"},
        rules={"base_wage": [NUMBER, NumericRangeRule(min=1)]},
        row_identity=lambda v: _key(v.get("site_name"), v.get("rank"), v.get("state")),
        identity_label="salary code",
        transport="json",
        json_key="salary_codes",
        example_row={"Site name": "Acme Plant", "Rank": "Security Guard", "State Name": "Karnataka", "Wages": 15000},
    )


def deduction_schema() -> ImportSchema:
    return ImportSchema.build(
        "deductions",
        required={
            "Employee ID": "employee_id",
            "Deduction Type": "deduction_type",
            "Total Amount": "total_amount",
            "Months": "months",
            "Start Month": "start_month",
        },
        rules={
            "total_amount": [NUMBER, NumericRangeRule(min=1)],
            "months": [NUMBER, NumericRangeRule(min=1, max=120)],
            "start_month": [DATE],
        },
        transport="xlsx",
        example_row={
            "Employee ID": "EMP001",
            "Deduction Type": "Salary Advance",
            "Total Amount": 12000,
            "Months": 6,
            "Start Month": "2024-04-01",
        },
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class SchemaCatalog:
    """Kind name -> schema factory."""

    def __init__(self, factories: dict[str, Callable[..., ImportSchema]] | None = None) -> None:
        self._factories = dict(factories if factories is not None else DEFAULT_FACTORIES)

    def kinds(self) -> list[str]:
        return sorted(self._factories)

    def get(self, kind: str, **params: Any) -> ImportSchema:
        try:
            factory = self._factories[kind]
        except KeyError as exc:
            raise UnknownImportKindError(f"Unknown import kind {kind!r}") from exc
        return factory(**params)

    def register(self, kind: str, factory: Callable[..., ImportSchema]) -> None:
        self._factories[kind] = factory


DEFAULT_FACTORIES: dict[str, Callable[..., ImportSchema]] = {
    "sites": site_schema,
    "employees": employee_schema,
    "attendance": attendance_schema,
    "salary_codes": salary_code_schema,
    "deductions": deduction_schema,
}
