"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class ImportConfig(BaseSettings):
    """Upload limits and preview/display tuning."""

    model_config = {"env_prefix": "BULKIMPORT_IMPORT_"}

    max_file_size_bytes: int = 10 * 1024 * 1024
    display_error_cap: int = 50
    preview_rows: int = 10
    quick_scan_rows: int = 10


class SubmitConfig(BaseSettings):
    """External bulk endpoint configuration (the HR backend)."""

    model_config = {"env_prefix": "BULKIMPORT_SUBMIT_"}

    base_url: str = "http://localhost:5000/api"
    timeout: float = 30.0
    auth_token: str = ""
    endpoints: dict[str, str] = Field(
        default_factory=lambda: {
            "sites": "/sites/bulk",
            "employees": "/employees/bulk-import",
            "attendance": "/attendance/bulk-mark-excel",
            "salary_codes": "/salary-codes/bulk",
            "deductions": "/deductions/bulk",
        }
    )


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "BULKIMPORT_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    imports: ImportConfig = ImportConfig()
    submit: SubmitConfig = SubmitConfig()
