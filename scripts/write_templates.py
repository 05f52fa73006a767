"""Write downloadable XLSX templates for every bulk import kind.

Usage:
    python scripts/write_templates.py --output-dir ./templates --year 2025 --month 3
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from bulkimport.commit.template import build_template, template_filename
from bulkimport.schemas.catalog import SchemaCatalog


def write_templates(
    output_dir: Path,
    kinds: list[str] | None = None,
    year: int | None = None,
    month: int | None = None,
    catalog: SchemaCatalog | None = None,
) -> list[Path]:
    """Write one template per kind. Returns the written paths."""
    catalog = catalog or SchemaCatalog()
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    for kind in kinds or catalog.kinds():
        params: dict[str, Any] = {}
        if kind == "attendance":
            params = {"year": year, "month": month}
        schema = catalog.get(kind, **params)
        path = output_dir / template_filename(schema)
        path.write_bytes(build_template(schema))
        print(f"  Wrote {path} ({len(schema.headers)} columns)")
        written.append(path)

    return written


def main() -> None:
    parser = argparse.ArgumentParser(description="Write bulk import templates")
    parser.add_argument("--output-dir", default="templates", help="Directory to write into")
    parser.add_argument("--kind", action="append", dest="kinds", help="Import kind (repeatable)")
    parser.add_argument("--year", type=int, default=None, help="Attendance template year")
    parser.add_argument("--month", type=int, default=None, help="Attendance template month (1-12)")
    args = parser.parse_args()

    print("Writing templates...")
    write_templates(Path(args.output_dir), kinds=args.kinds, year=args.year, month=args.month)
    print("Done!")


if __name__ == "__main__":
    main()
