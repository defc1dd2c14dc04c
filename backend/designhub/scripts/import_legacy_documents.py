"""Import a JSON export of the legacy document store.

The export is a single JSON object keyed by collection name::

    {"users": [...], "projects": [...], "milestones": [...], "tasks": [...]}

Usage:
    python -m designhub.scripts.import_legacy_documents export.json
    python -m designhub.scripts.import_legacy_documents export.json --dry-run

Re-running the import is safe: rows derived from documents that were
already imported are skipped.
"""

import argparse
import asyncio
import json
from pathlib import Path

from designhub.db.session import async_session_factory
from designhub.services.legacy_import import ImportReport, import_documents


async def run_import(path: Path, dry_run: bool = False) -> ImportReport:
    """Import one export file and print a summary."""
    print(f"Importing legacy documents from {path}...")
    print("-" * 50)

    export = json.loads(path.read_text(encoding="utf-8"))

    async with async_session_factory() as db:
        try:
            report = await import_documents(db, export)
            if dry_run:
                await db.rollback()
            else:
                await db.commit()
        except Exception as e:
            print(f"Error importing legacy documents: {e}")
            await db.rollback()
            raise

    summary = report.to_dict()
    for key in ("users", "projects", "milestones", "activities", "tasks", "skipped"):
        print(f"  {key}: {summary[key]}")
    for warning in report.warnings:
        print(f"  warning: {warning}")
    print("\nDry run, nothing written." if dry_run else "\nImport completed successfully!")
    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import a JSON export of the legacy document store"
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the export file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the import and roll it back instead of committing",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.path.is_file():
        parser.error(f"export file not found: {args.path}")

    asyncio.run(run_import(args.path, args.dry_run))


if __name__ == "__main__":
    main()
