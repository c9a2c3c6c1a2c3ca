#!/usr/bin/env python3
"""
Import a JSON export into the club database and rebuild member totals.

Usage:
    python scripts/import_json.py --json data/export.json --db data/club.db
"""

import argparse
from pathlib import Path
import sys

from clubadmin.database import init_database
from clubadmin.errors import ClubAdminError
from clubadmin.importer import import_document, load_document
from clubadmin.scoring import reconcile_all
from clubadmin.store import ClubStore


def _print_counts(summary) -> None:
    for kind, count in summary.imported.items():
        print(f"   {kind:<14} imported={count} skipped={summary.skipped.get(kind, 0)}")


def run(json_path: Path, db_path: Path, dry_run: bool = False) -> bool:
    """
    Import an export file, then reconcile every member total.

    Args:
        json_path: Path to JSON export
        db_path: Path to SQLite database file
        dry_run: If True, don't write to database

    Returns:
        True if every record was imported and reconciled
    """
    print(f"Loading export from {json_path}...")
    document = load_document(json_path)

    if dry_run:
        if db_path.exists():
            with ClubStore.open(db_path) as store:
                summary = import_document(store, document, dry_run=True)
        else:
            print(f"Database {db_path} does not exist yet; every record counts as new.")
            summary = import_document(None, document, dry_run=True)
        _print_counts(summary)
        print("\n[DRY RUN] Nothing written.")
        return not summary.errors

    print(f"Initializing database at {db_path}...")
    init_database(db_path)

    with ClubStore.open(db_path) as store:
        summary = import_document(store, document)
        _print_counts(summary)

        report = reconcile_all(store)

    print("\n✅ Import complete!")
    print(f"   Records:    {summary.total_imported}")
    print(f"   Reconciled: {report.updated} members ({len(report.changed)} corrected)")
    if summary.errors:
        print(f"   Rejected:   {len(summary.errors)}")
        for error in summary.errors[:5]:
            print(f"   - {error}")
        if len(summary.errors) > 5:
            print(f"   ... and {len(summary.errors) - 5} more")
    return not summary.errors and report.ok


def main():
    parser = argparse.ArgumentParser(description="Import a JSON export into the club database")
    parser.add_argument("--json", type=Path, default=Path("data/export.json"),
                        help="Path to JSON export file")
    parser.add_argument("--db", type=Path, default=Path("data/club.db"),
                        help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate the export without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"❌ JSON file not found: {args.json}")
        sys.exit(1)

    try:
        success = run(args.json, args.db, dry_run=args.dry_run)
    except ClubAdminError as e:
        print(f"❌ {e}")
        sys.exit(1)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
