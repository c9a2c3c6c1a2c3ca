#!/usr/bin/env python3
"""
Check that every member's cached point total matches the ledger.

Read only. Exits 1 when any member is out of sync.

Usage:
    python scripts/verify_totals.py --db data/club.db
"""

import argparse
from pathlib import Path
import sys

from clubadmin.leagues import classify
from clubadmin.scoring import audit_totals
from clubadmin.store import ClubStore


def verify(db_path: Path) -> bool:
    """
    Compare cached totals with ledger sums.

    Returns True if they all match, False otherwise.
    """
    print(f"Querying database at {db_path}...")
    with ClubStore.open(db_path) as store:
        members = store.fetch_all_members()
        divergent = audit_totals(store)

    print(f"  Members: {len(members)}")

    if not divergent:
        print("✅ All member totals match the ledger")
        return True

    print(f"\n❌ OUT OF SYNC: {len(divergent)} members")
    for d in divergent[:5]:
        league_change = ""
        if classify(d.cached) != classify(d.actual):
            league_change = f" [{classify(d.cached)} -> {classify(d.actual)}]"
        print(f"   - {d.member_id}: cached={d.cached} ledger={d.actual} ({d.delta:+d}){league_change}")
    if len(divergent) > 5:
        print(f"   ... and {len(divergent) - 5} more")
    print("\nRun 'clubadmin reconcile' to fix.")
    return False


def main():
    parser = argparse.ArgumentParser(description="Verify member point totals against the ledger")
    parser.add_argument("--db", type=Path, default=Path("data/club.db"),
                        help="Path to SQLite database file")

    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    success = verify(args.db)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
