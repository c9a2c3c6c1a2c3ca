"""
Score reconciliation.

Responsibilities:
- Recompute each member's cached point total from the ledger.
- Report members that are missing or could not be written.

Non-Responsibilities:
- No ledger writes.
- No league classification.

Invariant:
After reconcile(member) returns, member.points equals the sum of the
member's ledger amounts. Running it again without new entries changes
nothing.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .errors import NotFoundError, StoreFailure
from .logger import get_logger
from .store import ClubStore

logger = get_logger()


@dataclass
class ReconcileReport:
    """Outcome of a bulk reconciliation pass."""

    updated: int = 0
    changed: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    totals: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.not_found and not self.failures


@dataclass(frozen=True)
class Divergence:
    member_id: str
    cached: int
    actual: int

    @property
    def delta(self) -> int:
        return self.actual - self.cached


def reconcile(store: ClubStore, member_id: str) -> int:
    """
    Rewrite one member's cached total from the ledger.

    Returns:
        The new total

    Raises:
        NotFoundError: member does not exist
        StoreFailure: read or write failed
    """
    member = store.fetch_member(member_id)
    if member is None:
        raise NotFoundError(f"Member not found: {member_id}")
    previous = member.points or 0

    total = sum(entry.amount for entry in store.fetch_ledger_entries(member_id))
    if not store.write_member_total(member_id, total):
        raise NotFoundError(f"Member not found: {member_id}")

    logger.record_reconcile(changed=previous != total)
    logger.debug("Member reconciled", member_id=member_id, previous=previous, total=total)
    return total


def reconcile_all(store: ClubStore, member_ids: Optional[Sequence[str]] = None) -> ReconcileReport:
    """
    Rewrite cached totals for many members.

    Ledger sums and current totals are read with one query each. Each
    member's write is committed on its own, so one failure does not undo
    the others.

    Args:
        store: Open store
        member_ids: Members to reconcile (default: all members)

    Returns:
        ReconcileReport
    """
    report = ReconcileReport()

    if member_ids is None:
        member_ids = store.fetch_all_members()
    else:
        member_ids = list(dict.fromkeys(member_ids))

    cached = store.fetch_member_totals(member_ids)
    sums = store.sum_ledger_by_member(member_ids)

    logger.info("Starting reconciliation", members=len(member_ids))

    for member_id in member_ids:
        if member_id not in cached:
            logger.warning("Member not found, skipping", member_id=member_id)
            logger.record_error("NotFoundError")
            report.not_found.append(member_id)
            continue

        total = sums.get(member_id, 0)
        try:
            written = store.write_member_total(member_id, total)
        except StoreFailure as e:
            logger.record_reconcile_failure("StoreFailure")
            report.failures[member_id] = str(e)
            continue

        if not written:
            # Deleted between the read and the write.
            logger.warning("Member disappeared during reconciliation", member_id=member_id)
            logger.record_error("NotFoundError")
            report.not_found.append(member_id)
            continue

        changed = cached[member_id] != total
        logger.record_reconcile(changed=changed)
        report.updated += 1
        report.totals[member_id] = total
        if changed:
            report.changed.append(member_id)
            logger.debug(
                "Member total corrected",
                member_id=member_id,
                previous=cached[member_id],
                total=total,
            )

    logger.info(
        "Reconciliation complete",
        updated=report.updated,
        changed=len(report.changed),
        not_found=len(report.not_found),
        failures=len(report.failures),
    )
    return report


def audit_totals(store: ClubStore) -> List[Divergence]:
    """Members whose cached total differs from their ledger sum. Read only."""
    cached = store.fetch_member_totals()
    sums = store.sum_ledger_by_member()
    divergent = []
    for member_id in store.fetch_all_members():
        actual = sums.get(member_id, 0)
        if cached.get(member_id, 0) != actual:
            divergent.append(Divergence(member_id, cached.get(member_id, 0), actual))
    return divergent
