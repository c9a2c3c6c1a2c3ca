"""
Point ledger operations.

The ledger is append-only. Awards and revocations add entries; the
administrative reset is the only thing that deletes them.
"""

from numbers import Integral
from typing import List, Optional, Tuple

from .database import POINT_SOURCES, PointEntry
from .errors import InvalidInputError, NotFoundError
from .logger import get_logger
from .store import ClubStore

logger = get_logger()


def award_points(
    store: ClubStore,
    member_id: str,
    amount: int,
    source: str = "MANUAL",
    reason: Optional[str] = None,
    source_ref: Optional[str] = None,
) -> PointEntry:
    """
    Append a ledger entry for a member. Negative amounts revoke points.

    Args:
        store: Open store
        member_id: Member receiving the points
        amount: Signed point delta
        source: Origin of the points (see POINT_SOURCES)
        reason: Human readable reason
        source_ref: Id of the activity, purchase, etc. that produced the points

    Returns:
        The new entry

    Raises:
        InvalidInputError: amount is not an integer or source is unknown
        NotFoundError: member does not exist
    """
    if isinstance(amount, bool) or not isinstance(amount, Integral):
        raise InvalidInputError(f"Point amount must be an integer, got {amount!r}")
    if not isinstance(source, str):
        raise InvalidInputError(f"Point source must be a string, got {source!r}")
    source = source.upper()
    if source not in POINT_SOURCES:
        raise InvalidInputError(f"Unknown point source: {source}")

    entry = store.append_entry(
        member_id,
        int(amount),
        source=source,
        reason=reason,
        source_ref=source_ref,
    )
    logger.info(
        f"Recorded {amount:+d} points for {member_id}",
        source=source,
        reason=reason,
        source_ref=source_ref,
    )
    return entry


def reverse_source(
    store: ClubStore,
    member_id: str,
    source_ref: str,
    reason: Optional[str] = None,
) -> Optional[PointEntry]:
    """
    Cancel the points a source produced for a member (e.g. a deleted payment).

    Returns the REFUND entry, or None when the source nets to zero already.
    """
    entries = store.fetch_entries_by_source(member_id, source_ref)
    net = sum(entry.amount for entry in entries)
    if net == 0:
        logger.debug("Nothing to reverse", member_id=member_id, source_ref=source_ref)
        return None
    return award_points(
        store,
        member_id,
        -net,
        source="REFUND",
        reason=reason or f"Reversal of {source_ref}",
        source_ref=source_ref,
    )


def get_history(store: ClubStore, member_id: str, limit: int = 100) -> List[PointEntry]:
    """Most recent non-zero entries for a member, newest first."""
    if store.fetch_member(member_id) is None:
        raise NotFoundError(f"Member not found: {member_id}")
    return store.fetch_history(member_id, limit=limit)


def reset_scores(store: ClubStore) -> Tuple[int, int]:
    """
    Delete the whole ledger and zero every member total.

    Returns:
        Tuple of (entries_deleted, members_reset)
    """
    entries_deleted, members_reset = store.clear_ledger()
    logger.warning(
        "Point ledger reset",
        entries_deleted=entries_deleted,
        members_reset=members_reset,
    )
    return entries_deleted, members_reset
