"""
Cleanup routines for duplicated catalog data.

Each target names which records to scan, how to key them and which
record to prefer. Plans come from dedup.resolve; applying a plan deletes
the duplicates in batches, moving references to the kept record first
where other tables point at the target.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .database import Club, Member, Requirement, Specialty
from .dedup import (
    DuplicateGroup,
    KeyFn,
    ScoreFn,
    TieBreak,
    by_base_name,
    by_description_prefix,
    by_fields,
    by_normalized,
    prefers_code_prefix,
    prefers_roman_code,
    prefers_value,
    record_value,
    resolve,
    scoped,
)
from .errors import InvalidInputError, StoreFailure
from .logger import get_logger
from .normalize import normalize_text
from .store import ClubStore

logger = get_logger()


def _fetch_specialties(store: ClubStore, area: Optional[str] = None, **_) -> list:
    criteria = [Specialty.area == area] if area else []
    return store.fetch_records(Specialty, *criteria)


def _fetch_class_requirements(store: ClubStore, dbv_class: Optional[str] = None, **_) -> list:
    """Global requirements of one class, or of every class when none is given."""
    if dbv_class:
        in_class = Requirement.dbv_class == dbv_class.upper()
    else:
        in_class = Requirement.dbv_class.isnot(None)
    return store.fetch_records(Requirement, in_class, Requirement.club_id.is_(None))


def _fetch_specialty_requirements(store: ClubStore, area: Optional[str] = None, **_) -> list:
    if area:
        specialty_ids = [s.id for s in store.fetch_records(Specialty, Specialty.area == area)]
        if not specialty_ids:
            return []
        return store.fetch_records(Requirement, Requirement.specialty_id.in_(specialty_ids))
    return store.fetch_records(Requirement, Requirement.specialty_id.isnot(None))


def _fetch_clubs(store: ClubStore, **_) -> list:
    return store.fetch_records(Club)


def _club_member_counts(store: ClubStore) -> ScoreFn:
    counts = store.count_references(Member.club_id)
    return lambda club: counts.get(club.id, 0)


def _club_renames(plan: List[DuplicateGroup], options: Dict[str, Any]) -> List[Tuple[Any, Dict[str, Any]]]:
    """Give the kept club the preferred name when no club had it exactly."""
    target_name = options.get("prefer_name")
    if not target_name:
        return []
    key = normalize_text(target_name)
    return [
        (group.canonical.id, {"name": target_name})
        for group in plan
        if group.key == key and group.canonical.name != target_name
    ]


@dataclass(frozen=True)
class CleanupTarget:
    name: str
    model: Any
    fetch: Callable[..., list]
    key_fn: KeyFn
    tie_break: Callable[[Dict[str, Any]], Optional[TieBreak]]
    label_field: str
    references: Tuple = ()
    score: Callable[[ClubStore], Optional[ScoreFn]] = lambda store: None
    renames: Callable[[List[DuplicateGroup], Dict[str, Any]], List[Tuple[Any, Dict[str, Any]]]] = (
        lambda plan, options: []
    )


CLEANUP_TARGETS: Dict[str, CleanupTarget] = {
    # "AD-001 - Primeiros Socorros" and "Primeiros Socorros" are one specialty.
    "specialties": CleanupTarget(
        name="specialties",
        model=Specialty,
        fetch=_fetch_specialties,
        key_fn=by_base_name("name"),
        tie_break=lambda options: prefers_code_prefix("name"),
        label_field="name",
        references=((Requirement, Requirement.specialty_id),),
    ),
    # Class requirements re-seeded with slightly different wording; each class is its own scope.
    "class-requirements": CleanupTarget(
        name="class-requirements",
        model=Requirement,
        fetch=_fetch_class_requirements,
        key_fn=scoped("dbv_class", by_description_prefix("description", 50)),
        tie_break=lambda options: prefers_roman_code("code"),
        label_field="code",
    ),
    # Same code twice under one specialty; the oldest wins.
    "requirement-codes": CleanupTarget(
        name="requirement-codes",
        model=Requirement,
        fetch=_fetch_specialty_requirements,
        key_fn=by_fields("specialty_id", "code"),
        tie_break=lambda options: None,
        label_field="code",
    ),
    # Most members wins, then the oldest. --prefer-name overrides and names the kept club.
    "clubs": CleanupTarget(
        name="clubs",
        model=Club,
        fetch=_fetch_clubs,
        key_fn=by_normalized("name"),
        tie_break=lambda options: (
            prefers_value("name", options["prefer_name"]) if options.get("prefer_name") else None
        ),
        label_field="name",
        references=((Member, Member.club_id), (Requirement, Requirement.club_id)),
        score=_club_member_counts,
        renames=_club_renames,
    ),
}


def get_target(name: str) -> CleanupTarget:
    try:
        return CLEANUP_TARGETS[name]
    except KeyError:
        raise InvalidInputError(
            f"Unknown cleanup target: {name}. Use one of: {', '.join(CLEANUP_TARGETS)}"
        )


def plan_cleanup(store: ClubStore, target: str, **options) -> Tuple[int, List[DuplicateGroup]]:
    """
    Scan a target and plan which duplicates to remove.

    Returns:
        Tuple of (records_scanned, plan)
    """
    spec = get_target(target)
    records = spec.fetch(store, **options)
    plan = resolve(records, spec.key_fn, spec.tie_break(options), score=spec.score(store))
    return len(records), plan


def _describe(spec: CleanupTarget, plan: List[DuplicateGroup], renames: List[Tuple[Any, Dict[str, Any]]]) -> None:
    for group in plan:
        canonical = group.canonical
        logger.info(
            f"Found {len(group.to_remove) + 1} entries for: {group.key}",
            keeping=f"{record_value(canonical, spec.label_field)} ({canonical.id})",
        )
        for record in group.to_remove:
            logger.info(
                f"  Removing: {record_value(record, spec.label_field)} ({record.id})",
                target=spec.name,
            )
    for record_id, values in renames:
        logger.info(f"  Renaming {record_id}", target=spec.name, **values)


def apply_plan(store: ClubStore, target: str, plan: List[DuplicateGroup], **options) -> int:
    """
    Delete the duplicates a plan lists, then rename kept records the
    target asks for.

    Returns:
        Number of records deleted
    """
    spec = get_target(target)
    # Ids are read up front; committed deletes expire the loaded objects.
    merges = [(group.canonical.id, [record.id for record in group.to_remove]) for group in plan]
    renames = spec.renames(plan, options)

    if not spec.references:
        removed = store.delete_records(spec.model, [rid for _, ids in merges for rid in ids])
    else:
        removed = 0
        for canonical_id, duplicate_ids in merges:
            removed += store.merge_into(spec.model, canonical_id, duplicate_ids, spec.references)

    for record_id, values in renames:
        store.update_record(spec.model, record_id, values)

    logger.record_removal(spec.name, removed)
    return removed


def run_cleanup(store: ClubStore, target: str, dry_run: bool = True, **options) -> Tuple[int, int]:
    """
    Remove duplicates of one target.

    Args:
        store: Open store
        target: Key of CLEANUP_TARGETS
        dry_run: Only log the plan (default)
        **options: Target options (area, dbv_class, prefer_name)

    Returns:
        Tuple of (records_before, records_after). In dry-run mode `after`
        is the projected count.
    """
    spec = get_target(target)
    before, plan = plan_cleanup(store, target, **options)
    planned = sum(len(group.to_remove) for group in plan)

    logger.info(
        f"Cleaning up duplicate {spec.name}",
        scanned=before,
        groups=len(plan),
        duplicates=planned,
        dry_run=dry_run,
        **{k: v for k, v in options.items() if v is not None},
    )
    _describe(spec, plan, spec.renames(plan, options))

    if dry_run or not plan:
        return before, before - planned

    try:
        removed = apply_plan(store, target, plan, **options)
    except StoreFailure as e:
        logger.error(f"Cleanup failed: {e}", target=spec.name)
        raise

    after = before - removed
    logger.info(
        f"Cleanup complete: {removed} removed, {after} remaining",
        target=spec.name,
        before=before,
        removed=removed,
        after=after,
    )
    return before, after
