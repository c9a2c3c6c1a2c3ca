"""
Duplicate resolution.

Responsibilities:
- Group records by a derived similarity key.
- Pick one canonical record per group and list the rest for removal.

Non-Responsibilities:
- No database access.
- No deletion. Callers apply the plan, so every cleanup can be previewed.

Invariant:
Given the same input sequence and the same key and tie-break functions,
the plan is identical on every run.

Keys and tie-breaks are plain callables so the same resolver serves
specialties, requirements and clubs. Records may be ORM objects or
mappings.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .normalize import base_name, description_prefix, has_code_prefix, has_roman_code, normalize_text

KeyFn = Callable[[Any], Optional[Hashable]]
TieBreak = Callable[[Any], bool]
ScoreFn = Callable[[Any], Any]


def record_value(record: Any, field: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(field, default)
    return getattr(record, field, default)


def record_created_at(record: Any) -> Any:
    return record_value(record, "created_at")


@dataclass(frozen=True)
class DuplicateGroup:
    """One group of duplicates: the record to keep and the records to drop."""

    key: Hashable
    canonical: Any
    to_remove: Tuple[Any, ...]


def group_records(records: Iterable[Any], key_fn: KeyFn) -> Dict[Hashable, List[Any]]:
    """
    Partition records by key, keeping input order inside each group.

    Records whose key is None are left out.
    """
    groups: Dict[Hashable, List[Any]] = {}
    for record in records:
        key = key_fn(record)
        if key is None:
            continue
        groups.setdefault(key, []).append(record)
    return groups


def _earliest(candidates: Sequence[Any], created_at: Callable[[Any], Any]) -> Any:
    stamps = [created_at(record) for record in candidates]
    if any(stamp is None for stamp in stamps):
        return candidates[0]
    # min() keeps the first of equal stamps, so ties go to input order.
    index = min(range(len(candidates)), key=lambda i: stamps[i])
    return candidates[index]


def pick_canonical(
    group: Sequence[Any],
    tie_break: Optional[TieBreak] = None,
    created_at: Callable[[Any], Any] = record_created_at,
    score: Optional[ScoreFn] = None,
) -> Any:
    """
    Choose the record to keep.

    Records matching `tie_break` win. When `score` is given, only the
    highest-scoring of the remaining candidates stay in the running.
    Among those the earliest created is kept. If any timestamp is
    missing, the first record in input order is kept.
    """
    candidates = list(group)
    if tie_break is not None:
        preferred = [record for record in candidates if tie_break(record)]
        if preferred:
            candidates = preferred
    if score is not None:
        best = max(score(record) for record in candidates)
        candidates = [record for record in candidates if score(record) == best]
    return _earliest(candidates, created_at)


def resolve(
    records: Iterable[Any],
    key_fn: KeyFn,
    tie_break: Optional[TieBreak] = None,
    created_at: Callable[[Any], Any] = record_created_at,
    score: Optional[ScoreFn] = None,
) -> List[DuplicateGroup]:
    """
    Plan duplicate removal.

    Args:
        records: Records to scan, in a stable order
        key_fn: Derives the similarity key; None excludes a record
        tie_break: Optional predicate marking the preferred record
        created_at: Reads a record's creation timestamp
        score: Optional ranking applied after the tie-break; higher wins

    Returns:
        One DuplicateGroup per key with more than one record, in order of
        first appearance. Keys with a single record are omitted.
    """
    plan = []
    for key, group in group_records(records, key_fn).items():
        if len(group) < 2:
            continue
        canonical = pick_canonical(group, tie_break, created_at, score)
        to_remove = tuple(record for record in group if record is not canonical)
        plan.append(DuplicateGroup(key=key, canonical=canonical, to_remove=to_remove))
    return plan


def ids_to_remove(plan: Iterable[DuplicateGroup], id_field: str = "id") -> List[Any]:
    return [record_value(record, id_field) for group in plan for record in group.to_remove]


# Key strategies

def by_field(field: str) -> KeyFn:
    return lambda record: record_value(record, field)


def by_fields(*fields: str) -> KeyFn:
    """Composite key; records missing any of the fields are skipped."""
    def key(record):
        values = tuple(record_value(record, field) for field in fields)
        if any(value is None for value in values):
            return None
        return values
    return key


def by_normalized(field: str = "name") -> KeyFn:
    def key(record):
        value = record_value(record, field)
        return normalize_text(value) if value else None
    return key


def by_base_name(field: str = "name") -> KeyFn:
    """Name without an "AA-000 - " code prefix, whitespace and case normalized."""
    def key(record):
        value = record_value(record, field)
        return base_name(value) if value else None
    return key


def by_description_prefix(field: str = "description", length: int = 50) -> KeyFn:
    def key(record):
        value = record_value(record, field)
        return description_prefix(value, length) if value else None
    return key


def scoped(field: str, key_fn: KeyFn) -> KeyFn:
    """Prefix another key with a field value so groups never span scopes."""
    def key(record):
        scope = record_value(record, field)
        inner = key_fn(record)
        if scope is None or inner is None:
            return None
        return (scope, inner)
    return key


# Tie-break strategies

def prefers_code_prefix(field: str = "name") -> TieBreak:
    return lambda record: has_code_prefix(record_value(record, field))


def prefers_roman_code(field: str = "code") -> TieBreak:
    return lambda record: has_roman_code(record_value(record, field))


def prefers_value(field: str, value: Any) -> TieBreak:
    return lambda record: record_value(record, field) == value
