"""
Import clubs, members, catalog records and point history from a JSON export.

Document layout:
    {
        "clubs": [{"id": ..., "name": ..., "region": ...}],
        "specialties": [{"id": ..., "name": ..., "area": ...}],
        "members": [{"id": ..., "name": ..., "club_id": ..., "points": ...}],
        "requirements": [{"id": ..., "description": ..., "code": ..., ...}],
        "point_history": [{"member_id": ..., "amount": ..., "source": ..., ...}]
    }

Member totals are copied as given; run reconciliation afterwards to
rebuild them from the imported point history.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database import Club, Member, PointEntry, Requirement, Specialty
from .errors import InvalidInputError
from .logger import get_logger
from .schema import RECORD_KINDS, validate_record
from .store import ClubStore

logger = get_logger()

MODELS = {
    "clubs": Club,
    "specialties": Specialty,
    "members": Member,
    "requirements": Requirement,
}


@dataclass
class ImportSummary:
    imported: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def total_imported(self) -> int:
        return sum(self.imported.values())


def load_document(path: Path) -> Dict[str, Any]:
    """Read an export file. Raises InvalidInputError if it is not a JSON object."""
    try:
        with path.open("r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(document, dict):
        raise InvalidInputError(f"{path} must contain a JSON object")
    return document


def parse_timestamp(ts_str: Optional[str]) -> datetime:
    """Parse ISO timestamp string, handle missing timestamps."""
    if not ts_str:
        return datetime.now()
    return datetime.fromisoformat(ts_str)


def _build(kind: str, data: Dict[str, Any]):
    created_at = parse_timestamp(data.get("created_at"))
    if kind == "clubs":
        return Club(id=data["id"], name=data["name"], region=data.get("region"), created_at=created_at)
    if kind == "specialties":
        return Specialty(id=data["id"], name=data["name"], area=data.get("area"), created_at=created_at)
    if kind == "members":
        return Member(
            id=data["id"],
            name=data["name"],
            club_id=data.get("club_id"),
            points=data.get("points", 0),
            created_at=created_at,
            updated_at=created_at,
        )
    if kind == "requirements":
        return Requirement(
            id=data["id"],
            description=data["description"],
            code=data.get("code"),
            dbv_class=data.get("dbv_class"),
            specialty_id=data.get("specialty_id"),
            club_id=data.get("club_id"),
            created_at=created_at,
        )
    return PointEntry(
        member_id=data["member_id"],
        amount=data["amount"],
        reason=data.get("reason"),
        source=(data.get("source") or "MANUAL").upper(),
        source_ref=data.get("source_ref"),
        created_at=created_at,
    )


def import_document(store: Optional[ClubStore], document: Dict[str, Any], dry_run: bool = False) -> ImportSummary:
    """
    Insert the records of an export document.

    Invalid records and records whose id already exists are skipped.
    Point history for members that exist neither in the database nor in
    the document is skipped. Everything valid is committed at once.

    Args:
        store: Open store, or None to dry-run against a database that
            does not exist yet (every id counts as new)
        document: Parsed export
        dry_run: Validate and count without writing

    Returns:
        ImportSummary
    """
    if store is None and not dry_run:
        raise InvalidInputError("Importing requires an open store")

    summary = ImportSummary()
    pending = []
    known_members = set()

    for kind in RECORD_KINDS:
        rows = document.get(kind) or []
        summary.imported[kind] = 0
        summary.skipped[kind] = 0

        valid = []
        for i, data in enumerate(rows):
            errors = validate_record(kind, data)
            if errors:
                summary.errors.append(f"{kind}[{i}]: {'; '.join(errors)}")
                summary.skipped[kind] += 1
                continue
            valid.append(data)

        if kind in MODELS:
            ids = [data["id"] for data in valid]
            existing = store.existing_ids(MODELS[kind], ids) if store is not None else set()
            seen = set()
            for data in valid:
                if data["id"] in existing or data["id"] in seen:
                    logger.debug(f"{kind} {data['id']} already exists, skipping")
                    summary.skipped[kind] += 1
                    continue
                seen.add(data["id"])
                pending.append(_build(kind, data))
                summary.imported[kind] += 1
            if kind == "members":
                known_members = existing | seen
        else:
            referenced = {data["member_id"] for data in valid}
            if store is not None:
                known_members |= store.existing_ids(Member, referenced - known_members)
            for data in valid:
                if data["member_id"] not in known_members:
                    summary.errors.append(f"point_history: unknown member {data['member_id']}")
                    summary.skipped[kind] += 1
                    continue
                pending.append(_build(kind, data))
                summary.imported[kind] += 1

    if summary.errors:
        for error in summary.errors[:10]:
            logger.warning(f"Skipped: {error}")
        if len(summary.errors) > 10:
            logger.warning(f"... and {len(summary.errors) - 10} more")

    if dry_run:
        logger.info("[DRY RUN] Import validated", imported=summary.imported, skipped=summary.skipped)
        return summary

    store.add_all(pending)
    logger.info("Import complete", imported=summary.imported, skipped=summary.skipped)
    return summary
