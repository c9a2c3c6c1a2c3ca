from datetime import datetime
from typing import Any, Dict, List

from .database import POINT_SOURCES

RECORD_KINDS = ("clubs", "specialties", "members", "requirements", "point_history")

REQUIRED_STR_FIELDS = {
    "clubs": ["id", "name"],
    "specialties": ["id", "name"],
    "members": ["id", "name"],
    "requirements": ["id", "description"],
    "point_history": ["member_id"],
}
OPTIONAL_STR_FIELDS = {
    "clubs": ["region"],
    "specialties": ["area"],
    "members": ["club_id"],
    "requirements": ["code", "dbv_class", "specialty_id", "club_id"],
    "point_history": ["reason", "source", "source_ref"],
}
INT_FIELDS = {
    "members": ["points"],
    "point_history": ["amount"],
}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _valid_timestamp(v: str) -> bool:
    try:
        datetime.fromisoformat(v)
        return True
    except ValueError:
        return False


def validate_record(kind: str, data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if kind not in RECORD_KINDS:
        return [f"Unknown record kind: {kind}"]
    if not isinstance(data, dict):
        return [f"{kind} record must be an object"]

    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS[kind]:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS[kind]:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in INT_FIELDS.get(kind, []):
        if f == "amount" and f not in data:
            errors.append("Missing required field: amount")
        elif f in data and not _is_int(data[f]):
            errors.append(f"Field '{f}' must be an integer")

    if kind == "point_history" and isinstance(data.get("source"), str):
        if data["source"].upper() not in POINT_SOURCES:
            errors.append(f"Field 'source' must be one of {', '.join(POINT_SOURCES)}")

    created_at = data.get("created_at")
    if created_at is not None:
        if not isinstance(created_at, str) or not _valid_timestamp(created_at):
            errors.append("Field 'created_at' must be an ISO 8601 timestamp")

    return errors
