"""Name-based type rules. Pure functions of (name, declared type, comment)."""

from typing import Optional

from ..models import LogicalType
from .type_map import is_boolean_compatible, is_text_type, is_uuid_candidate_type

BOOLEAN_PREFIXES = ("is_", "has_", "can_", "allow_", "should_", "will_")
BOOLEAN_SUFFIXES = ("_flag", "_enabled", "_active", "_deleted")
BOOLEAN_NAMES = frozenset({
    "active", "enabled", "deleted", "verified", "confirmed",
    "published", "visible", "locked", "archived", "approved",
})

UUID_NAMES = frozenset({
    "uuid", "guid", "correlation_id", "tracking_id",
    "external_id", "reference_id", "transaction_id",
})
UUID_SUFFIXES = ("_uuid", "_guid")

DATETIME_NAMES = frozenset({"created", "updated", "modified", "timestamp", "expires", "scheduled"})


def looks_boolean(name: str) -> bool:
    lower = (name or "").lower()
    return (
        lower.startswith(BOOLEAN_PREFIXES)
        or lower.endswith(BOOLEAN_SUFFIXES)
        or lower in BOOLEAN_NAMES
    )


def looks_uuid(name: str, comment: str = "") -> bool:
    lower = (name or "").lower()
    if lower in UUID_NAMES or lower.endswith(UUID_SUFFIXES):
        return True
    comment_lower = (comment or "").lower()
    return "uuid" in comment_lower or "guid" in comment_lower


def temporal_kind(name: str) -> Optional[LogicalType]:
    """date, time or datetime when the name reads like a point in time, else None."""
    lower = (name or "").lower()
    is_temporal = (
        "date" in lower
        or "time" in lower
        or "_at" in lower
        or lower.endswith("_on")
        or lower in DATETIME_NAMES
    )
    if not is_temporal:
        return None
    if lower in DATETIME_NAMES or lower.endswith("_at"):
        return LogicalType.DATETIME
    # "updated" is a verb, not a date
    has_date = "date" in lower.replace("update", "")
    has_time = "time" in lower and "timestamp" not in lower
    if has_date and not has_time:
        return LogicalType.DATE
    if has_time and not has_date:
        return LogicalType.TIME
    return LogicalType.DATETIME


def infer_from_name(name: str, declared: str, comment: str = "") -> Optional[LogicalType]:
    """
    Apply the name rules, guarded by the declared type family.

    Boolean names need a small-integer or boolean type, UUID names a
    36-character string type, and temporal names a text type. Text columns
    documented as JSON stay strings.
    """
    if looks_boolean(name) and is_boolean_compatible(declared):
        return LogicalType.BOOL
    if is_uuid_candidate_type(declared) and looks_uuid(name, comment):
        return LogicalType.UUID
    if is_text_type(declared) and "json" in (comment or "").lower():
        return LogicalType.STRING
    if is_text_type(declared):
        return temporal_kind(name)
    return None
