"""Record helpers every backend uses.

Stores share these by composition; none of them subclasses another.
"""

import logging
from typing import Any, Callable, Collection, Iterable, Mapping

from userforge.core.clock import archive_timestamp, current_timestamp
from userforge.validation.validators import USER_ID_PATTERN

logger = logging.getLogger(__name__)

# Never accepted from callers on update
READONLY_FIELDS = ("user_id", "created_date", "last_mod_date")


def as_text(value: Any) -> str:
    return "" if value is None else str(value)


def schema_only(record: Mapping[str, Any], fields: Collection[str]) -> dict[str, str]:
    """Keep the keys that name schema fields; every other key is dropped."""
    kept = {name: as_text(value) for name, value in record.items() if name in fields}
    dropped = [name for name in record if name not in fields]
    if dropped:
        logger.debug("Dropped non-schema keys: %s", ", ".join(map(str, dropped)))
    return kept


def stamp_new(record: Mapping[str, Any], fields: Collection[str]) -> dict[str, str]:
    """Copy a full initial record and set both system timestamps."""
    stamped = schema_only(record, fields)
    now = current_timestamp()
    stamped["created_date"] = now
    stamped["last_mod_date"] = now
    return stamped


def prepare_update(updates: Mapping[str, Any], fields: Collection[str]) -> dict[str, str]:
    """Drop read-only and non-schema fields and refresh ``last_mod_date``."""
    prepared = {
        name: value
        for name, value in schema_only(updates, fields).items()
        if name not in READONLY_FIELDS
    }
    prepared["last_mod_date"] = current_timestamp()
    return prepared


def archive_name(stem: str, suffix: str, taken: Callable[[str], bool]) -> str:
    """``<stem>_<timestamp><suffix>``, numbered ``_1``, ``_2``... while taken.

    Archives are never overwritten, even when two setups land in the
    same second.
    """
    base = f"{stem}_{archive_timestamp()}"
    name = f"{base}{suffix}"
    counter = 1
    while taken(name):
        name = f"{base}_{counter}{suffix}"
        counter += 1
    return name


def is_valid_user_id(user_id: Any) -> bool:
    return isinstance(user_id, str) and USER_ID_PATTERN.fullmatch(user_id) is not None


def sort_by_user_id(records: Iterable[dict[str, str]]) -> list[dict[str, str]]:
    return sorted(records, key=lambda r: r.get("user_id") or "")


def not_found(user_id: str) -> str:
    return f"User '{user_id}' not found"


def already_exists(user_id: str) -> str:
    return f"User '{user_id}' already exists"
