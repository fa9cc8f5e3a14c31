"""In-memory evaluation of filter trees.

Mirrors what :mod:`userforge.query.sql` produces for SQLite so that the
file backends and the database backend select the same records:

- missing values compare as empty strings (``COALESCE(col, '')``)
- case-insensitive matching folds ASCII letters only, as SQLite's LIKE does
- ``>`` / ``<`` compare code points, as SQLite's BINARY collation does
"""

from typing import Any, Iterable, Mapping

from userforge.query.filters import Condition, FilterTree, Operator

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


def fold_case(value: str) -> str:
    """Lower-case ASCII letters only."""
    return value.translate(_ASCII_LOWER)


def _stored_value(record: Mapping[str, Any], field_name: str) -> str:
    value = record.get(field_name)
    return "" if value is None else str(value)


def condition_matches(condition: Condition, record: Mapping[str, Any]) -> bool:
    value = _stored_value(record, condition.field)
    target = condition.value
    op = condition.operator

    if op is Operator.EQUALS:
        return value == target
    if op is Operator.CONTAINS:
        return fold_case(target) in fold_case(value)
    if op is Operator.NOT_CONTAINS:
        return fold_case(target) not in fold_case(value)
    if op is Operator.GREATER:
        return value > target
    if op is Operator.LESS:
        return value < target
    return False


def record_matches(tree: FilterTree, record: Mapping[str, Any]) -> bool:
    """True when at least one AND-group holds entirely for ``record``."""
    if tree.matches_everything:
        return True
    return any(
        all(condition_matches(cond, record) for cond in group)
        for group in tree.groups
    )


def filter_records(
    tree: FilterTree, records: Iterable[Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    return [record for record in records if record_matches(tree, record)]
