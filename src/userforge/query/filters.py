"""Parser for the user-list filter DSL.

Grammar::

    filter    := and_group ('|' and_group)*
    and_group := condition (';' condition)*
    condition := field op value      op is one of  =  :  !  >  <

``|`` separates alternatives (OR), ``;`` joins conditions (AND). Operators:

    =   exact match
    :   case-insensitive substring match
    !   case-insensitive substring non-match
    >   greater than (string comparison)
    <   less than (string comparison)

Conditions on unknown fields and malformed conditions are dropped with a
warning. A filter with nothing left matches every record.

Example:
    tree = parse_filter("user_status=OK;access_level=member|access_level=staff", fields)
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    EQUALS = "="
    CONTAINS = ":"
    NOT_CONTAINS = "!"
    GREATER = ">"
    LESS = "<"


_CONDITION_PATTERN = re.compile(r"^(\w+)([=:!><])(.+)$", re.DOTALL)
_OR_SEPARATOR = re.compile(r"\s*\|\s*")
_AND_SEPARATOR = re.compile(r"\s*;\s*")


@dataclass(frozen=True)
class Condition:
    """One ``field op value`` test."""

    field: str
    operator: Operator
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "op": self.operator.value, "value": self.value}


@dataclass(frozen=True)
class FilterTree:
    """OR-list of AND-groups of conditions.

    A tree without groups is the "match everything" filter.
    """

    groups: tuple[tuple[Condition, ...], ...] = ()
    raw: str = ""
    warnings: tuple[str, ...] = field(default=(), compare=False)

    @property
    def matches_everything(self) -> bool:
        return not self.groups

    def referenced_fields(self) -> set[str]:
        return {cond.field for group in self.groups for cond in group}

    def to_dict(self) -> dict[str, Any]:
        if self.matches_everything:
            return {}
        return {
            "or_groups": [[cond.to_dict() for cond in group] for group in self.groups],
            "raw": self.raw,
        }


MATCH_ALL = FilterTree()


def parse_condition(text: str) -> Condition | None:
    """Parse a single condition; None when it is malformed."""
    match = _CONDITION_PATTERN.match(text)
    if not match:
        return None
    field_name, op, value = match.groups()
    return Condition(field=field_name, operator=Operator(op), value=value)


def parse_filter(filter_string: str | None, known_fields: Iterable[str]) -> FilterTree:
    """Compile a filter string into a :class:`FilterTree`.

    Args:
        filter_string: The DSL text; empty or None matches everything
        known_fields: Field names of the active schema

    Returns:
        The predicate tree, carrying any warnings raised while parsing.
    """
    if not filter_string or not filter_string.strip():
        return MATCH_ALL

    known = set(known_fields)
    warnings: list[str] = []
    groups: list[tuple[Condition, ...]] = []

    for group_text in _OR_SEPARATOR.split(filter_string.strip()):
        conditions: list[Condition] = []
        for condition_text in _AND_SEPARATOR.split(group_text.strip()):
            if not condition_text:
                continue
            condition = parse_condition(condition_text)
            if condition is None:
                warnings.append(f"Invalid filter condition '{condition_text}'")
                continue
            if condition.field not in known:
                warnings.append(f"Unknown field '{condition.field}' in filter")
                continue
            conditions.append(condition)
        if conditions:
            groups.append(tuple(conditions))

    for warning in warnings:
        logger.warning(warning)

    return FilterTree(groups=tuple(groups), raw=filter_string, warnings=tuple(warnings))
