"""Compile filter trees into SQL WHERE clauses.

Output shape: ``(cond AND cond) OR (cond AND cond)`` with named bind
parameters for SQLAlchemy ``text()``. Columns are wrapped in
``COALESCE(col, '')`` so NULLs behave like the empty string, and LIKE
patterns escape ``%``, ``_`` and the escape character so the value is
always matched literally.
"""

from typing import Any

from userforge.query.filters import Condition, FilterTree, Operator

LIKE_ESCAPE = "\\"


def quote_identifier(name: str) -> str:
    """Return a double-quoted SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _build_condition(
    cond: Condition, param: str, params: dict[str, Any]
) -> str:
    column = f"COALESCE({quote_identifier(cond.field)}, '')"
    op = cond.operator

    if op is Operator.EQUALS:
        params[param] = cond.value
        return f"{column} = :{param}"
    if op is Operator.CONTAINS:
        params[param] = f"%{escape_like(cond.value)}%"
        return f"{column} LIKE :{param} ESCAPE '{LIKE_ESCAPE}'"
    if op is Operator.NOT_CONTAINS:
        params[param] = f"%{escape_like(cond.value)}%"
        return f"{column} NOT LIKE :{param} ESCAPE '{LIKE_ESCAPE}'"
    if op is Operator.GREATER:
        params[param] = cond.value
        return f"{column} > :{param}"
    if op is Operator.LESS:
        params[param] = cond.value
        return f"{column} < :{param}"
    raise ValueError(f"Unsupported filter operator: {op!r}")


def compile_where(tree: FilterTree) -> tuple[str, dict[str, Any]]:
    """Build a WHERE clause body and its bind parameters.

    Returns:
        ``("", {})`` for the match-everything tree, otherwise the clause
        (without the ``WHERE`` keyword) and a parameter dict.
    """
    if tree.matches_everything:
        return "", {}

    params: dict[str, Any] = {}
    or_parts: list[str] = []
    for group in tree.groups:
        and_parts = []
        for cond in group:
            param = f"p{len(params)}"
            and_parts.append(_build_condition(cond, param, params))
        or_parts.append("(" + " AND ".join(and_parts) + ")")

    return " OR ".join(or_parts), params
