"""Filter DSL: parsing, in-memory evaluation and SQL compilation."""

from userforge.query.evaluator import filter_records, record_matches
from userforge.query.filters import (
    MATCH_ALL,
    Condition,
    FilterTree,
    Operator,
    parse_filter,
)
from userforge.query.sql import compile_where

__all__ = [
    "MATCH_ALL",
    "Condition",
    "FilterTree",
    "Operator",
    "compile_where",
    "filter_records",
    "parse_filter",
    "record_matches",
]
