"""Query module.

Exports the ``QueryEngine``, result rows, sort keys and filter operators.
"""
from __future__ import annotations

from relquery.query.engine import QueryEngine, QueryRow
from relquery.query.operators import Operator, split_operator
from relquery.query.paths import SortDirection, SortKey, parse_sort, split_path

__all__ = [
    "QueryEngine",
    "QueryRow",
    "Operator",
    "split_operator",
    "SortDirection",
    "SortKey",
    "parse_sort",
    "split_path",
]
