"""Filter operators.

A filter key may end in an operator suffix, e.g. ``age_gte`` or
``stamps.name_contains``.  Without a suffix the operator is ``eq``.

Operators are evaluated existentially over the values reachable through a
path: ``stamps.name = "1946"`` holds when *any* related stamp is named
1946.  Null values never satisfy a comparison; ``null`` tests whether any
non-null value is reachable at all.
"""
from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any


class Operator(Enum):
    """Comparison applied to the values a filter path reaches."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NIN = "nin"
    CONTAINS = "contains"
    CONTAINSS = "containss"
    NULL = "null"

    @property
    def takes_list(self) -> bool:
        return self in (Operator.IN, Operator.NIN)

    def evaluate(self, values: Sequence[Any], expected: Any) -> bool:
        """Return True if ``values`` satisfy this operator against ``expected``."""
        present = [v for v in values if v is not None]
        if self is Operator.NULL:
            return not present if expected else bool(present)
        if self is Operator.EQ:
            return any(v == expected for v in present)
        if self is Operator.NE:
            return any(v != expected for v in present)
        if self is Operator.LT:
            return any(v < expected for v in present)
        if self is Operator.LTE:
            return any(v <= expected for v in present)
        if self is Operator.GT:
            return any(v > expected for v in present)
        if self is Operator.GTE:
            return any(v >= expected for v in present)
        if self is Operator.IN:
            return any(v in expected for v in present)
        if self is Operator.NIN:
            return any(v not in expected for v in present)
        if self is Operator.CONTAINS:
            needle = str(expected).lower()
            return any(isinstance(v, str) and needle in v.lower() for v in present)
        needle = str(expected)
        return any(isinstance(v, str) and needle in v for v in present)


# Longest suffix first so that ``_containss`` wins over ``_contains``.
SUFFIXES: tuple[Operator, ...] = tuple(sorted(Operator, key=lambda op: len(op.value), reverse=True))


def split_operator(segment: str) -> tuple[str, Operator] | None:
    """Split ``name_op`` into ``(name, op)``, or return ``None`` if no suffix matches."""
    for op in SUFFIXES:
        suffix = f"_{op.value}"
        if segment.endswith(suffix) and len(segment) > len(suffix):
            return segment[: -len(suffix)], op
    return None
