"""Dotted paths and sort keys.

A path names an attribute reached by following relations from left to
right: ``collector.name`` starts at a stamp, follows ``collector`` and
reads ``name``.  A sort key pairs a path with a direction and is written
``path:ASC`` or ``path:DESC``.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Union

from relquery.errors import InvalidSortPathError


class SortDirection(Enum):
    ASC = "ASC"
    DESC = "DESC"


def split_path(path: str) -> tuple[str, ...]:
    """Split a dotted path into its segments; empty segments yield an empty tuple."""
    segments = tuple(path.split("."))
    if not path or any(not s for s in segments):
        return ()
    return segments


@dataclass(frozen=True)
class SortKey:
    """One ordering criterion.

    Parameters
    ----------
    path:
        Segments of the dotted path to a scalar attribute.
    direction:
        ``ASC`` or ``DESC``.
    """

    path: tuple[str, ...]
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def parse(cls, text: str, type_name: str = "") -> SortKey:
        """Parse ``field``, ``field:ASC`` or ``field:DESC`` (direction case-insensitive).

        Raises
        ------
        InvalidSortPathError
            If the path is empty or the direction is not ASC/DESC.
        """
        raw_path, _, raw_direction = text.strip().partition(":")
        segments = split_path(raw_path.strip())
        if not segments:
            raise InvalidSortPathError(type_name, text, "the path is empty or has an empty segment")
        direction = raw_direction.strip().upper() or SortDirection.ASC.value
        try:
            return cls(segments, SortDirection(direction))
        except ValueError:
            raise InvalidSortPathError(
                type_name, text, f"direction must be ASC or DESC, got {raw_direction!r}"
            ) from None

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    def reversed(self) -> SortKey:
        """Return the same key with the opposite direction."""
        flipped = SortDirection.ASC if self.descending else SortDirection.DESC
        return SortKey(self.path, flipped)

    def __str__(self) -> str:
        return f"{self.dotted}:{self.direction.value}"


SortSpec = Union[str, SortKey, tuple[str, str], Iterable[Union[str, SortKey, tuple[str, str]]], None]


def parse_sort(spec: SortSpec, type_name: str = "") -> list[SortKey]:
    """Normalise a sort specification into a list of ``SortKey``.

    Accepts ``None``, a comma-separated string (``"a:ASC,b.c:DESC"``), a
    single ``SortKey``, a ``(path, direction)`` tuple, or an iterable of any
    of these.
    """
    if spec is None:
        return []
    if isinstance(spec, SortKey):
        return [spec]
    if isinstance(spec, str):
        return [SortKey.parse(part, type_name) for part in spec.split(",") if part.strip()]
    if (
        isinstance(spec, tuple)
        and len(spec) == 2
        and all(isinstance(p, str) for p in spec)
        and spec[1].strip().upper() in ("ASC", "DESC")
    ):
        return [SortKey.parse(f"{spec[0]}:{spec[1]}", type_name)]
    keys: list[SortKey] = []
    for item in spec:
        keys.extend(parse_sort(item, type_name))
    return keys
