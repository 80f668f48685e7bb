"""Engine configuration.

``EngineConfig`` collects the knobs that change how an ``Engine`` behaves:
which store backend it creates, whether the schema freezes itself on first
use, how relations are annotated in query results by default, and the
pagination limits.  Configurations are immutable; derive variants with
``with_overrides``.

A configuration file is a YAML mapping using the field names::

    store: memory
    auto_freeze: true
    strict_schema: false
    collection_projection: count
    single_projection: populate
    default_limit: 100
    max_limit: 1000
"""
from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from relquery.errors import ConfigError


class Projection(Enum):
    """How a relation attribute is annotated in a query result row."""

    COUNT = "count"
    POPULATE = "populate"


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for an ``Engine``.

    Parameters
    ----------
    store:
        Name of the store backend in ``store_registry``.
    auto_freeze:
        Freeze the schema registry on the first write or query.  When
        ``False``, reading from an open registry raises
        ``SchemaNotReadyError``.
    strict_schema:
        Promote schema warnings to errors when freezing.
    collection_projection:
        Default annotation for collection-valued relations.
    single_projection:
        Default annotation for single-valued relations.
    default_limit:
        Row limit used when a query gives none.  ``None`` means unlimited.
    max_limit:
        Upper bound for any limit; larger requests are clamped.
    """

    store: str = "memory"
    auto_freeze: bool = True
    strict_schema: bool = False
    collection_projection: Projection = Projection.COUNT
    single_projection: Projection = Projection.POPULATE
    default_limit: int | None = None
    max_limit: int | None = None

    def __post_init__(self) -> None:
        for name in ("collection_projection", "single_projection"):
            value = getattr(self, name)
            if not isinstance(value, Projection):
                try:
                    object.__setattr__(self, name, Projection(value))
                except ValueError:
                    raise ConfigError(
                        f"{name} must be one of "
                        f"{', '.join(p.value for p in Projection)}, got {value!r}"
                    ) from None
        for name in ("default_limit", "max_limit"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise ConfigError(f"{name} must be a non-negative integer or null, got {value!r}")
        for name in ("auto_freeze", "strict_schema"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        if not isinstance(self.store, str) or not self.store:
            raise ConfigError(f"store must be a non-empty string, got {self.store!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConfig:
        """Build a configuration from a mapping of field names.

        Raises
        ------
        ConfigError
            If a key is unknown or a value is invalid.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, text: str) -> EngineConfig:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration is not valid YAML: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError("Configuration must be a YAML mapping")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: str | Path) -> EngineConfig:
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def with_overrides(self, **overrides: Any) -> EngineConfig:
        """Return a copy with the given fields replaced."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return dataclasses.replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["collection_projection"] = self.collection_projection.value
        data["single_projection"] = self.single_projection.value
        return data

    def effective_limit(self, limit: int | None) -> int | None:
        """Apply ``default_limit`` and ``max_limit`` to a requested limit."""
        if limit is None:
            limit = self.default_limit
        if self.max_limit is not None and (limit is None or limit > self.max_limit):
            limit = self.max_limit
        return limit
