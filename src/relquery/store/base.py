"""Store abstractions.

The engine reads entities through a ``StoreSnapshot``: an immutable view
of the store taken once per call, so that a lookup racing a concurrent
write sees the state either before or after that write, never between.
Writes go through a ``Store``, which is responsible for keeping inverse
links consistent (see ``relquery.store.links``).

Backends subclass ``Store`` and ``StoreSnapshot`` and register themselves
in ``relquery.store.registry.store_registry``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from relquery.schema.registry import SchemaRegistry

RefValue = Union[int, tuple[int, ...], None]


@dataclass(frozen=True)
class Entity:
    """One stored instance of an entity type.

    Equality and hashing use ``(type_name, id)`` only.

    Parameters
    ----------
    type_name:
        Name of the entity's type.
    id:
        Identifier, unique within the type.
    values:
        Scalar attribute values.
    refs:
        Direct references held by this entity: a target id (oneWay,
        oneToOne, manyToOne) or a tuple of ids (manyWay).  One-to-many and
        many-to-many links are not stored here.
    """

    type_name: str
    id: int
    values: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    refs: Mapping[str, RefValue] = field(default_factory=dict, compare=False, hash=False)

    def get(self, name: str, default: Any = None) -> Any:
        """Return the scalar value or direct reference stored under ``name``."""
        if name in self.values:
            return self.values[name]
        return self.refs.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        """Return ``{"id": ..., **values}``."""
        return {"id": self.id, **self.values}

    def __repr__(self) -> str:
        return f"Entity({self.type_name}#{self.id})"


class StoreSnapshot(ABC):
    """Read-only view of a store at one point in time."""

    @abstractmethod
    def get(self, type_name: str, entity_id: int) -> Entity | None:
        """Return the entity, or ``None`` if it does not exist."""

    @abstractmethod
    def entities(self, type_name: str) -> list[Entity]:
        """Return all entities of ``type_name`` in insertion order."""

    @abstractmethod
    def referencing(self, type_name: str, attribute: str, target_id: int) -> list[Entity]:
        """Return entities of ``type_name`` whose reference ``attribute`` equals ``target_id``."""

    @abstractmethod
    def joined(self, owner_type: str, attribute: str, entity_id: int, from_dominant: bool) -> list[int]:
        """Return ids linked through the join records of ``owner_type.attribute``.

        ``owner_type.attribute`` is the dominant side of a many-to-many
        relation.  With ``from_dominant`` the lookup starts from a dominant
        entity and returns the other side; otherwise it starts from the
        other side and returns dominant ids.
        """


class Store(ABC):
    """A writable entity store bound to a schema registry.

    Parameters
    ----------
    registry:
        The schema the stored entities follow.  It is frozen on the first
        write.
    auto_freeze:
        When ``False``, writing to an unfrozen registry raises
        ``SchemaNotReadyError`` instead of freezing it.
    """

    def __init__(self, registry: SchemaRegistry, auto_freeze: bool = True) -> None:
        self.registry = registry
        self.auto_freeze = auto_freeze

    @abstractmethod
    def snapshot(self) -> StoreSnapshot:
        """Return an immutable view of the current state."""

    @abstractmethod
    def create(self, type_name: str, data: Mapping[str, Any]) -> Entity:
        """Create an entity from scalar values and relation references."""

    @abstractmethod
    def update(self, type_name: str, entity_id: int, data: Mapping[str, Any]) -> Entity:
        """Update the given attributes of an existing entity."""

    @abstractmethod
    def delete(self, type_name: str, entity_id: int) -> Entity:
        """Delete an entity and unlink every reference to it."""
