"""In-memory copy-on-write store.

Writers copy the current ``MemoryState`` under a lock, apply the change and
the inverse-link maintenance to the copy, then publish it with a single
reference assignment.  A ``MemorySnapshot`` wraps whichever state was
current when it was taken and is never mutated afterwards.

Entities are immutable, so copying a state only copies the per-type dicts
and the join-record mapping, not the entities themselves.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from relquery.errors import EntityNotFoundError, InvalidValueError
from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import EntityType, ScalarAttribute
from relquery.store.base import Entity, Store, StoreSnapshot
from relquery.store.links import apply_relation, initial_refs, unlink_entity
from relquery.store.registry import store_registry

logger = logging.getLogger(__name__)


@dataclass
class MemoryState:
    """All stored data.  Mutated only while a writer holds a private copy."""

    records: dict[str, dict[int, Entity]] = field(default_factory=dict)
    joins: dict[tuple[str, str], tuple[tuple[int, int], ...]] = field(default_factory=dict)
    next_ids: dict[str, int] = field(default_factory=dict)

    def copy(self) -> MemoryState:
        return MemoryState(
            records={name: dict(entities) for name, entities in self.records.items()},
            joins=dict(self.joins),
            next_ids=dict(self.next_ids),
        )

    def get(self, type_name: str, entity_id: int) -> Entity | None:
        return self.records.get(type_name, {}).get(entity_id)

    def entities(self, type_name: str) -> list[Entity]:
        return list(self.records.get(type_name, {}).values())

    def put(self, entity: Entity) -> None:
        self.records.setdefault(entity.type_name, {})[entity.id] = entity

    def remove(self, type_name: str, entity_id: int) -> None:
        del self.records[type_name][entity_id]

    def allocate_id(self, type_name: str) -> int:
        entity_id = self.next_ids.get(type_name, 1)
        self.next_ids[type_name] = entity_id + 1
        return entity_id


class MemorySnapshot(StoreSnapshot):
    """Read-only view over one published ``MemoryState``."""

    def __init__(self, state: MemoryState) -> None:
        self._state = state

    def get(self, type_name: str, entity_id: int) -> Entity | None:
        return self._state.get(type_name, entity_id)

    def entities(self, type_name: str) -> list[Entity]:
        return self._state.entities(type_name)

    def referencing(self, type_name: str, attribute: str, target_id: int) -> list[Entity]:
        return [e for e in self._state.entities(type_name) if e.refs.get(attribute) == target_id]

    def joined(self, owner_type: str, attribute: str, entity_id: int, from_dominant: bool) -> list[int]:
        pairs = self._state.joins.get((owner_type, attribute), ())
        if from_dominant:
            return [other for dominant, other in pairs if dominant == entity_id]
        return [dominant for dominant, other in pairs if other == entity_id]


@store_registry.register("memory")
class MemoryStore(Store):
    """Thread-safe in-memory store.

    Ids are assigned per type from 1 upward and never reused.
    """

    def __init__(self, registry: SchemaRegistry, auto_freeze: bool = True) -> None:
        super().__init__(registry, auto_freeze)
        self._state = MemoryState()
        self._write_lock = threading.Lock()

    def snapshot(self) -> MemorySnapshot:
        return MemorySnapshot(self._state)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, type_name: str, data: Mapping[str, Any]) -> Entity:
        self.registry.ensure_frozen(self.auto_freeze)
        entity_type = self.registry.get(type_name)
        scalars, relations = self._split(entity_type, data)
        self._check_required(entity_type, scalars, creating=True)
        with self._write_lock:
            state = self._state.copy()
            self._check_unique(state, entity_type, scalars, exclude_id=None)
            entity_id = state.allocate_id(entity_type.name)
            values = {a.name: scalars.get(a.name) for a in entity_type.scalars}
            state.put(Entity(entity_type.name, entity_id, values, initial_refs(entity_type)))
            for name, value in relations.items():
                apply_relation(state, entity_type, entity_type.relation(name), entity_id, value)
            self._state = state
            created = state.records[entity_type.name][entity_id]
        logger.debug("Created %s#%d", entity_type.name, entity_id)
        return created

    def update(self, type_name: str, entity_id: int, data: Mapping[str, Any]) -> Entity:
        self.registry.ensure_frozen(self.auto_freeze)
        entity_type = self.registry.get(type_name)
        scalars, relations = self._split(entity_type, data)
        self._check_required(entity_type, scalars, creating=False)
        with self._write_lock:
            state = self._state.copy()
            current = state.get(entity_type.name, entity_id)
            if current is None:
                raise EntityNotFoundError(entity_type.name, entity_id)
            self._check_unique(state, entity_type, scalars, exclude_id=entity_id)
            if scalars:
                state.put(dataclasses.replace(current, values={**current.values, **scalars}))
            for name, value in relations.items():
                apply_relation(state, entity_type, entity_type.relation(name), entity_id, value)
            self._state = state
            updated = state.records[entity_type.name][entity_id]
        logger.debug("Updated %s#%d (%s)", entity_type.name, entity_id, ", ".join(data))
        return updated

    def delete(self, type_name: str, entity_id: int) -> Entity:
        self.registry.ensure_frozen(self.auto_freeze)
        entity_type = self.registry.get(type_name)
        with self._write_lock:
            state = self._state.copy()
            current = state.get(entity_type.name, entity_id)
            if current is None:
                raise EntityNotFoundError(entity_type.name, entity_id)
            state.remove(entity_type.name, entity_id)
            unlink_entity(state, self.registry, entity_type.name, entity_id)
            self._state = state
        logger.debug("Deleted %s#%d", entity_type.name, entity_id)
        return current

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _split(entity_type: EntityType, data: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        scalars: dict[str, Any] = {}
        relations: dict[str, Any] = {}
        for name, value in data.items():
            if name == "id":
                continue
            attr = entity_type.attribute(name)
            if isinstance(attr, ScalarAttribute):
                if not attr.type.accepts(value):
                    raise InvalidValueError(
                        entity_type.name, name, f"{value!r} is not a valid {attr.type.value}"
                    )
                scalars[name] = value
            else:
                relations[name] = value
        return scalars, relations

    @staticmethod
    def _check_required(entity_type: EntityType, scalars: Mapping[str, Any], creating: bool) -> None:
        for attr in entity_type.scalars:
            if not attr.required:
                continue
            if (creating or attr.name in scalars) and scalars.get(attr.name) is None:
                raise InvalidValueError(entity_type.name, attr.name, "a value is required")

    @staticmethod
    def _check_unique(
        state: MemoryState,
        entity_type: EntityType,
        scalars: Mapping[str, Any],
        exclude_id: int | None,
    ) -> None:
        for attr in entity_type.scalars:
            value = scalars.get(attr.name)
            if not attr.unique or value is None:
                continue
            for other in state.entities(entity_type.name):
                if other.id != exclude_id and other.values.get(attr.name) == value:
                    raise InvalidValueError(
                        entity_type.name, attr.name, f"{value!r} is already used by id {other.id}"
                    )


__all__ = ["MemoryState", "MemorySnapshot", "MemoryStore"]
