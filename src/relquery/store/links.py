"""Inverse-link maintenance.

Every write to a relation attribute goes through ``apply_relation`` and
every delete goes through ``unlink_entity``.  Together they keep the stored
links consistent:

* one-to-one partners point at each other, and at nobody else;
* a one-to-many write moves foreign keys on the "many" side;
* many-to-many links are stored once, on the dominant side's join records,
  whichever side the write came from;
* a deleted entity leaves no reference behind.

The functions mutate a ``MemoryState`` that the caller has copied for the
write; readers never observe the intermediate steps.
"""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from relquery.errors import InvalidValueError
from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import EntityType, RelationAttribute, RelationKind
from relquery.store.base import Entity, RefValue

if TYPE_CHECKING:
    from relquery.store.memory import MemoryState

logger = logging.getLogger(__name__)

# Kinds whose link lives in the owner's ``refs``.
DIRECT_KINDS = frozenset({
    RelationKind.ONE_WAY,
    RelationKind.MANY_WAY,
    RelationKind.ONE_TO_ONE,
    RelationKind.MANY_TO_ONE,
})


def initial_refs(entity_type: EntityType) -> dict[str, RefValue]:
    """Return the empty ``refs`` mapping for a new entity of ``entity_type``."""
    return {
        r.name: (() if r.kind is RelationKind.MANY_WAY else None)
        for r in entity_type.relations
        if r.kind in DIRECT_KINDS
    }


def join_key(owner_type: str, relation: RelationAttribute) -> tuple[tuple[str, str], bool]:
    """Return the join-record key of a many-to-many relation and whether ``owner_type`` dominates."""
    if relation.dominant:
        return (owner_type, relation.name), True
    if relation.inverse is None:
        raise InvalidValueError(owner_type, relation.name, "many-to-many relation has no inverse")
    return (relation.target, relation.inverse), False


def _coerce_id(owner: EntityType, relation: RelationAttribute, item: Any) -> int:
    if isinstance(item, Entity):
        if item.type_name != relation.target:
            raise InvalidValueError(
                owner.name, relation.name, f"expected a {relation.target!r} entity, got {item!r}"
            )
        return item.id
    if isinstance(item, Mapping) and "id" in item:
        item = item["id"]
    if isinstance(item, bool) or not isinstance(item, int):
        raise InvalidValueError(owner.name, relation.name, f"expected an id, got {item!r}")
    return item


def normalize_relation_value(
    owner: EntityType, relation: RelationAttribute, value: Any
) -> int | tuple[int, ...] | None:
    """Turn a written relation value into an id, a tuple of unique ids, or ``None``.

    Ids may be given as ints, ``Entity`` objects or ``{"id": ...}`` mappings.
    """
    if relation.is_collection:
        if value is None:
            return ()
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            value = [value]
        ids: list[int] = []
        for item in value:
            entity_id = _coerce_id(owner, relation, item)
            if entity_id not in ids:
                ids.append(entity_id)
        return tuple(ids)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) > 1:
            raise InvalidValueError(owner.name, relation.name, "expected at most one id")
        return _coerce_id(owner, relation, value[0]) if value else None
    return _coerce_id(owner, relation, value)


def _set_ref(state: MemoryState, type_name: str, entity_id: int, attribute: str, value: RefValue) -> None:
    entity = state.get(type_name, entity_id)
    if entity is None:
        return
    refs = dict(entity.refs)
    refs[attribute] = value
    state.put(dataclasses.replace(entity, refs=refs))


def _check_targets(state: MemoryState, owner: EntityType, relation: RelationAttribute, ids: Iterable[int]) -> None:
    for entity_id in ids:
        if state.get(relation.target, entity_id) is None:
            raise InvalidValueError(
                owner.name, relation.name, f"no {relation.target!r} entity with id {entity_id}"
            )


def apply_relation(
    state: MemoryState,
    owner: EntityType,
    relation: RelationAttribute,
    owner_id: int,
    value: Any,
) -> None:
    """Write ``value`` to ``owner_id``'s ``relation`` and update the other side.

    Raises
    ------
    InvalidValueError
        If ``value`` is malformed or names an entity that does not exist.
    """
    normalized = normalize_relation_value(owner, relation, value)
    ids: tuple[int, ...]
    if isinstance(normalized, tuple):
        ids = normalized
    else:
        ids = () if normalized is None else (normalized,)
    _check_targets(state, owner, relation, ids)
    logger.debug("Linking %s#%d.%s -> %s", owner.name, owner_id, relation.name, list(ids))

    kind = relation.kind
    if kind in (RelationKind.ONE_WAY, RelationKind.MANY_TO_ONE, RelationKind.MANY_WAY):
        _set_ref(state, owner.name, owner_id, relation.name, normalized)
    elif kind is RelationKind.ONE_TO_ONE:
        _link_one_to_one(state, owner, relation, owner_id, normalized)  # type: ignore[arg-type]
    elif kind is RelationKind.ONE_TO_MANY:
        _link_one_to_many(state, relation, owner_id, ids)
    elif kind is RelationKind.MANY_TO_MANY:
        _link_many_to_many(state, owner, relation, owner_id, ids)


def _link_one_to_one(
    state: MemoryState,
    owner: EntityType,
    relation: RelationAttribute,
    owner_id: int,
    partner_id: int | None,
) -> None:
    inverse = relation.inverse
    current = state.get(owner.name, owner_id)
    previous = current.refs.get(relation.name) if current is not None else None
    if inverse is not None:
        if previous is not None and previous != partner_id:
            old_partner = state.get(relation.target, previous)
            if old_partner is not None and old_partner.refs.get(inverse) == owner_id:
                _set_ref(state, relation.target, previous, inverse, None)
        if partner_id is not None:
            partner = state.get(relation.target, partner_id)
            rival = partner.refs.get(inverse) if partner is not None else None
            if rival is not None and rival != owner_id:
                # The partner leaves its previous owner.
                rival_entity = state.get(owner.name, rival)
                if rival_entity is not None and rival_entity.refs.get(relation.name) == partner_id:
                    _set_ref(state, owner.name, rival, relation.name, None)
            _set_ref(state, relation.target, partner_id, inverse, owner_id)
    _set_ref(state, owner.name, owner_id, relation.name, partner_id)


def _link_one_to_many(
    state: MemoryState, relation: RelationAttribute, owner_id: int, ids: tuple[int, ...]
) -> None:
    foreign_key = relation.inverse
    if foreign_key is None:
        return
    for entity in state.entities(relation.target):
        if entity.refs.get(foreign_key) == owner_id and entity.id not in ids:
            _set_ref(state, relation.target, entity.id, foreign_key, None)
    for entity_id in ids:
        _set_ref(state, relation.target, entity_id, foreign_key, owner_id)


def _link_many_to_many(
    state: MemoryState,
    owner: EntityType,
    relation: RelationAttribute,
    owner_id: int,
    ids: tuple[int, ...],
) -> None:
    key, dominant = join_key(owner.name, relation)
    pairs = state.joins.get(key, ())
    if dominant:
        kept = [p for p in pairs if p[0] != owner_id]
        added = [(owner_id, other) for other in ids]
    else:
        kept = [p for p in pairs if p[1] != owner_id]
        added = [(other, owner_id) for other in ids]
    state.joins[key] = tuple(kept + added)


def unlink_entity(state: MemoryState, registry: SchemaRegistry, type_name: str, entity_id: int) -> None:
    """Remove every stored reference to ``type_name#entity_id``.

    Called after the entity itself has been removed from ``state``.
    """
    for entity_type in registry:
        for relation in entity_type.relations:
            if relation.target != type_name or relation.kind not in DIRECT_KINDS:
                continue
            for entity in state.entities(entity_type.name):
                current = entity.refs.get(relation.name)
                if relation.kind is RelationKind.MANY_WAY:
                    if current and entity_id in current:
                        kept = tuple(i for i in current if i != entity_id)
                        _set_ref(state, entity_type.name, entity.id, relation.name, kept)
                elif current == entity_id:
                    _set_ref(state, entity_type.name, entity.id, relation.name, None)

    for (owner_type, attribute), pairs in list(state.joins.items()):
        relation = registry.get(owner_type).relation(attribute)
        kept = [
            p
            for p in pairs
            if not (owner_type == type_name and p[0] == entity_id)
            and not (relation.target == type_name and p[1] == entity_id)
        ]
        if len(kept) != len(pairs):
            state.joins[(owner_type, attribute)] = tuple(kept)
    logger.debug("Unlinked every reference to %s#%d", type_name, entity_id)
