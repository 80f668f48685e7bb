"""Relation resolution.

``RelationResolver.resolve(entity, attribute)`` returns the entities a
relation attribute points at, as a list whose length matches the kind:

=============  =========================================================
kind           result
=============  =========================================================
oneWay         the referenced entity, or nothing
manyWay        the referenced entities in stored order, unique by id
oneToOne       the partner, only if the partner points back
manyToOne      the entity the foreign key references, or nothing
oneToMany      every target entity whose foreign key references ``entity``
manyToMany     every entity joined with ``entity``, whichever side dominates
=============  =========================================================

References to deleted entities are skipped.  Each call reads one store
snapshot; pass ``snapshot=`` to share one across calls.
"""
from __future__ import annotations

import logging

from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import RelationAttribute, RelationKind
from relquery.store.base import Entity, Store, StoreSnapshot
from relquery.store.links import join_key

logger = logging.getLogger(__name__)


class RelationResolver:
    """Resolve and count relations of stored entities.

    Parameters
    ----------
    registry:
        Schema the entities follow.
    store:
        Where entities are read from.
    auto_freeze:
        Freeze an open registry on first use instead of failing.
    """

    def __init__(self, registry: SchemaRegistry, store: Store, auto_freeze: bool = True) -> None:
        self._registry = registry
        self._store = store
        self._auto_freeze = auto_freeze

    def relation_of(self, type_name: str, attribute: str) -> RelationAttribute:
        """Return the relation attribute ``type_name.attribute``.

        Raises
        ------
        UnknownTypeError
            If ``type_name`` is not registered.
        UnknownAttributeError
            If ``attribute`` is not declared on the type.
        NotARelationError
            If ``attribute`` is a scalar.
        """
        self._registry.ensure_frozen(self._auto_freeze)
        return self._registry.get(type_name).relation(attribute)

    def resolve(
        self,
        entity: Entity,
        attribute: str,
        snapshot: StoreSnapshot | None = None,
    ) -> list[Entity]:
        """Return the entities ``entity.attribute`` relates to."""
        relation = self.relation_of(entity.type_name, attribute)
        if snapshot is None:
            snapshot = self._store.snapshot()
        return self.resolve_relation(entity, relation, snapshot)

    def count(
        self,
        entity: Entity,
        attribute: str,
        snapshot: StoreSnapshot | None = None,
    ) -> int:
        """Return ``len(resolve(entity, attribute))``; 0 when nothing is related."""
        return len(self.resolve(entity, attribute, snapshot))

    def resolve_relation(
        self,
        entity: Entity,
        relation: RelationAttribute,
        snapshot: StoreSnapshot,
    ) -> list[Entity]:
        """Resolve an already looked-up ``relation`` against ``snapshot``."""
        # Re-read the owner so that its refs come from the same snapshot.
        current = snapshot.get(entity.type_name, entity.id)
        if current is None:
            return []
        kind = relation.kind

        if kind is RelationKind.MANY_WAY:
            ids = current.refs.get(relation.name) or ()
            return self._fetch(snapshot, relation.target, ids)  # type: ignore[arg-type]

        if kind in (RelationKind.ONE_WAY, RelationKind.MANY_TO_ONE):
            ref = current.refs.get(relation.name)
            return self._fetch(snapshot, relation.target, () if ref is None else (ref,))  # type: ignore[arg-type]

        if kind is RelationKind.ONE_TO_ONE:
            ref = current.refs.get(relation.name)
            if ref is None:
                return []
            partner = snapshot.get(relation.target, ref)  # type: ignore[arg-type]
            if partner is None:
                return []
            if relation.inverse is not None and partner.refs.get(relation.inverse) != current.id:
                logger.debug(
                    "One-to-one %s#%d.%s disagrees with its partner; treating as absent",
                    current.type_name,
                    current.id,
                    relation.name,
                )
                return []
            return [partner]

        if kind is RelationKind.ONE_TO_MANY:
            if relation.inverse is None:
                return []
            return snapshot.referencing(relation.target, relation.inverse, current.id)

        # many-to-many
        (owner_type, owner_attribute), dominant = join_key(current.type_name, relation)
        ids = snapshot.joined(owner_type, owner_attribute, current.id, from_dominant=dominant)
        return self._fetch(snapshot, relation.target, ids)

    @staticmethod
    def _fetch(snapshot: StoreSnapshot, type_name: str, ids: tuple[int, ...] | list[int]) -> list[Entity]:
        result: list[Entity] = []
        seen: set[int] = set()
        for entity_id in ids:
            if entity_id in seen:
                continue
            seen.add(entity_id)
            related = snapshot.get(type_name, entity_id)
            if related is not None:
                result.append(related)
        return result
