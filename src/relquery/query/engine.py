"""Query engine: filter, sort, annotate and paginate entities of one type.

A query runs in four steps against a single store snapshot:

1. **Filter.**  Each ``where`` entry is a dotted path (optionally with an
   operator suffix) and an expected value.  Paths are followed with the
   ``RelationResolver``; a collection-valued hop matches when *any* related
   entity matches.  Entries are AND-ed.
2. **Expand and sort.**  Each sort key reads the values its path reaches.
   A path through a collection-valued relation yields one row per value
   (one row with a null value when nothing is reachable).  Rows are ordered
   by the keys, nulls first in ascending order, and ties keep their input
   order in the direction of the last key, so reversing a single key's
   direction reverses the result exactly.
3. **Paginate** with ``offset`` and ``limit``.
4. **Annotate** every row's relations with a count or populated values.

Usage
-----
::

    engine = QueryEngine(registry, store)
    rows = engine.query(
        "stamp",
        where={"collector.name": "Isabelle"},
        sort="collector.name:ASC",
    )
    [row.to_dict() for row in rows]
"""
from __future__ import annotations

import datetime
import functools
import itertools
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from relquery.config import EngineConfig, Projection
from relquery.errors import InvalidFilterPathError, InvalidPathError, InvalidSortPathError, QueryError
from relquery.query.operators import Operator, split_operator
from relquery.query.paths import SortDirection, SortKey, SortSpec, parse_sort, split_path
from relquery.resolver.resolver import RelationResolver
from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import (
    Attribute,
    EntityType,
    RelationAttribute,
    ScalarAttribute,
    ScalarType,
)
from relquery.store.base import Entity, Store, StoreSnapshot

logger = logging.getLogger(__name__)

ProjectionSpec = Union[Mapping[str, Union[Projection, str]], None]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueryRow:
    """One result row.

    Parameters
    ----------
    entity:
        The matched entity.  When sorting expands a collection, the same
        entity appears in several rows.
    relations:
        Annotation per projected relation: ``{"count": n}`` for counted
        relations, a dict or ``None`` for populated single relations, a
        list of dicts for populated collections.
    sort_values:
        The values this row was ordered by, one per sort key.
    """

    entity: Entity
    relations: Mapping[str, Any] = field(default_factory=dict)
    sort_values: tuple[Any, ...] = ()

    @property
    def id(self) -> int:
        return self.entity.id

    def count(self, attribute: str) -> int:
        """Return the count annotation of ``attribute``."""
        return int(self.relations[attribute]["count"])

    def to_dict(self) -> dict[str, Any]:
        return {**self.entity.to_dict(), **self.relations}


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _PathPlan:
    hops: tuple[RelationAttribute, ...]
    terminal: Attribute

    @property
    def expands(self) -> bool:
        return any(h.is_collection for h in self.hops)


@dataclass(frozen=True)
class _Condition:
    key: str
    plan: _PathPlan
    operator: Operator
    expected: Any


@dataclass(frozen=True)
class _SortPlan:
    key: SortKey
    plan: _PathPlan


@dataclass(frozen=True)
class _Row:
    entity: Entity
    position: int
    values: tuple[Any, ...]


_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no"})
_ORDERING = frozenset({Operator.LT, Operator.LTE, Operator.GT, Operator.GTE})


def _compare_nullable(a: Any, b: Any) -> int:
    if a is None or b is None:
        return (a is not None) - (b is not None)
    return (a > b) - (a < b)


class QueryEngine:
    """Evaluates list and count queries over one entity type.

    Parameters
    ----------
    registry:
        Schema of the queried entities.
    store:
        Where entities are read from.
    resolver:
        Resolver used to follow relations.  Defaults to one over ``store``.
    config:
        Projection defaults, pagination limits and auto-freeze behaviour.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        store: Store,
        resolver: RelationResolver | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._config = config if config is not None else EngineConfig()
        self._resolver = (
            resolver
            if resolver is not None
            else RelationResolver(registry, store, auto_freeze=self._config.auto_freeze)
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def query(
        self,
        type_name: str,
        where: Mapping[str, Any] | None = None,
        sort: SortSpec = None,
        projection: ProjectionSpec = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[QueryRow]:
        """Return the rows of ``type_name`` matching ``where``, ordered by ``sort``.

        Parameters
        ----------
        type_name:
            Entity type to list.
        where:
            ``path -> value`` filters, AND-ed.
        sort:
            Sort keys; see ``parse_sort`` for accepted forms.
        projection:
            ``relation -> "count" | "populate"``.  When given, only the
            listed relations are annotated; otherwise every relation is,
            using the configured defaults.
        limit, offset:
            Pagination applied after sorting.

        Raises
        ------
        UnknownTypeError
            If ``type_name`` is not registered.
        InvalidFilterPathError, InvalidSortPathError
            If a path or operator cannot be evaluated.
        UnknownAttributeError
            If the projection names an undeclared attribute.
        QueryError
            If ``limit`` or ``offset`` is negative.
        """
        self._registry.ensure_frozen(self._config.auto_freeze)
        entity_type = self._registry.get(type_name)
        conditions = self._plan_filter(entity_type, where or {})
        sort_plans = self._plan_sort(entity_type, parse_sort(sort, entity_type.name))
        annotations = self._plan_projection(entity_type, projection)
        if offset < 0:
            raise QueryError(f"offset must not be negative, got {offset}")
        if limit is not None and limit < 0:
            raise QueryError(f"limit must not be negative, got {limit}")
        limit = self._config.effective_limit(limit)

        snapshot = self._store.snapshot()
        matched = self._filter(snapshot, snapshot.entities(entity_type.name), conditions)
        rows = self._order(snapshot, matched, sort_plans)
        end = None if limit is None else offset + limit
        page = rows[offset:end]

        result = [
            QueryRow(
                entity=row.entity,
                relations=self._annotate(snapshot, row.entity, annotations),
                sort_values=row.values,
            )
            for row in page
        ]
        logger.debug(
            "Query %s where=%s sort=%s -> %d of %d row(s)",
            entity_type.name,
            [c.key for c in conditions],
            [str(p.key) for p in sort_plans],
            len(result),
            len(rows),
        )
        return result

    def count(self, type_name: str, where: Mapping[str, Any] | None = None) -> int:
        """Return how many entities of ``type_name`` match ``where``."""
        self._registry.ensure_frozen(self._config.auto_freeze)
        entity_type = self._registry.get(type_name)
        conditions = self._plan_filter(entity_type, where or {})
        snapshot = self._store.snapshot()
        return len(self._filter(snapshot, snapshot.entities(entity_type.name), conditions))

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan_path(
        self,
        entity_type: EntityType,
        segments: tuple[str, ...],
        raw: str,
        error: type[InvalidPathError],
        allow_relation_terminal: bool,
    ) -> _PathPlan:
        if not segments:
            raise error(entity_type.name, raw, "the path is empty or has an empty segment")
        current = entity_type
        hops: list[RelationAttribute] = []
        for index, segment in enumerate(segments):
            if not current.has_attribute(segment):
                raise error(entity_type.name, raw, f"{current.name!r} has no attribute {segment!r}")
            attr = current.attribute(segment)
            last = index == len(segments) - 1
            if isinstance(attr, ScalarAttribute):
                if not last:
                    raise error(entity_type.name, raw, f"{current.name}.{segment} is a scalar and cannot be followed")
                return _PathPlan(tuple(hops), attr)
            if last:
                if not allow_relation_terminal:
                    raise error(
                        entity_type.name,
                        raw,
                        f"{current.name}.{segment} is a relation, not a comparable scalar",
                    )
                return _PathPlan(tuple(hops), attr)
            hops.append(attr)
            current = self._registry.get(attr.target)
        raise error(entity_type.name, raw, "the path does not reach an attribute")

    def _terminal_type(self, entity_type: EntityType, segments: tuple[str, ...], raw: str) -> EntityType:
        current = entity_type
        for segment in segments:
            if not current.has_attribute(segment):
                raise InvalidFilterPathError(entity_type.name, raw, f"{current.name!r} has no attribute {segment!r}")
            attr = current.attribute(segment)
            if not isinstance(attr, RelationAttribute):
                raise InvalidFilterPathError(
                    entity_type.name, raw, f"{current.name}.{segment} is a scalar and cannot be followed"
                )
            current = self._registry.get(attr.target)
        return current

    def _plan_filter(self, entity_type: EntityType, where: Mapping[str, Any]) -> list[_Condition]:
        conditions: list[_Condition] = []
        for key, expected in where.items():
            segments = split_path(key)
            if not segments:
                raise InvalidFilterPathError(entity_type.name, key, "the path is empty or has an empty segment")
            owner = self._terminal_type(entity_type, segments[:-1], key)
            last = segments[-1]
            operator = Operator.EQ
            if not owner.has_attribute(last):
                split = split_operator(last)
                if split is None or not owner.has_attribute(split[0]):
                    raise InvalidFilterPathError(
                        entity_type.name, key, f"{owner.name!r} has no attribute or operator {last!r}"
                    )
                last, operator = split
            plan = self._plan_path(
                entity_type, segments[:-1] + (last,), key, InvalidFilterPathError, allow_relation_terminal=True
            )
            conditions.append(
                _Condition(key, plan, operator, self._coerce_expected(entity_type, key, plan, operator, expected))
            )
        return conditions

    def _plan_sort(self, entity_type: EntityType, keys: list[SortKey]) -> list[_SortPlan]:
        plans: list[_SortPlan] = []
        for key in keys:
            plan = self._plan_path(
                entity_type, key.path, str(key), InvalidSortPathError, allow_relation_terminal=False
            )
            if plan.terminal.type is ScalarType.JSON:
                raise InvalidSortPathError(
                    entity_type.name, str(key), f"{plan.terminal.name!r} holds json and has no order"
                )
            plans.append(_SortPlan(key, plan))
        return plans

    def _plan_projection(
        self, entity_type: EntityType, projection: ProjectionSpec
    ) -> list[tuple[RelationAttribute, Projection]]:
        if projection is None:
            return [
                (
                    relation,
                    self._config.collection_projection
                    if relation.is_collection
                    else self._config.single_projection,
                )
                for relation in entity_type.relations
            ]
        planned: list[tuple[RelationAttribute, Projection]] = []
        for name, mode in projection.items():
            relation = entity_type.relation(name)
            try:
                planned.append((relation, Projection(mode)))
            except ValueError:
                raise QueryError(
                    f"Projection for {entity_type.name}.{name} must be 'count' or 'populate', got {mode!r}"
                ) from None
        return planned

    def _coerce_expected(
        self,
        entity_type: EntityType,
        key: str,
        plan: _PathPlan,
        operator: Operator,
        expected: Any,
    ) -> Any:
        if operator is Operator.NULL:
            return self._coerce_scalar(entity_type, key, ScalarType.BOOLEAN, expected)
        if operator in _ORDERING and getattr(plan.terminal, "type", None) is ScalarType.JSON:
            raise InvalidFilterPathError(entity_type.name, key, "json values have no order")
        if operator.takes_list:
            items = expected.split(",") if isinstance(expected, str) else expected
            if not isinstance(items, Iterable):
                items = [items]
            return frozenset(self._coerce_one(entity_type, key, plan, item) for item in items)
        return self._coerce_one(entity_type, key, plan, expected)

    def _coerce_one(self, entity_type: EntityType, key: str, plan: _PathPlan, value: Any) -> Any:
        if isinstance(plan.terminal, RelationAttribute):
            scalar_type = ScalarType.INTEGER
        else:
            scalar_type = plan.terminal.type
        coerced = self._coerce_scalar(entity_type, key, scalar_type, value)
        if coerced is None or not scalar_type.accepts(coerced):
            raise InvalidFilterPathError(
                entity_type.name, key, f"{value!r} is not a valid {scalar_type.value}"
            )
        return coerced

    @staticmethod
    def _coerce_scalar(entity_type: EntityType, key: str, scalar_type: ScalarType, value: Any) -> Any:
        """Convert query-string values to the attribute's type; other values pass through."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        try:
            if scalar_type in (ScalarType.INTEGER, ScalarType.BIGINTEGER):
                return int(text)
            if scalar_type in (ScalarType.FLOAT, ScalarType.DECIMAL):
                return float(text)
            if scalar_type is ScalarType.DATETIME:
                return datetime.datetime.fromisoformat(text)
            if scalar_type is ScalarType.DATE:
                return datetime.date.fromisoformat(text)
        except ValueError:
            raise InvalidFilterPathError(
                entity_type.name, key, f"{value!r} is not a valid {scalar_type.value}"
            ) from None
        if scalar_type is ScalarType.BOOLEAN:
            if text.lower() in _TRUE_STRINGS:
                return True
            if text.lower() in _FALSE_STRINGS:
                return False
            raise InvalidFilterPathError(entity_type.name, key, f"{value!r} is not a valid boolean")
        return value

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _reach(self, snapshot: StoreSnapshot, entity: Entity, plan: _PathPlan) -> list[Any]:
        """Return every terminal value reachable from ``entity`` along ``plan``."""
        frontier = [entity]
        for hop in plan.hops:
            frontier = [
                related
                for current in frontier
                for related in self._resolver.resolve_relation(current, hop, snapshot)
            ]
        terminal = plan.terminal
        if isinstance(terminal, RelationAttribute):
            return [
                related.id
                for current in frontier
                for related in self._resolver.resolve_relation(current, terminal, snapshot)
            ]
        return [current.values.get(terminal.name) for current in frontier]

    def _filter(
        self,
        snapshot: StoreSnapshot,
        entities: list[Entity],
        conditions: list[_Condition],
    ) -> list[Entity]:
        if not conditions:
            return entities
        return [
            entity
            for entity in entities
            if all(
                c.operator.evaluate(self._reach(snapshot, entity, c.plan), c.expected)
                for c in conditions
            )
        ]

    def _order(
        self,
        snapshot: StoreSnapshot,
        entities: list[Entity],
        sort_plans: list[_SortPlan],
    ) -> list[_Row]:
        if not sort_plans:
            return [_Row(entity, position, ()) for position, entity in enumerate(entities)]

        rows: list[_Row] = []
        for entity in entities:
            per_key = [self._reach(snapshot, entity, p.plan) or [None] for p in sort_plans]
            for combination in itertools.product(*per_key):
                rows.append(_Row(entity, len(rows), tuple(combination)))

        directions = [p.key.direction for p in sort_plans]
        tie_direction = directions[-1]

        def compare(a: _Row, b: _Row) -> int:
            for direction, va, vb in zip(directions, a.values, b.values):
                result = _compare_nullable(va, vb)
                if result:
                    return -result if direction is SortDirection.DESC else result
            result = (a.position > b.position) - (a.position < b.position)
            return -result if tie_direction is SortDirection.DESC else result

        return sorted(rows, key=functools.cmp_to_key(compare))

    def _annotate(
        self,
        snapshot: StoreSnapshot,
        entity: Entity,
        annotations: list[tuple[RelationAttribute, Projection]],
    ) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for relation, mode in annotations:
            related = self._resolver.resolve_relation(entity, relation, snapshot)
            if mode is Projection.COUNT:
                out[relation.name] = {"count": len(related)}
            elif relation.is_collection:
                out[relation.name] = [r.to_dict() for r in related]
            else:
                out[relation.name] = related[0].to_dict() if related else None
        return out
