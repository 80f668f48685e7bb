"""Engine facade: one object for schema, storage, resolution and queries.

``Engine`` wires a ``SchemaRegistry``, a store backend, a
``RelationResolver`` and a ``QueryEngine`` together according to an
``EngineConfig``.  It is the surface a request-handling layer talks to.

Example
-------
::

    from relquery import Engine

    engine = Engine.from_yaml(SCHEMA_YAML)
    s1946 = engine.create("stamp", {"name": "1946"})
    bernard = engine.create("collector", {"name": "Bernard", "stamps": [s1946.id]})

    engine.count(bernard, "stamps")                    # 1
    engine.query("collector", where={"stamps.name": "1946"})
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from relquery.config import EngineConfig
from relquery.query.engine import ProjectionSpec, QueryEngine, QueryRow
from relquery.query.paths import SortSpec
from relquery.resolver.resolver import RelationResolver
from relquery.schema.diagnostics import Diagnostic
from relquery.schema.loader import load_types_file, load_types_yaml
from relquery.schema.registry import SchemaRegistry
from relquery.schema.types import EntityType
from relquery.store.base import Entity, Store, StoreSnapshot
from relquery.store.registry import store_registry

logger = logging.getLogger(__name__)


class Engine:
    """Relation-query engine over one schema and one store.

    Parameters
    ----------
    registry:
        Schema registry.  A new empty one is created when omitted.
    config:
        Engine configuration.  Defaults to ``EngineConfig()``.
    store:
        Store instance.  When omitted, the backend named by
        ``config.store`` is created from ``store_registry``.
    """

    def __init__(
        self,
        registry: SchemaRegistry | None = None,
        config: EngineConfig | None = None,
        store: Store | None = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        self.registry = (
            registry if registry is not None else SchemaRegistry(strict=self.config.strict_schema)
        )
        self.store = store if store is not None else store_registry.create(
            self.config.store, self.registry, auto_freeze=self.config.auto_freeze
        )
        self.resolver = RelationResolver(self.registry, self.store, auto_freeze=self.config.auto_freeze)
        self.queries = QueryEngine(self.registry, self.store, self.resolver, self.config)
        logger.debug("Engine ready with %s store", type(self.store).__name__)

    @classmethod
    def from_types(cls, types: Iterable[EntityType], config: EngineConfig | None = None) -> Engine:
        """Create an engine with ``types`` registered (not yet frozen)."""
        engine = cls(config=config)
        engine.registry.register_many(types)
        return engine

    @classmethod
    def from_yaml(cls, schema: str, config: EngineConfig | None = None) -> Engine:
        """Create an engine from a YAML schema document."""
        return cls.from_types(load_types_yaml(schema), config)

    @classmethod
    def from_file(cls, path: str | Path, config: EngineConfig | None = None) -> Engine:
        """Create an engine from a YAML schema file."""
        return cls.from_types(load_types_file(path), config)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def register_type(self, entity_type: EntityType) -> EntityType:
        return self.registry.register(entity_type)

    def get_type(self, name: str) -> EntityType:
        return self.registry.get(name)

    def freeze(self) -> list[Diagnostic]:
        return self.registry.freeze()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, type_name: str, data: Mapping[str, Any]) -> Entity:
        self.registry.ensure_frozen(self.config.auto_freeze)
        return self.store.create(type_name, data)

    def update(self, type_name: str, entity_id: int, data: Mapping[str, Any]) -> Entity:
        self.registry.ensure_frozen(self.config.auto_freeze)
        return self.store.update(type_name, entity_id, data)

    def delete(self, type_name: str, entity_id: int) -> Entity:
        self.registry.ensure_frozen(self.config.auto_freeze)
        return self.store.delete(type_name, entity_id)

    def load_fixtures(self, data: Mapping[str, Iterable[Mapping[str, Any]]]) -> dict[str, list[Entity]]:
        """Create entities from ``{type: [record, ...]}`` in mapping order."""
        created: dict[str, list[Entity]] = {}
        for type_name, records in data.items():
            created[type_name] = [self.create(type_name, record) for record in records]
        return created

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot()

    def get(self, type_name: str, entity_id: int) -> Entity | None:
        self.registry.ensure_frozen(self.config.auto_freeze)
        return self.store.snapshot().get(self.registry.get(type_name).name, entity_id)

    def all(self, type_name: str) -> list[Entity]:
        self.registry.ensure_frozen(self.config.auto_freeze)
        return self.store.snapshot().entities(self.registry.get(type_name).name)

    def resolve(self, entity: Entity, attribute: str) -> list[Entity]:
        return self.resolver.resolve(entity, attribute)

    def count(self, entity: Entity, attribute: str) -> int:
        return self.resolver.count(entity, attribute)

    def query(
        self,
        type_name: str,
        where: Mapping[str, Any] | None = None,
        sort: SortSpec = None,
        projection: ProjectionSpec = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[QueryRow]:
        return self.queries.query(
            type_name, where=where, sort=sort, projection=projection, limit=limit, offset=offset
        )

    def count_where(self, type_name: str, where: Mapping[str, Any] | None = None) -> int:
        return self.queries.count(type_name, where)
