"""relquery: relation-query engine for content types.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import relquery

    engine = relquery.Engine.from_yaml('''
    types:
      - name: stamp
        attributes:
          name: {type: string}
      - name: collector
        attributes:
          name: {type: string}
          stamps_one_many:
            nature: oneToMany
            target: stamp
            targetAttribute: collector
    ''')

    s1 = engine.create("stamp", {"name": "1946"})
    emma = engine.create("collector", {"name": "Emma", "stamps_one_many": [s1.id]})

    engine.count(emma, "stamps_one_many")              # 1
    rows = engine.query("stamp", sort="collector.name:ASC")
    rows[0].to_dict()["collector"]["name"]             # 'Emma'

    relquery.__version__
    '0.1.0'
"""
from __future__ import annotations

__version__: str = "0.1.0"

from relquery.config import EngineConfig, Projection
from relquery.engine import Engine
from relquery.errors import (
    ConfigError,
    DuplicateTypeError,
    EntityNotFoundError,
    InvalidFilterPathError,
    InvalidPathError,
    InvalidSortPathError,
    InvalidValueError,
    NotARelationError,
    QueryError,
    RelqueryError,
    SchemaFrozenError,
    SchemaLoadError,
    SchemaNotReadyError,
    SchemaValidationError,
    UnknownAttributeError,
    UnknownTypeError,
)
from relquery.query import Operator, QueryEngine, QueryRow, SortDirection, SortKey
from relquery.resolver import RelationResolver
from relquery.schema import (
    EntityType,
    RelationAttribute,
    RelationKind,
    ScalarAttribute,
    ScalarType,
    SchemaRegistry,
    load_types,
    load_types_yaml,
)
from relquery.store import Entity, MemoryStore, Store, StoreSnapshot, store_registry

__all__ = [
    "__version__",
    # Facade and configuration
    "Engine",
    "EngineConfig",
    "Projection",
    # Schema
    "EntityType",
    "RelationAttribute",
    "RelationKind",
    "ScalarAttribute",
    "ScalarType",
    "SchemaRegistry",
    "load_types",
    "load_types_yaml",
    # Storage
    "Entity",
    "Store",
    "StoreSnapshot",
    "MemoryStore",
    "store_registry",
    # Resolution and queries
    "RelationResolver",
    "QueryEngine",
    "QueryRow",
    "SortKey",
    "SortDirection",
    "Operator",
    # Errors
    "RelqueryError",
    "DuplicateTypeError",
    "UnknownTypeError",
    "UnknownAttributeError",
    "NotARelationError",
    "InvalidPathError",
    "InvalidFilterPathError",
    "InvalidSortPathError",
    "SchemaFrozenError",
    "SchemaNotReadyError",
    "SchemaValidationError",
    "SchemaLoadError",
    "EntityNotFoundError",
    "InvalidValueError",
    "QueryError",
    "ConfigError",
]
