"""Store module.

Exports the store abstractions, the in-memory backend, the inverse-link
maintenance functions, and the backend registry.
"""
from __future__ import annotations

from relquery.store.base import Entity, Store, StoreSnapshot
from relquery.store.links import apply_relation, normalize_relation_value, unlink_entity
from relquery.store.memory import MemorySnapshot, MemoryState, MemoryStore
from relquery.store.registry import ENTRY_POINT_GROUP, StoreRegistry, store_registry

__all__ = [
    "Entity",
    "Store",
    "StoreSnapshot",
    "MemoryStore",
    "MemoryState",
    "MemorySnapshot",
    "apply_relation",
    "normalize_relation_value",
    "unlink_entity",
    "StoreRegistry",
    "store_registry",
    "ENTRY_POINT_GROUP",
]
