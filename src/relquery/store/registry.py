"""Store backend registry for relquery.

Backends register under a name with a decorator, or are discovered from
installed packages that declare entry-points in the "relquery.stores"
group.

Example
-------
Register a backend with the decorator::

    from relquery.store.base import Store
    from relquery.store.registry import store_registry

    @store_registry.register("sqlite")
    class SqliteStore(Store):
        ...

Declare it from another package's ``pyproject.toml``::

    [project.entry-points."relquery.stores"]
    sqlite = "my_package.stores:SqliteStore"

Create an instance by name::

    store = store_registry.create("sqlite", schema_registry)
"""
from __future__ import annotations

import importlib.metadata
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from relquery.errors import StoreAlreadyRegisteredError, StoreNotFoundError

if TYPE_CHECKING:
    from relquery.schema.registry import SchemaRegistry
    from relquery.store.base import Store

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "relquery.stores"


class StoreRegistry:
    """Name-to-class registry of ``Store`` backends.

    Parameters
    ----------
    group:
        Entry-point group searched by ``load_entrypoints`` and, lazily, by
        ``get`` when a name is missing.
    """

    def __init__(self, group: str = ENTRY_POINT_GROUP) -> None:
        self._group = group
        self._stores: dict[str, type[Store]] = {}
        self._entrypoints_loaded = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str) -> Callable[[type[Store]], type[Store]]:
        """Return a class decorator that registers the decorated backend.

        Raises
        ------
        StoreAlreadyRegisteredError
            If ``name`` is already in use.
        TypeError
            If the decorated class does not subclass ``Store``.
        """

        def decorator(cls: type[Store]) -> type[Store]:
            self.register_class(name, cls)
            return cls

        return decorator

    def register_class(self, name: str, cls: type[Store]) -> None:
        """Register a backend class directly, without the decorator syntax."""
        from relquery.store.base import Store

        if name in self._stores:
            raise StoreAlreadyRegisteredError(name)
        if not (isinstance(cls, type) and issubclass(cls, Store)):
            raise TypeError(
                f"Cannot register {cls!r} under {name!r}: it must be a subclass of Store."
            )
        self._stores[name] = cls
        logger.debug("Registered store backend %r -> %s", name, cls.__qualname__)

    def deregister(self, name: str) -> None:
        """Remove a backend from the registry.

        Raises
        ------
        StoreNotFoundError
            If ``name`` is not currently registered.
        """
        if name not in self._stores:
            raise StoreNotFoundError(name, self.list_stores())
        del self._stores[name]
        logger.debug("Deregistered store backend %r", name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> type[Store]:
        """Return the backend class registered under ``name``.

        Installed entry-points are loaded once if ``name`` is not yet known.

        Raises
        ------
        StoreNotFoundError
            If no backend is registered under ``name``.
        """
        if name not in self._stores and not self._entrypoints_loaded:
            self.load_entrypoints()
        try:
            return self._stores[name]
        except KeyError:
            raise StoreNotFoundError(name, self.list_stores()) from None

    def create(self, name: str, registry: SchemaRegistry, auto_freeze: bool = True) -> Store:
        """Instantiate the backend registered under ``name`` for ``registry``."""
        return self.get(name)(registry, auto_freeze=auto_freeze)

    def list_stores(self) -> list[str]:
        """Return registered backend names in alphabetical order."""
        return sorted(self._stores)

    def __contains__(self, name: object) -> bool:
        return name in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    def __repr__(self) -> str:
        return f"StoreRegistry(group={self._group!r}, stores={self.list_stores()})"

    # ------------------------------------------------------------------
    # Entry-point loading
    # ------------------------------------------------------------------

    def load_entrypoints(self) -> None:
        """Discover and register backends declared as package entry-points.

        Backends that are already registered are skipped, so repeated calls
        are idempotent.  A backend that fails to import is logged and
        skipped.
        """
        self._entrypoints_loaded = True
        for ep in importlib.metadata.entry_points(group=self._group):
            if ep.name in self._stores:
                logger.debug("Store backend %r already registered; skipping.", ep.name)
                continue
            try:
                cls = ep.load()
            except Exception:
                logger.exception(
                    "Failed to load entry-point %r from group %r; skipping.", ep.name, self._group
                )
                continue
            try:
                self.register_class(ep.name, cls)
            except (StoreAlreadyRegisteredError, TypeError):
                logger.warning(
                    "Entry-point %r loaded but could not be registered as a store; skipping.",
                    ep.name,
                )


store_registry = StoreRegistry()
