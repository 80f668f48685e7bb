"""Schema registry for relquery.

The registry holds entity type definitions in two stages.  While it is
*open*, types are registered as declared and relation targets are plain
names that may refer to types registered later.  ``freeze()`` resolves the
schema: target uids are normalised, inverse attributes the declaring side
implies are added to their targets, and the validation rules run.  Once
frozen, the registry only serves lookups; ``reload()`` opens it again under
a new version number.

Example
-------
::

    from relquery.schema import EntityType, RelationAttribute, RelationKind, SchemaRegistry

    registry = SchemaRegistry()
    registry.register(EntityType("collector", (
        RelationAttribute("stamps_one_many", RelationKind.ONE_TO_MANY, "stamp", inverse="collector"),
    )))
    registry.register(EntityType("stamp"))
    registry.freeze()

    registry.get("stamp").relation("collector").kind  # RelationKind.MANY_TO_ONE
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable, Iterator
from typing import Any

from relquery.errors import (
    DuplicateTypeError,
    SchemaFrozenError,
    SchemaNotReadyError,
    SchemaValidationError,
    UnknownTypeError,
)
from relquery.schema.diagnostics import Diagnostic
from relquery.schema.types import EntityType, RelationAttribute, RelationKind
from relquery.schema.validator import SchemaValidator

logger = logging.getLogger(__name__)


def normalize_uid(name: str) -> str:
    """Reduce a content-type uid such as ``application::stamp.stamp`` to ``stamp``.

    Plain names are returned unchanged.
    """
    if "::" not in name:
        return name
    _, _, rest = name.partition("::")
    return rest.rsplit(".", 1)[-1]


def _normalize_targets(entity_type: EntityType) -> EntityType:
    attributes = tuple(
        dataclasses.replace(a, target=normalize_uid(a.target))
        if isinstance(a, RelationAttribute)
        else a
        for a in entity_type.attributes
    )
    return dataclasses.replace(entity_type, attributes=attributes)


def link_inverses(types: dict[str, EntityType]) -> dict[str, EntityType]:
    """Return ``types`` with every implied inverse attribute added to its target.

    A two-sided relation that names an inverse the target does not declare
    gets one synthesised with the mirrored kind.  Many-to-many inverses take
    the opposite dominant flag.  Unknown targets are left for the
    validation rules to report.
    """
    linked = dict(types)
    for owner_name in list(linked):
        for relation in linked[owner_name].relations:
            inverse_kind = relation.kind.inverse
            if inverse_kind is None or relation.inverse is None:
                continue
            target = linked.get(relation.target)
            if target is None or target.has_attribute(relation.inverse):
                continue
            synthesized = RelationAttribute(
                name=relation.inverse,
                kind=inverse_kind,
                target=owner_name,
                inverse=relation.name,
                dominant=(
                    not relation.dominant if relation.kind is RelationKind.MANY_TO_MANY else False
                ),
            )
            linked[relation.target] = target.with_attribute(synthesized)
            logger.debug(
                "Synthesised inverse %s.%s (%s) for %s.%s",
                relation.target,
                synthesized.name,
                inverse_kind.value,
                owner_name,
                relation.name,
            )
    return linked


class SchemaRegistry:
    """Versioned registry of entity types.

    Parameters
    ----------
    validator:
        Validator run on ``freeze()``.  Defaults to a ``SchemaValidator``
        with all built-in rules.
    strict:
        Passed to the default validator; ignored when ``validator`` is given.
    """

    def __init__(self, validator: SchemaValidator | None = None, strict: bool = False) -> None:
        self._validator = validator if validator is not None else SchemaValidator(strict=strict)
        self._declared: dict[str, EntityType] = {}
        self._resolved: dict[str, EntityType] | None = None
        self._diagnostics: list[Diagnostic] = []
        self._version = 1
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, entity_type: EntityType) -> EntityType:
        """Add ``entity_type`` to the registry and return it.

        Raises
        ------
        DuplicateTypeError
            If a type with the same name is already registered.
        SchemaFrozenError
            If the registry has been frozen.
        """
        with self._lock:
            if self._resolved is not None:
                raise SchemaFrozenError(self._version)
            name = normalize_uid(entity_type.name)
            if name in self._declared:
                raise DuplicateTypeError(name)
            if name != entity_type.name:
                entity_type = dataclasses.replace(entity_type, name=name)
            self._declared[name] = entity_type
        logger.debug(
            "Registered entity type %r with %d attribute(s) (schema v%d)",
            name,
            len(entity_type.attributes),
            self._version,
        )
        return entity_type

    def register_many(self, types: Iterable[EntityType]) -> None:
        """Register every type in ``types`` in order."""
        for entity_type in types:
            self.register(entity_type)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> EntityType:
        """Return the type registered under ``name``.

        Once frozen, the resolved definition (with synthesised inverses) is
        returned.

        Raises
        ------
        UnknownTypeError
            If no type is registered under ``name``.
        """
        source = self._resolved if self._resolved is not None else self._declared
        try:
            return source[normalize_uid(name)]
        except KeyError:
            raise UnknownTypeError(name) from None

    def has(self, name: str) -> bool:
        return normalize_uid(name) in self._declared

    def names(self) -> list[str]:
        """Return registered type names in registration order."""
        return list(self._declared)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __len__(self) -> int:
        return len(self._declared)

    def __iter__(self) -> Iterator[EntityType]:
        source = self._resolved if self._resolved is not None else self._declared
        return iter(list(source.values()))

    def __repr__(self) -> str:
        state = "frozen" if self.is_frozen else "open"
        return f"SchemaRegistry(version={self._version}, {state}, types={self.names()})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    @property
    def is_frozen(self) -> bool:
        return self._resolved is not None

    @property
    def diagnostics(self) -> list[Diagnostic]:
        """Diagnostics from the last ``freeze()`` attempt."""
        return list(self._diagnostics)

    def freeze(self) -> list[Diagnostic]:
        """Resolve targets and inverses, validate, and stop accepting registrations.

        Calling ``freeze()`` on a frozen registry is a no-op.

        Returns
        -------
        list[Diagnostic]
            Non-error diagnostics (warnings, hints) found while validating.

        Raises
        ------
        SchemaValidationError
            If any ERROR-level diagnostic was found.  The registry stays open.
        """
        with self._lock:
            if self._resolved is not None:
                return [d for d in self._diagnostics if not d.is_error]
            normalized = {name: _normalize_targets(t) for name, t in self._declared.items()}
            resolved = link_inverses(normalized)
            diagnostics = self._validator.validate(resolved)
            self._diagnostics = diagnostics
            if any(d.is_error for d in diagnostics):
                raise SchemaValidationError(diagnostics)
            self._resolved = resolved
        for d in diagnostics:
            logger.warning("Schema v%d: %s", self._version, d)
        logger.debug("Froze schema v%d with %d type(s)", self._version, len(resolved))
        return diagnostics

    def ensure_frozen(self, auto_freeze: bool = True) -> None:
        """Freeze the registry if needed before a read.

        Raises
        ------
        SchemaNotReadyError
            If the registry is open and ``auto_freeze`` is ``False``.
        """
        if self._resolved is not None:
            return
        if not auto_freeze:
            raise SchemaNotReadyError()
        self.freeze()

    def reload(self, types: Iterable[EntityType] | None = None) -> int:
        """Open the registry again under a new version.

        Parameters
        ----------
        types:
            When given, replaces every registered type.  Otherwise the
            declared types are kept and more may be registered.

        Returns
        -------
        int
            The new schema version.
        """
        with self._lock:
            self._resolved = None
            self._diagnostics = []
            self._version += 1
            if types is not None:
                self._declared = {}
        if types is not None:
            self.register_many(types)
        logger.debug("Reloaded schema registry as v%d", self._version)
        return self._version

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Export the current types in the schema document format."""
        from relquery.schema.loader import dump_types

        return dump_types(list(self))
