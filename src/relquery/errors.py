"""Exception hierarchy for relquery.

Every error raised by the library derives from ``RelqueryError`` so that
callers can catch the whole family at a request boundary.  The concrete
classes also subclass the closest built-in exception (``KeyError`` for
lookups, ``ValueError`` for malformed input) so that generic handlers keep
working.

Errors carry the offending names as attributes; the message is built from
them and is meant for humans.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relquery.schema.diagnostics import Diagnostic


class RelqueryError(Exception):
    """Base class for all relquery errors."""


# ---------------------------------------------------------------------------
# Schema errors
# ---------------------------------------------------------------------------


class DuplicateTypeError(RelqueryError, ValueError):
    """Raised when registering a type name that already exists."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(
            f"Entity type {type_name!r} is already registered. "
            "Use a unique name or reload the registry first."
        )


class UnknownTypeError(RelqueryError, KeyError):
    """Raised when looking up a type name that is not registered."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Entity type {type_name!r} is not registered.")

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownAttributeError(RelqueryError, KeyError):
    """Raised when an attribute name is not declared on a type."""

    def __init__(self, type_name: str, attribute: str, reason: str = "") -> None:
        self.type_name = type_name
        self.attribute = attribute
        message = f"Attribute {attribute!r} is not declared on entity type {type_name!r}."
        if reason:
            message = f"Attribute {attribute!r} on entity type {type_name!r} {reason}."
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0])


class NotARelationError(UnknownAttributeError):
    """Raised when a relation operation is asked of a scalar attribute."""

    def __init__(self, type_name: str, attribute: str) -> None:
        super().__init__(type_name, attribute, reason="is a scalar, not a relation")


class SchemaFrozenError(RelqueryError):
    """Raised when mutating a registry that has already been frozen."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(
            f"Schema registry version {version} is frozen; "
            "call reload() before registering more types."
        )


class SchemaNotReadyError(RelqueryError):
    """Raised when querying an unfrozen registry with auto-freeze disabled."""

    def __init__(self) -> None:
        super().__init__(
            "Schema registry has not been frozen yet; call freeze() before querying."
        )


class SchemaValidationError(RelqueryError):
    """Raised by ``freeze()`` when the schema has ERROR-level diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        errors = [d for d in diagnostics if d.is_error]
        lines = [f"Schema validation failed with {len(errors)} error(s):"]
        lines.extend(f"  {d}" for d in errors)
        super().__init__("\n".join(lines))


class SchemaLoadError(RelqueryError, ValueError):
    """Raised when a schema document cannot be turned into entity types."""

    def __init__(self, message: str, type_name: str | None = None, attribute: str | None = None) -> None:
        self.type_name = type_name
        self.attribute = attribute
        where = ""
        if type_name is not None:
            where = f" (type {type_name!r}"
            where += f", attribute {attribute!r})" if attribute is not None else ")"
        super().__init__(f"{message}{where}")


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------


class EntityNotFoundError(RelqueryError, KeyError):
    """Raised when an entity id does not exist in the store."""

    def __init__(self, type_name: str, entity_id: int) -> None:
        self.type_name = type_name
        self.entity_id = entity_id
        super().__init__(f"No {type_name!r} entity with id {entity_id}.")

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidValueError(RelqueryError, ValueError):
    """Raised when a written value does not fit its attribute."""

    def __init__(self, type_name: str, attribute: str, message: str) -> None:
        self.type_name = type_name
        self.attribute = attribute
        super().__init__(f"Invalid value for {type_name}.{attribute}: {message}")


class StoreNotFoundError(RelqueryError, KeyError):
    """Raised when a store backend name is not in the store registry."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.store_name = name
        self.available = available
        super().__init__(
            f"Store backend {name!r} is not registered. "
            f"Available backends: {', '.join(available) or '(none)'}. "
            "Check that the package is installed and its entry-points are declared."
        )

    def __str__(self) -> str:
        return str(self.args[0])


class StoreAlreadyRegisteredError(RelqueryError, ValueError):
    """Raised when registering a store backend name twice."""

    def __init__(self, name: str) -> None:
        self.store_name = name
        super().__init__(
            f"Store backend {name!r} is already registered. "
            "Use a unique name or explicitly deregister the existing entry first."
        )


# ---------------------------------------------------------------------------
# Query errors
# ---------------------------------------------------------------------------


class QueryError(RelqueryError, ValueError):
    """Raised for structurally invalid query requests."""


class InvalidPathError(QueryError):
    """Base class for filter and sort path errors."""

    def __init__(self, type_name: str, path: str, reason: str) -> None:
        self.type_name = type_name
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid {self.kind} path {path!r} on {type_name!r}: {reason}")

    kind = "query"


class InvalidFilterPathError(InvalidPathError):
    """Raised when a filter path or operator cannot be evaluated."""

    kind = "filter"


class InvalidSortPathError(InvalidPathError):
    """Raised when a sort path does not reach a single comparable scalar."""

    kind = "sort"


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigError(RelqueryError, ValueError):
    """Raised when an engine configuration is malformed."""
