"""Entity type definitions.

An ``EntityType`` is a named, ordered collection of attributes.  Each
attribute is either a ``ScalarAttribute`` holding a typed value or a
``RelationAttribute`` pointing at another entity type by name.  All
definitions are frozen dataclasses; the registry derives new instances
(e.g. when it synthesises inverse attributes) instead of mutating them.

Relation kinds use the content-type "nature" strings so that schema
documents can be written the way content-type definitions are::

    stamps_m2m:
      nature: manyToMany
      target: stamp
      targetAttribute: collectors
      dominant: true
"""
from __future__ import annotations

import dataclasses
import datetime
import decimal
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from relquery.errors import NotARelationError, UnknownAttributeError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ScalarType(Enum):
    """Value types a scalar attribute may hold."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BIGINTEGER = "biginteger"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"

    def accepts(self, value: Any) -> bool:
        """Return True if ``value`` may be stored in an attribute of this type.

        ``None`` is always accepted; ``required`` is checked separately.
        Booleans are rejected for the numeric types.
        """
        if value is None:
            return True
        if self in (ScalarType.STRING, ScalarType.TEXT):
            return isinstance(value, str)
        if self is ScalarType.BOOLEAN:
            return isinstance(value, bool)
        if isinstance(value, bool):
            return self is ScalarType.JSON
        if self in (ScalarType.INTEGER, ScalarType.BIGINTEGER):
            return isinstance(value, int)
        if self in (ScalarType.FLOAT, ScalarType.DECIMAL):
            return isinstance(value, (int, float, decimal.Decimal))
        if self is ScalarType.DATETIME:
            return isinstance(value, datetime.datetime)
        if self is ScalarType.DATE:
            return isinstance(value, datetime.date) and not isinstance(value, datetime.datetime)
        return True


class RelationKind(Enum):
    """How a relation attribute connects its owner to the target type."""

    ONE_WAY = "oneWay"
    MANY_WAY = "manyWay"
    ONE_TO_ONE = "oneToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_ONE = "manyToOne"
    MANY_TO_MANY = "manyToMany"

    @property
    def is_collection(self) -> bool:
        """Return True if the relation resolves to zero or more entities."""
        return self in (RelationKind.MANY_WAY, RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_MANY)

    @property
    def is_two_sided(self) -> bool:
        """Return True if the kind requires an inverse attribute on the target."""
        return self.inverse is not None

    @property
    def inverse(self) -> RelationKind | None:
        """Return the kind the target's inverse attribute must have."""
        return _INVERSE_KINDS.get(self)


_INVERSE_KINDS: dict[RelationKind, RelationKind] = {
    RelationKind.ONE_TO_ONE: RelationKind.ONE_TO_ONE,
    RelationKind.ONE_TO_MANY: RelationKind.MANY_TO_ONE,
    RelationKind.MANY_TO_ONE: RelationKind.ONE_TO_MANY,
    RelationKind.MANY_TO_MANY: RelationKind.MANY_TO_MANY,
}


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScalarAttribute:
    """A typed value stored directly on the entity.

    Parameters
    ----------
    name:
        Attribute name, unique within its type.
    type:
        The value type.
    required:
        When ``True``, creating an entity without a value fails.
    unique:
        When ``True``, two entities of the type may not share a non-null value.
    """

    name: str
    type: ScalarType = ScalarType.STRING
    required: bool = False
    unique: bool = False

    is_relation = False


@dataclass(frozen=True)
class RelationAttribute:
    """A reference from the owning type to ``target``.

    Parameters
    ----------
    name:
        Attribute name, unique within its type.
    kind:
        Cardinality and directionality of the relation.
    target:
        Name of the target entity type.  Resolved when the registry freezes,
        so the target may be registered after this type.
    inverse:
        Name of the attribute on the target that points back, for two-sided
        kinds.
    dominant:
        For many-to-many relations, whether this side owns the join records.
    unique:
        Carried from content-type definitions; not enforced.
    """

    name: str
    kind: RelationKind
    target: str
    inverse: str | None = None
    dominant: bool = False
    unique: bool = False

    is_relation = True

    @property
    def is_collection(self) -> bool:
        return self.kind.is_collection


Attribute = Union[ScalarAttribute, RelationAttribute]


# ---------------------------------------------------------------------------
# Entity type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityType:
    """A named content type with ordered attributes.

    Parameters
    ----------
    name:
        Unique type name, e.g. ``"collector"``.
    attributes:
        Attributes in declaration order.
    collection_name:
        Optional storage collection name, kept for export.
    info:
        Free-form display metadata (``{"name": "Localization"}``).
    """

    name: str
    attributes: tuple[Attribute, ...] = ()
    collection_name: str | None = None
    info: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def has_attribute(self, name: str) -> bool:
        """Return True if ``name`` is declared on this type."""
        return any(a.name == name for a in self.attributes)

    def attribute(self, name: str) -> Attribute:
        """Return the attribute called ``name``.

        Raises
        ------
        UnknownAttributeError
            If no attribute of that name is declared.
        """
        for attr in self.attributes:
            if attr.name == name:
                return attr
        raise UnknownAttributeError(self.name, name)

    def relation(self, name: str) -> RelationAttribute:
        """Return the relation attribute called ``name``.

        Raises
        ------
        UnknownAttributeError
            If no attribute of that name is declared.
        NotARelationError
            If the attribute is a scalar.
        """
        attr = self.attribute(name)
        if not isinstance(attr, RelationAttribute):
            raise NotARelationError(self.name, name)
        return attr

    @property
    def scalars(self) -> tuple[ScalarAttribute, ...]:
        return tuple(a for a in self.attributes if isinstance(a, ScalarAttribute))

    @property
    def relations(self) -> tuple[RelationAttribute, ...]:
        return tuple(a for a in self.attributes if isinstance(a, RelationAttribute))

    def with_attribute(self, attribute: Attribute) -> EntityType:
        """Return a copy with ``attribute`` appended, or replaced if the name exists."""
        kept = tuple(a for a in self.attributes if a.name != attribute.name)
        if len(kept) == len(self.attributes):
            return dataclasses.replace(self, attributes=self.attributes + (attribute,))
        return dataclasses.replace(
            self,
            attributes=tuple(attribute if a.name == attribute.name else a for a in self.attributes),
        )
