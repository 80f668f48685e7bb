"""Structural validation rules for a set of entity types.

Each rule is a callable that accepts the mapping of type name to
``EntityType`` (after inverse attributes have been synthesised) and returns
a list of ``Diagnostic`` objects.  Rules are composed into the
``SchemaValidator`` which runs them all and aggregates results.

Rule codes use the ``RQ`` prefix followed by a three-digit number:

    RQ001  Relation target type is not registered
    RQ002  Declared inverse attribute is missing or is a scalar
    RQ003  Inverse attribute kind does not mirror the relation kind
    RQ004  Inverse attribute points back somewhere else
    RQ005  Many-to-many pair without exactly one dominant side
    RQ006  One-sided relation declares an inverse
    RQ007  Two-sided relation lacks an inverse name
    RQ008  Attribute name is not a plain identifier
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Callable

from relquery.schema.diagnostics import Diagnostic, DiagnosticSeverity, SchemaLocation
from relquery.schema.types import EntityType, RelationAttribute, RelationKind

Rule = Callable[[Mapping[str, EntityType]], list[Diagnostic]]


def _make(
    code: str,
    severity: DiagnosticSeverity,
    message: str,
    location: SchemaLocation,
    suggestion: str | None = None,
    rule: str = "",
) -> Diagnostic:
    return Diagnostic(
        severity=severity,
        code=code,
        message=message,
        location=location,
        suggestion=suggestion,
        rule=rule,
    )


def _relations(types: Mapping[str, EntityType]) -> Iterator[tuple[EntityType, RelationAttribute]]:
    for entity_type in types.values():
        for relation in entity_type.relations:
            yield entity_type, relation


def _inverse_of(
    types: Mapping[str, EntityType], relation: RelationAttribute
) -> RelationAttribute | None:
    """Return the target's inverse relation attribute, if it exists and is a relation."""
    target = types.get(relation.target)
    if target is None or relation.inverse is None or not target.has_attribute(relation.inverse):
        return None
    attr = target.attribute(relation.inverse)
    return attr if isinstance(attr, RelationAttribute) else None


# ---------------------------------------------------------------------------
# RQ001: unknown target
# ---------------------------------------------------------------------------


def rule_unknown_target(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ001: Every relation must target a registered type."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        if relation.target not in types:
            diagnostics.append(_make(
                "RQ001",
                DiagnosticSeverity.ERROR,
                f"Relation targets unregistered type {relation.target!r}",
                SchemaLocation(owner.name, relation.name),
                suggestion=f"Register a type named {relation.target!r} before the first query",
                rule="unknown_target",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ002: missing inverse attribute
# ---------------------------------------------------------------------------


def rule_missing_inverse(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ002: A declared inverse must exist on the target as a relation."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        if not relation.kind.is_two_sided or relation.inverse is None:
            continue
        if relation.target not in types:
            continue
        if _inverse_of(types, relation) is None:
            diagnostics.append(_make(
                "RQ002",
                DiagnosticSeverity.ERROR,
                f"Inverse attribute {relation.inverse!r} on {relation.target!r} "
                "is missing or is not a relation",
                SchemaLocation(owner.name, relation.name),
                rule="missing_inverse",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ003: inverse kind mismatch
# ---------------------------------------------------------------------------


def rule_inverse_kind(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ003: The inverse attribute must have the mirrored kind."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        inverse = _inverse_of(types, relation)
        if inverse is None or relation.kind.inverse is None:
            continue
        if inverse.kind is not relation.kind.inverse:
            diagnostics.append(_make(
                "RQ003",
                DiagnosticSeverity.ERROR,
                f"{relation.kind.value} relation has inverse "
                f"{relation.target}.{inverse.name} of kind {inverse.kind.value}",
                SchemaLocation(owner.name, relation.name),
                suggestion=f"Declare {relation.target}.{inverse.name} as {relation.kind.inverse.value}",
                rule="inverse_kind",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ004: inverse points elsewhere
# ---------------------------------------------------------------------------


def rule_inverse_backlink(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ004: The inverse attribute must name this type and attribute."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        inverse = _inverse_of(types, relation)
        if inverse is None:
            continue
        if inverse.target != owner.name or inverse.inverse != relation.name:
            diagnostics.append(_make(
                "RQ004",
                DiagnosticSeverity.ERROR,
                f"Inverse {relation.target}.{inverse.name} points back at "
                f"{inverse.target}.{inverse.inverse}",
                SchemaLocation(owner.name, relation.name),
                rule="inverse_backlink",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ005: many-to-many dominance
# ---------------------------------------------------------------------------


def rule_dominant_side(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ005: Exactly one side of a many-to-many pair owns the join records."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        if relation.kind is not RelationKind.MANY_TO_MANY:
            continue
        inverse = _inverse_of(types, relation)
        if inverse is None or inverse.kind is not RelationKind.MANY_TO_MANY:
            continue
        # Report each pair once.
        if (owner.name, relation.name) > (relation.target, inverse.name):
            continue
        if relation.dominant == inverse.dominant:
            state = "both" if relation.dominant else "neither"
            diagnostics.append(_make(
                "RQ005",
                DiagnosticSeverity.ERROR,
                f"Many-to-many pair with {relation.target}.{inverse.name} has "
                f"{state} side marked dominant",
                SchemaLocation(owner.name, relation.name),
                suggestion="Mark exactly one side with dominant: true",
                rule="dominant_side",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ006: one-sided relation with inverse
# ---------------------------------------------------------------------------


def rule_one_sided_inverse(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ006: oneWay and manyWay relations have no inverse; a declared one is ignored."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        if not relation.kind.is_two_sided and relation.inverse is not None:
            diagnostics.append(_make(
                "RQ006",
                DiagnosticSeverity.WARNING,
                f"{relation.kind.value} relation declares inverse {relation.inverse!r}, "
                "which is ignored",
                SchemaLocation(owner.name, relation.name),
                suggestion="Remove targetAttribute or use a two-sided relation kind",
                rule="one_sided_inverse",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ007: two-sided relation without inverse name
# ---------------------------------------------------------------------------


def rule_missing_inverse_name(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ007: Two-sided relation kinds must name their inverse attribute."""
    diagnostics: list[Diagnostic] = []
    for owner, relation in _relations(types):
        if relation.kind.is_two_sided and relation.inverse is None:
            diagnostics.append(_make(
                "RQ007",
                DiagnosticSeverity.ERROR,
                f"{relation.kind.value} relation does not name an inverse attribute",
                SchemaLocation(owner.name, relation.name),
                suggestion="Set targetAttribute, or use oneWay/manyWay",
                rule="missing_inverse_name",
            ))
    return diagnostics


# ---------------------------------------------------------------------------
# RQ008: attribute names
# ---------------------------------------------------------------------------


def rule_attribute_names(types: Mapping[str, EntityType]) -> list[Diagnostic]:
    """RQ008: Attribute names must be identifiers so dotted paths can address them."""
    diagnostics: list[Diagnostic] = []
    for entity_type in types.values():
        for attr in entity_type.attributes:
            if not attr.name.isidentifier():
                diagnostics.append(_make(
                    "RQ008",
                    DiagnosticSeverity.ERROR,
                    f"Attribute name {attr.name!r} is not a plain identifier",
                    SchemaLocation(entity_type.name, attr.name),
                    suggestion="Use letters, digits and underscores only",
                    rule="attribute_names",
                ))
    return diagnostics


DEFAULT_RULES: tuple[Rule, ...] = (
    rule_unknown_target,
    rule_missing_inverse,
    rule_inverse_kind,
    rule_inverse_backlink,
    rule_dominant_side,
    rule_one_sided_inverse,
    rule_missing_inverse_name,
    rule_attribute_names,
)
