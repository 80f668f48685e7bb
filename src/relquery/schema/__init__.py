"""Schema module.

Exports entity type definitions, the ``SchemaRegistry``, schema
validation rules and diagnostics, and the YAML schema loader.
"""
from __future__ import annotations

from relquery.schema.builtins import LOCALIZATION_TYPE, register_builtin_types
from relquery.schema.diagnostics import Diagnostic, DiagnosticSeverity, SchemaLocation
from relquery.schema.loader import (
    dump_types,
    dump_types_yaml,
    load_types,
    load_types_file,
    load_types_yaml,
)
from relquery.schema.registry import SchemaRegistry, link_inverses, normalize_uid
from relquery.schema.rules import DEFAULT_RULES, Rule
from relquery.schema.types import (
    Attribute,
    EntityType,
    RelationAttribute,
    RelationKind,
    ScalarAttribute,
    ScalarType,
)
from relquery.schema.validator import SchemaValidator

__all__ = [
    # Definitions
    "Attribute",
    "EntityType",
    "RelationAttribute",
    "RelationKind",
    "ScalarAttribute",
    "ScalarType",
    # Registry
    "SchemaRegistry",
    "link_inverses",
    "normalize_uid",
    # Validation
    "SchemaValidator",
    "Diagnostic",
    "DiagnosticSeverity",
    "SchemaLocation",
    "Rule",
    "DEFAULT_RULES",
    # Loading
    "load_types",
    "load_types_yaml",
    "load_types_file",
    "dump_types",
    "dump_types_yaml",
    # Built-ins
    "LOCALIZATION_TYPE",
    "register_builtin_types",
]
