"""Loading and dumping schema documents.

A schema document mirrors content-type definitions::

    types:
      - name: stamp
        attributes:
          name: {type: string}
      - name: collector
        collectionName: collectors
        attributes:
          name: {type: string}
          age: {type: integer}
          stamps: {nature: manyWay, target: application::stamp.stamp}
          stamps_m2m:
            nature: manyToMany
            target: stamp
            targetAttribute: collectors
            dominant: true

Scalar attributes carry ``type``; relation attributes carry ``nature`` and
``target``.  Documents round-trip through ``dump_types``.
"""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from relquery.errors import SchemaLoadError
from relquery.schema.types import (
    Attribute,
    EntityType,
    RelationAttribute,
    RelationKind,
    ScalarAttribute,
    ScalarType,
)


def _load_attribute(type_name: str, name: str, spec: Any) -> Attribute:
    if not isinstance(spec, Mapping):
        raise SchemaLoadError("Attribute definition must be a mapping", type_name, name)
    if "nature" in spec:
        try:
            kind = RelationKind(spec["nature"])
        except ValueError:
            raise SchemaLoadError(f"Unknown relation nature {spec['nature']!r}", type_name, name) from None
        target = spec.get("target")
        if not isinstance(target, str) or not target:
            raise SchemaLoadError("Relation attribute needs a target", type_name, name)
        return RelationAttribute(
            name=name,
            kind=kind,
            target=target,
            inverse=spec.get("targetAttribute"),
            dominant=bool(spec.get("dominant", False)),
            unique=bool(spec.get("unique", False)),
        )
    if "type" in spec:
        try:
            scalar_type = ScalarType(spec["type"])
        except ValueError:
            raise SchemaLoadError(f"Unknown scalar type {spec['type']!r}", type_name, name) from None
        return ScalarAttribute(
            name=name,
            type=scalar_type,
            required=bool(spec.get("required", False)),
            unique=bool(spec.get("unique", False)),
        )
    raise SchemaLoadError("Attribute needs either 'type' or 'nature'", type_name, name)


def load_type(data: Mapping[str, Any]) -> EntityType:
    """Build one ``EntityType`` from its document form."""
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise SchemaLoadError("Entity type needs a non-empty 'name'")
    attributes = data.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise SchemaLoadError("'attributes' must be a mapping", name)
    info = data.get("info") or {}
    return EntityType(
        name=name,
        attributes=tuple(_load_attribute(name, attr, spec) for attr, spec in attributes.items()),
        collection_name=data.get("collectionName"),
        info=dict(info),
    )


def load_types(data: Mapping[str, Any]) -> list[EntityType]:
    """Build entity types from a ``{"types": [...]}`` document."""
    if not isinstance(data, Mapping):
        raise SchemaLoadError("Schema document must be a mapping with a 'types' list")
    entries = data.get("types")
    if not isinstance(entries, list):
        raise SchemaLoadError("Schema document must contain a 'types' list")
    return [load_type(entry) for entry in entries]


def load_types_yaml(text: str) -> list[EntityType]:
    """Build entity types from a YAML schema document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaLoadError(f"Schema is not valid YAML: {exc}") from exc
    return load_types(data or {})


def load_types_file(path: str | Path) -> list[EntityType]:
    """Read and load a YAML (or JSON, which YAML accepts) schema file."""
    return load_types_yaml(Path(path).read_text(encoding="utf-8"))


def _dump_attribute(attr: Attribute) -> dict[str, Any]:
    if isinstance(attr, ScalarAttribute):
        out: dict[str, Any] = {"type": attr.type.value}
        if attr.required:
            out["required"] = True
        if attr.unique:
            out["unique"] = True
        return out
    out = {"nature": attr.kind.value, "target": attr.target}
    if attr.inverse is not None:
        out["targetAttribute"] = attr.inverse
    if attr.dominant:
        out["dominant"] = True
    if attr.unique:
        out["unique"] = True
    return out


def dump_type(entity_type: EntityType) -> dict[str, Any]:
    out: dict[str, Any] = {"name": entity_type.name}
    if entity_type.collection_name is not None:
        out["collectionName"] = entity_type.collection_name
    if entity_type.info:
        out["info"] = dict(entity_type.info)
    out["attributes"] = {a.name: _dump_attribute(a) for a in entity_type.attributes}
    return out


def dump_types(types: list[EntityType]) -> dict[str, Any]:
    """Return the document form of ``types``."""
    return {"types": [dump_type(t) for t in types]}


def dump_types_yaml(types: list[EntityType]) -> str:
    return yaml.dump(dump_types(types), default_flow_style=False, allow_unicode=True, sort_keys=False)
