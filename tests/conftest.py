"""Shared test fixtures for relquery.

Fixtures defined here are available to all tests in the suite without
needing an explicit import.  The stamp/collector schema and records model
a small content-manager setup with one attribute per relation kind.
"""
from __future__ import annotations

import pytest

from relquery import Engine
from relquery.schema import EntityType, RelationAttribute, RelationKind, ScalarAttribute, ScalarType

SCHEMA_YAML = """\
types:
  - name: stamp
    attributes:
      name: {type: string}
  - name: collector
    attributes:
      name: {type: string}
      age: {type: integer}
      stamps:
        nature: manyWay
        target: application::stamp.stamp
      stamps_one_way:
        nature: oneWay
        target: application::stamp.stamp
      stamps_m2m:
        nature: manyToMany
        target: application::stamp.stamp
        targetAttribute: collectors
        dominant: true
      stamps_one_many:
        nature: oneToMany
        target: application::stamp.stamp
        targetAttribute: collector
      stamps_one_one:
        nature: oneToOne
        target: application::stamp.stamp
        targetAttribute: collector_one_one
"""

DATA_YAML = """\
stamp:
  - name: "1946"
  - name: "1947"
  - name: "1948"
collector:
  - name: Bernard
    age: 25
    stamps: [1, 2]
    stamps_m2m: [1]
    stamps_one_many: []
    stamps_one_way: 1
    stamps_one_one: 1
  - name: Isabelle
    age: 55
    stamps: [1]
    stamps_m2m: []
    stamps_one_many: [2, 3]
    stamps_one_way: 2
    stamps_one_one: 2
  - name: Emma
    age: 23
    stamps: []
    stamps_m2m: [1, 2]
    stamps_one_many: [1]
    stamps_one_way: 3
    stamps_one_one: 3
"""


def stamp_type() -> EntityType:
    return EntityType("stamp", (ScalarAttribute("name", ScalarType.STRING),))


def collector_type() -> EntityType:
    return EntityType(
        "collector",
        (
            ScalarAttribute("name", ScalarType.STRING),
            ScalarAttribute("age", ScalarType.INTEGER),
            RelationAttribute("stamps", RelationKind.MANY_WAY, "stamp"),
            RelationAttribute("stamps_one_way", RelationKind.ONE_WAY, "stamp"),
            RelationAttribute(
                "stamps_m2m", RelationKind.MANY_TO_MANY, "stamp", inverse="collectors", dominant=True
            ),
            RelationAttribute("stamps_one_many", RelationKind.ONE_TO_MANY, "stamp", inverse="collector"),
            RelationAttribute(
                "stamps_one_one", RelationKind.ONE_TO_ONE, "stamp", inverse="collector_one_one"
            ),
        ),
    )


@pytest.fixture()
def empty_engine() -> Engine:
    """Return an engine with the stamp and collector types registered and no data."""
    return Engine.from_types([stamp_type(), collector_type()])


@pytest.fixture()
def engine(empty_engine: Engine) -> Engine:
    """Return an engine holding three stamps and three collectors."""
    stamps = [empty_engine.create("stamp", {"name": name}) for name in ("1946", "1947", "1948")]
    s1946, s1947, s1948 = (s.id for s in stamps)
    collectors = [
        {
            "name": "Bernard",
            "age": 25,
            "stamps": [s1946, s1947],
            "stamps_m2m": [s1946],
            "stamps_one_many": [],
            "stamps_one_way": s1946,
            "stamps_one_one": s1946,
        },
        {
            "name": "Isabelle",
            "age": 55,
            "stamps": [s1946],
            "stamps_m2m": [],
            "stamps_one_many": [s1947, s1948],
            "stamps_one_way": s1947,
            "stamps_one_one": s1947,
        },
        {
            "name": "Emma",
            "age": 23,
            "stamps": [],
            "stamps_m2m": [s1946, s1947],
            "stamps_one_many": [s1946],
            "stamps_one_way": s1948,
            "stamps_one_one": s1948,
        },
    ]
    for record in collectors:
        empty_engine.create("collector", record)
    return empty_engine


@pytest.fixture()
def schema_file(tmp_path):
    path = tmp_path / "schema.yaml"
    path.write_text(SCHEMA_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def data_file(tmp_path):
    path = tmp_path / "data.yaml"
    path.write_text(DATA_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def stamp_collector_types() -> list[EntityType]:
    """Return fresh stamp and collector type definitions."""
    return [stamp_type(), collector_type()]


@pytest.fixture()
def schema_text() -> str:
    """Return the stamp/collector schema document as YAML text."""
    return SCHEMA_YAML
