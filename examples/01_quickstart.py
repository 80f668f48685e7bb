#!/usr/bin/env python3
"""Example: Quickstart for relquery

Minimal working example: declare two content types, create a few
entities, then count, filter and sort across their relations.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install relquery
"""
from __future__ import annotations

import relquery

SCHEMA = """
types:
  - name: stamp
    attributes:
      name: {type: string}
  - name: collector
    attributes:
      name: {type: string}
      stamps: {nature: manyWay, target: stamp}
      stamps_one_many:
        nature: oneToMany
        target: stamp
        targetAttribute: collector
"""


def main() -> None:
    print(f"relquery version: {relquery.__version__}")

    # Step 1: Load the schema; freezing adds stamp.collector as the inverse
    engine = relquery.Engine.from_yaml(SCHEMA)
    warnings = engine.freeze()
    print(f"Schema types: {engine.registry.names()} ({len(warnings)} warning(s))")

    # Step 2: Create entities
    s1946, s1947, s1948 = (engine.create("stamp", {"name": n}) for n in ("1946", "1947", "1948"))
    engine.create("collector", {"name": "Bernard", "stamps": [s1946.id, s1947.id]})
    engine.create("collector", {"name": "Isabelle", "stamps": [s1946.id], "stamps_one_many": [s1947.id, s1948.id]})
    engine.create("collector", {"name": "Emma", "stamps_one_many": [s1946.id]})

    # Step 3: Count relations
    for row in engine.query("collector"):
        print(f"  {row.entity.values['name']}: {row.count('stamps')} stamp(s), "
              f"{row.count('stamps_one_many')} owned")

    # Step 4: Filter through a relation
    rows = engine.query("collector", where={"stamps.name": "1946"})
    print(f"Collectors with 1946: {[r.entity.values['name'] for r in rows]}")

    # Step 5: Sort by a related attribute
    for row in engine.query("stamp", sort="collector.name:DESC"):
        owner = row.to_dict()["collector"]
        print(f"  {row.entity.values['name']} -> {owner['name'] if owner else '-'}")


if __name__ == "__main__":
    main()
