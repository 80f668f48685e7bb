#!/usr/bin/env python3
"""Example: Schema validation with relquery

Shows the diagnostics a schema produces when it is frozen, and how
strict mode turns warnings into errors.

Usage:
    python examples/02_validation.py

Requirements:
    pip install relquery
"""
from __future__ import annotations

import relquery

BROKEN_SCHEMA = """
types:
  - name: collector
    attributes:
      albums: {nature: manyWay, target: album}
      stamps_m2m: {nature: manyToMany, target: stamp, targetAttribute: collectors}
  - name: stamp
    attributes:
      collectors: {nature: manyToMany, target: collector, targetAttribute: stamps_m2m}
"""

WARNING_SCHEMA = """
types:
  - name: stamp
  - name: collector
    attributes:
      stamps: {nature: manyWay, target: stamp, targetAttribute: owners}
"""


def main() -> None:
    # Errors block freezing
    engine = relquery.Engine.from_yaml(BROKEN_SCHEMA)
    try:
        engine.freeze()
    except relquery.SchemaValidationError as exc:
        print(f"Refused to freeze with {len(exc.diagnostics)} finding(s):")
        for diagnostic in exc.diagnostics:
            print(f"  {diagnostic}")

    # Warnings are returned, unless strict mode is on
    warnings = relquery.Engine.from_yaml(WARNING_SCHEMA).freeze()
    print(f"\nRelaxed mode: {[str(d) for d in warnings]}")

    strict = relquery.Engine.from_yaml(WARNING_SCHEMA, relquery.EngineConfig(strict_schema=True))
    try:
        strict.freeze()
    except relquery.SchemaValidationError as exc:
        print(f"Strict mode: {exc}")


if __name__ == "__main__":
    main()
