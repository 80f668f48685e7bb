"""Schema validator: structural analysis of a set of entity types.

The ``SchemaValidator`` runs a configurable set of rules against the
registered types and returns a list of ``Diagnostic`` objects.  In strict
mode, warnings are promoted to errors so that a schema with questionable
declarations refuses to freeze.

Usage
-----
::

    from relquery.schema.validator import SchemaValidator

    validator = SchemaValidator()
    diagnostics = validator.validate({"stamp": stamp_type, "collector": collector_type})
    errors = [d for d in diagnostics if d.is_error]
"""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping

from relquery.schema.diagnostics import Diagnostic, DiagnosticSeverity, SchemaLocation
from relquery.schema.rules import DEFAULT_RULES, Rule
from relquery.schema.types import EntityType

logger = logging.getLogger(__name__)


class SchemaValidator:
    """Structural validator for entity type definitions.

    Parameters
    ----------
    rules:
        The rules to run.  Defaults to all built-in rules
        (``DEFAULT_RULES``).
    strict:
        When ``True``, WARNING-level diagnostics are promoted to ERROR.
    """

    def __init__(
        self,
        rules: list[Rule] | None = None,
        strict: bool = False,
    ) -> None:
        self._rules: list[Rule] = rules if rules is not None else list(DEFAULT_RULES)
        self._strict: bool = strict

    def validate(self, types: Mapping[str, EntityType]) -> list[Diagnostic]:
        """Run all rules against ``types`` and return the collected diagnostics.

        Returns
        -------
        list[Diagnostic]
            All findings, sorted by location then code.  May be empty.
        """
        all_diagnostics: list[Diagnostic] = []
        for rule in self._rules:
            try:
                all_diagnostics.extend(rule(types))
            except Exception as exc:  # noqa: BLE001
                # A broken rule is reported, not raised.
                logger.exception("Schema rule %r failed", rule.__name__)
                all_diagnostics.append(
                    Diagnostic(
                        severity=DiagnosticSeverity.ERROR,
                        code="RQ999",
                        message=f"Internal validator error in rule {rule.__name__!r}: {exc}",
                        location=SchemaLocation("<schema>"),
                        suggestion="Please report this as a bug",
                        rule=rule.__name__,
                    )
                )

        if self._strict:
            all_diagnostics = [
                dataclasses.replace(d, severity=DiagnosticSeverity.ERROR)
                if d.severity == DiagnosticSeverity.WARNING
                else d
                for d in all_diagnostics
            ]

        all_diagnostics.sort(
            key=lambda d: (d.location.type_name, d.location.attribute or "", d.code)
        )
        return all_diagnostics

    def add_rule(self, rule: Rule) -> None:
        """Add a custom rule to this validator instance."""
        self._rules.append(rule)

    @property
    def rule_count(self) -> int:
        """Return the number of rules currently registered."""
        return len(self._rules)
