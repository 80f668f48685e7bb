"""Diagnostic types for schema validation.

A ``Diagnostic`` is a finding attached to a location in the schema, i.e. a
type name and optionally one of its attributes.  Diagnostics are produced
by the rules in ``relquery.schema.rules`` and collected by the
``SchemaValidator``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostics, aligned with LSP conventions."""

    ERROR = auto()
    WARNING = auto()
    INFORMATION = auto()
    HINT = auto()


@dataclass(frozen=True)
class SchemaLocation:
    """Where in the schema a diagnostic applies."""

    type_name: str
    attribute: str | None = None

    def __str__(self) -> str:
        if self.attribute is None:
            return self.type_name
        return f"{self.type_name}.{self.attribute}"


@dataclass(frozen=True)
class Diagnostic:
    """A single schema validation finding.

    Parameters
    ----------
    severity:
        How serious this finding is.
    code:
        A short machine-readable identifier, e.g. ``"RQ001"``.
    message:
        Human-readable description of the problem.
    location:
        The type (and attribute) the finding is about.
    suggestion:
        Optional human-readable fix suggestion.
    rule:
        The rule name that produced this diagnostic.
    """

    severity: DiagnosticSeverity
    code: str
    message: str
    location: SchemaLocation
    suggestion: str | None = field(default=None)
    rule: str = field(default="")

    def __str__(self) -> str:
        prefix = f"[{self.code}] {self.severity.name}"
        suggestion_part = f" (hint: {self.suggestion})" if self.suggestion else ""
        return f"{prefix} at {self.location}: {self.message}{suggestion_part}"

    @property
    def is_error(self) -> bool:
        """Return True if this diagnostic should block freezing the schema."""
        return self.severity == DiagnosticSeverity.ERROR
