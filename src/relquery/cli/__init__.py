"""CLI module for relquery."""
from __future__ import annotations

from relquery.cli.main import cli

__all__ = ["cli"]
