"""Relation resolver module."""
from __future__ import annotations

from relquery.resolver.resolver import RelationResolver

__all__ = ["RelationResolver"]
