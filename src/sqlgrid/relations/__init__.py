"""Relation (lookup) resolution."""

from __future__ import annotations

from .resolver import RelationResolver, split_multi_value

__all__ = ["RelationResolver", "split_multi_value"]
