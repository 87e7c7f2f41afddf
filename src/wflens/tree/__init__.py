"""Logical-unit tree: grouping, retries, status and navigation."""
from wflens.tree.build_tree import build_forest
from wflens.tree.unit_model import Forest, LogicalUnit, UnitStatus

__all__ = [
    "build_forest",
    "Forest",
    "LogicalUnit",
    "UnitStatus",
]
