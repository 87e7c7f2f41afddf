"""Expand/collapse and search helpers for the tree consumer."""
from __future__ import annotations

from typing import Iterable, Iterator, Optional

from wflens.tree.unit_model import FAILURE_STATUSES, Forest, LogicalUnit


def _roots(forest: Forest | Iterable[LogicalUnit]) -> tuple[LogicalUnit, ...]:
    return forest.roots if isinstance(forest, Forest) else tuple(forest)


def toggle(unit: LogicalUnit) -> bool:
    """Flip a unit's collapsed flag. Returns the new value."""
    unit.collapsed = not unit.collapsed
    return unit.collapsed


def expand_all(forest: Forest | Iterable[LogicalUnit]) -> None:
    for root in _roots(forest):
        for unit, _ in root.walk():
            unit.collapsed = False


def collapse_all(forest: Forest | Iterable[LogicalUnit]) -> None:
    for root in _roots(forest):
        for unit, _ in root.walk():
            unit.collapsed = True


def visible_units(forest: Forest | Iterable[LogicalUnit]) -> Iterator[tuple[LogicalUnit, int]]:
    """Pre-order walk that does not descend into collapsed units."""

    def visit(unit: LogicalUnit, depth: int) -> Iterator[tuple[LogicalUnit, int]]:
        yield unit, depth
        if not unit.collapsed:
            for child in unit.children:
                yield from visit(child, depth + 1)

    for root in _roots(forest):
        yield from visit(root, 0)


def find_first_failed(
    forest: Forest | Iterable[LogicalUnit],
    reveal: bool = True,
) -> Optional[LogicalUnit]:
    """First Failed or TimedOut unit in pre-order.

    With ``reveal`` the unit's ancestors are expanded so it becomes visible.
    """

    def search(unit: LogicalUnit, path: list[LogicalUnit]) -> Optional[LogicalUnit]:
        if unit.status in FAILURE_STATUSES:
            if reveal:
                for ancestor in path:
                    ancestor.collapsed = False
            return unit
        for child in unit.children:
            found = search(child, path + [unit])
            if found is not None:
                return found
        return None

    for root in _roots(forest):
        found = search(root, [])
        if found is not None:
            return found
    return None
