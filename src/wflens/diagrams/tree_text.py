"""Plain-text rendering of the logical-unit tree."""
from __future__ import annotations

from typing import Optional

from wflens.tree.navigation import visible_units
from wflens.tree.status import format_duration, unit_duration
from wflens.tree.unit_model import Forest, LogicalUnit, UnitStatus

EMPTY_STATE = "No events in workflow history."

STATUS_ICONS: dict[UnitStatus, str] = {
    UnitStatus.RUNNING: "◷",
    UnitStatus.COMPLETED: "✓",
    UnitStatus.FIRED: "✓",
    UnitStatus.SIGNALED: "↯",
    UnitStatus.FAILED: "✗",
    UnitStatus.TIMED_OUT: "⏱",
    UnitStatus.CANCELED: "⊘",
    UnitStatus.TERMINATED: "■",
}


def format_unit_line(unit: LogicalUnit) -> str:
    """``✓ charge-card [Completed] 1.2s`` style node text.

    An attempt count replaces the duration for retried units.
    """
    icon = STATUS_ICONS.get(unit.status, "•")
    suffix = ""
    duration = unit_duration(unit)
    if duration is not None and duration.total_seconds() > 0:
        suffix = f" {format_duration(duration)}"
    if unit.attempts > 1:
        suffix = f" {unit.attempts} attempts"
    return f"{icon} {unit.display_name} [{unit.status.value}]{suffix}"


def render_tree_text(forest: Forest, selected_id: Optional[str] = None, show_ids: bool = False) -> str:
    """Render the visible part of the forest, one unit per line."""
    if forest.is_empty:
        return EMPTY_STATE

    lines: list[str] = []
    for unit, depth in visible_units(forest):
        if unit.has_children:
            fold = "▸ " if unit.collapsed else "▾ "
        else:
            fold = "  "
        marker = ">" if unit.unit_id == selected_id else " "
        line = f"{marker}{'  ' * depth}{fold}{format_unit_line(unit)}"
        if show_ids:
            line += f"  ({unit.unit_id})"
        lines.append(line)

    for note in forest.notes:
        lines.append(f"note: {note}")
    return "\n".join(lines)
