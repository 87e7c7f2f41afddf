"""Plain-text Gantt rendering of a TimelineLayout."""
from __future__ import annotations

from wflens.diagrams.timeline_layout import TimelineLayout
from wflens.tree.unit_model import UnitStatus

LABEL_WIDTH = 20
EMPTY_CELL = "·"
CURSOR_CHAR = "│"
WICK_CHAR = "─"

EMPTY_STATE = "No timeline data: the workflow has no activities, timers, signals or child workflows."

BAR_CHARS: dict[UnitStatus, str] = {
    UnitStatus.RUNNING: "▓",
    UnitStatus.COMPLETED: "█",
    UnitStatus.FIRED: "█",
    UnitStatus.SIGNALED: "█",
    UnitStatus.FAILED: "░",
    UnitStatus.TIMED_OUT: "░",
    UnitStatus.CANCELED: "▒",
    UnitStatus.TERMINATED: "▒",
}

LEGEND = (("█", "Completed"), ("▓", "Running"), ("░", "Failed"), ("▒", "Canceled"))


def _put(row: list[str], pos: int, text: str) -> None:
    for i, ch in enumerate(text):
        if 0 <= pos + i < len(row):
            row[pos + i] = ch


def _label(name: str, selected: bool) -> str:
    marker = ">" if selected else " "
    max_len = LABEL_WIDTH - 2
    if len(name) > max_len:
        name = name[: max_len - 1] + "…"
    return f"{marker}{name:<{LABEL_WIDTH - 1}}"


def render_gantt_text(layout: TimelineLayout, show_legend: bool = True) -> str:
    """Render the layout as lines of text, one lane per line."""
    if layout.is_empty:
        return EMPTY_STATE

    width = layout.bar_width
    cursor = layout.cursor

    header = [" "] * width
    rule = [WICK_CHAR] * width
    for tick in layout.ticks:
        _put(header, tick.position, tick.label)
        _put(rule, tick.position, CURSOR_CHAR)

    if cursor is not None:
        _put(header, cursor.start_label_pos, cursor.start_label)
        if cursor.duration_label is not None and cursor.duration_label_pos is not None:
            _put(rule, cursor.duration_label_pos, cursor.duration_label)

    lines = [
        f"{'Event':<{LABEL_WIDTH}}│{''.join(header)}",
        f"{' ' * LABEL_WIDTH}│{''.join(rule)}",
    ]

    for lane, bar in zip(layout.lanes, layout.bars):
        selected = cursor is not None and cursor.unit_id == lane.unit_id
        row = [EMPTY_CELL] * width
        if bar.visible:
            _put(row, bar.start, BAR_CHARS.get(lane.status, "▒") * (bar.end - bar.start))

        if cursor is not None:
            if selected and cursor.wick is not None:
                wick_start, wick_end = cursor.wick
                _put(row, wick_start, WICK_CHAR * (wick_end - wick_start))
            if 0 <= cursor.start_pos < width:
                row[cursor.start_pos] = CURSOR_CHAR
            end_pos = cursor.end_pos
            if end_pos is not None and cursor.start_pos < end_pos < width:
                row[end_pos] = CURSOR_CHAR

        lines.append(f"{_label(lane.display_name, selected)}│{''.join(row)}")

    if show_legend:
        legend = " ".join(f"{char}{name}" for char, name in LEGEND)
        if cursor is not None:
            legend = f"{legend}    {cursor.status_line()}"
        lines.append(legend)

    return "\n".join(lines)
