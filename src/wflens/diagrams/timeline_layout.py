"""Timeline (Gantt) layout of a logical-unit forest.

Positions are measured in cells: ``bar_width`` cells span the time window at
zoom 1.0. Zoom multiplies every computed position and scroll is subtracted from
it before clamping to the visible width.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from wflens.config import DEFAULT_TIMELINE_WIDTH
from wflens.history.event_model import UnitKind
from wflens.tree.unit_model import Forest, LogicalUnit

# Zoom bounds and keyboard-style steps
ZOOM_MIN = 0.5
ZOOM_MAX = 5.0
ZOOM_IN_FACTOR = 1.2
ZOOM_OUT_FACTOR = 0.8
SCROLL_STEP = 5

MIN_WINDOW = timedelta(minutes=1)

# Fewer axis ticks below this bar width
NARROW_WIDTH = 60
TICKS_WIDE = 5
TICKS_NARROW = 3

RUNNING_INDICATOR = "(running)"

# Units that structure the run rather than doing schedulable work
STRUCTURAL_KINDS = frozenset({UnitKind.WORKFLOW, UnitKind.WORKFLOW_TASK})

_US = 1
_MS = 1000 * _US
_SECOND = 1000 * _MS
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

# (upper threshold, granularity) in microseconds
ROUNDING_RULES: tuple[tuple[int, int], ...] = (
    (100 * _MS, 10 * _MS),
    (_SECOND, 50 * _MS),
    (10 * _SECOND, 500 * _MS),
    (_MINUTE, _SECOND),
    (10 * _MINUTE, 10 * _SECOND),
    (_HOUR, _MINUTE),
    (24 * _HOUR, 10 * _MINUTE),
)
FALLBACK_GRANULARITY = _HOUR


def _micros(d: timedelta) -> int:
    return (d.days * 86400 + d.seconds) * _SECOND + d.microseconds


def _ceil_to(value: int, granularity: int) -> int:
    return -(-value // granularity) * granularity


def round_duration(d: timedelta) -> timedelta:
    """Round a tick offset up to a readable value.

    The granularity comes from the first bucket the value falls under. A value
    within one granularity step of its bucket's threshold is promoted to the
    next bucket, so a tick near a boundary reads as the boundary itself
    (950ms becomes 1s, not 950ms).
    """
    value = _micros(d)
    if value <= 0:
        return timedelta(0)
    for threshold, granularity in ROUNDING_RULES:
        if value < threshold - granularity:
            return timedelta(microseconds=_ceil_to(value, granularity))
    return timedelta(microseconds=_ceil_to(value, FALLBACK_GRANULARITY))


def _compact(value: float, unit: str) -> str:
    if value == int(value):
        return f"{int(value)}{unit}"
    return f"{value:.1f}{unit}"


def format_relative_duration(d: timedelta) -> str:
    """Format an offset from the window start: 0s, 250µs, 40ms, 1.5s, 2m, 1.5h."""
    value = _micros(d)
    if value == 0:
        return "0s"
    if value < _MS:
        return f"{value}µs"
    if value < _SECOND:
        return f"{value // _MS}ms"
    if value < _MINUTE:
        return _compact(value / _SECOND, "s")
    if value < _HOUR:
        return _compact(value / _MINUTE, "m")
    return _compact(value / _HOUR, "h")


# =============================================================================
# Lanes and window
# =============================================================================


def collect_lanes(forest: Forest | Sequence[LogicalUnit]) -> list[LogicalUnit]:
    """Every non-structural unit of the forest, ordered by start time.

    Workflow and WorkflowTask units are skipped but their children are still
    visited. The sort is stable, so ties keep tree order.
    """
    roots = forest.roots if isinstance(forest, Forest) else tuple(forest)
    lanes: list[LogicalUnit] = []
    for root in roots:
        for unit, _depth in root.walk():
            if unit.kind not in STRUCTURAL_KINDS:
                lanes.append(unit)
    lanes.sort(key=lambda u: u.start_time)
    return lanes


@dataclass(frozen=True)
class TimeWindow:
    """Time range mapped onto the bar area."""

    min_start: datetime
    max_end: datetime

    @property
    def duration(self) -> timedelta:
        return self.max_end - self.min_start

    def offset_of(self, ts: datetime) -> timedelta:
        return ts - self.min_start


def compute_window(lanes: Sequence[LogicalUnit], now: Optional[datetime] = None) -> Optional[TimeWindow]:
    """Window from the earliest lane start to the latest end.

    A running lane (or no lane with an end) extends the window to ``now``.
    Windows shorter than one minute are widened to one minute.
    Returns None when there are no lanes.
    """
    if not lanes:
        return None
    if now is None:
        now = datetime.now(timezone.utc)

    min_start = min(lane.start_time for lane in lanes)
    ends = [lane.end_time for lane in lanes if lane.end_time is not None]
    if not ends or len(ends) < len(lanes):
        ends.append(now)
    max_end = max(ends)

    if max_end - min_start < MIN_WINDOW:
        max_end = min_start + MIN_WINDOW
    return TimeWindow(min_start=min_start, max_end=max_end)


# =============================================================================
# Viewport
# =============================================================================


@dataclass
class TimelineViewport:
    """Zoom and horizontal scroll of the bar area. Owned by the consumer."""

    bar_width: int = DEFAULT_TIMELINE_WIDTH
    zoom: float = 1.0
    scroll_x: int = 0

    def __post_init__(self) -> None:
        if self.bar_width < 1:
            raise ValueError(f"bar_width must be at least 1, got {self.bar_width}")
        self.zoom = min(max(self.zoom, ZOOM_MIN), ZOOM_MAX)
        self.scroll_x = max(self.scroll_x, 0)

    def zoom_by(self, factor: float) -> float:
        self.zoom = min(max(self.zoom * factor, ZOOM_MIN), ZOOM_MAX)
        return self.zoom

    def zoom_in(self) -> float:
        return self.zoom_by(ZOOM_IN_FACTOR)

    def zoom_out(self) -> float:
        return self.zoom_by(ZOOM_OUT_FACTOR)

    def scroll_by(self, delta: int) -> int:
        self.scroll_x = max(self.scroll_x + delta, 0)
        return self.scroll_x

    def reset(self) -> None:
        self.zoom = 1.0
        self.scroll_x = 0

    def project(self, cell: int) -> int:
        """Apply zoom and scroll to an unzoomed cell position."""
        return int(cell * self.zoom) - self.scroll_x

    def unproject(self, pos: int) -> int:
        """Invert ``project``, clamped to the unzoomed bar area."""
        cell = int((pos + self.scroll_x) / self.zoom)
        return min(max(cell, 0), self.bar_width)


def _cell(offset: timedelta, window: TimeWindow, width: int) -> int:
    return int(width * (offset / window.duration))


# =============================================================================
# Bars, ticks and the candlestick cursor
# =============================================================================


@dataclass(frozen=True)
class Bar:
    """Visible extent of one lane, in cells ``[start, end)``."""

    unit_id: str
    start: int
    end: int

    @property
    def visible(self) -> bool:
        return self.end > self.start


def layout_bar(lane: LogicalUnit, window: TimeWindow, viewport: TimelineViewport) -> Bar:
    width = viewport.bar_width
    start = _cell(window.offset_of(lane.start_time), window, width)
    if lane.end_time is not None:
        end = _cell(window.offset_of(lane.end_time), window, width)
    else:
        end = width  # still running: reaches the right edge

    if end <= start:
        end = start + 1

    start = viewport.project(start)
    end = viewport.project(end)
    # Zooming out can fold a one-cell bar to nothing
    if end <= start:
        end = start + 1
    return Bar(unit_id=lane.unit_id, start=max(start, 0), end=min(end, width))


@dataclass(frozen=True)
class Tick:
    position: int
    offset: timedelta
    label: str


def axis_ticks(window: TimeWindow, viewport: TimelineViewport) -> list[Tick]:
    """Evenly spaced axis markers labelled with rounded offsets."""
    width = viewport.bar_width
    count = TICKS_NARROW if width < NARROW_WIDTH else TICKS_WIDE

    ticks: list[Tick] = []
    for i in range(count + 1):
        pos = viewport.project(width * i // count)
        if pos < 0 or pos >= width:
            continue
        cell = viewport.unproject(pos)
        offset = round_duration(window.duration * cell / width)
        ticks.append(Tick(position=pos, offset=offset, label=format_relative_duration(offset)))
    return ticks


@dataclass(frozen=True)
class Candlestick:
    """Cursor marks for the selected lane.

    ``start_pos``/``end_pos`` are projected cells and may fall outside the
    visible area; renderers draw only what is within ``[0, width)``.
    """

    unit_id: str
    start_pos: int
    start_label: str
    start_label_pos: int
    start_offset: timedelta
    end_pos: Optional[int] = None
    wick: Optional[tuple[int, int]] = None
    duration: Optional[timedelta] = None
    duration_label: Optional[str] = None
    duration_label_pos: Optional[int] = None
    gap: Optional[timedelta] = None

    @property
    def running(self) -> bool:
        return self.duration is None

    def status_line(self) -> str:
        """``Start:1.5s  Dur:2s  Gap:500ms`` summary of the selected lane."""
        parts = [f"Start:{self.start_label}"]
        if self.duration_label is not None:
            parts.append(f"Dur:{self.duration_label}")
        else:
            parts.append(RUNNING_INDICATOR)
        if self.gap:
            parts.append(f"Gap:{format_relative_duration(self.gap)}")
        return "  ".join(parts)


def _clamp_label(pos: int, label: str, width: int) -> int:
    if pos + len(label) > width:
        pos = width - len(label)
    return max(pos, 0)


def candlestick(
    lanes: Sequence[LogicalUnit],
    index: int,
    window: TimeWindow,
    viewport: TimelineViewport,
) -> Candlestick:
    """Build the cursor for ``lanes[index]``.

    Raises:
        IndexError: If index is outside lanes
    """
    if not 0 <= index < len(lanes):
        raise IndexError(f"lane index {index} out of range for {len(lanes)} lane(s)")

    width = viewport.bar_width
    lane = lanes[index]
    prev = lanes[index - 1] if index > 0 else None

    start_offset = window.offset_of(lane.start_time)
    start_pos = viewport.project(_cell(start_offset, window, width))
    start_label = format_relative_duration(start_offset)

    prev_end_pos = 0
    gap = None
    if prev is not None and prev.end_time is not None:
        prev_end_pos = viewport.project(_cell(window.offset_of(prev.end_time), window, width))
        gap = max(lane.start_time - prev.end_time, timedelta(0))

    wick = None
    if 0 < prev_end_pos < start_pos:
        wick = (prev_end_pos, min(start_pos, width))

    fields: dict = {}
    if lane.end_time is not None:
        end_pos = viewport.project(_cell(window.offset_of(lane.end_time), window, width))
        duration = max(lane.end_time - lane.start_time, timedelta(0))
        label = format_relative_duration(duration)

        if end_pos - start_pos > len(label) + 2:
            label_pos = (start_pos + end_pos) // 2 - len(label) // 2
            label_pos = max(label_pos, start_pos + len(start_label) + 1)
        else:
            label_pos = end_pos + 1

        fields = dict(
            end_pos=end_pos,
            duration=duration,
            duration_label=label,
            duration_label_pos=_clamp_label(label_pos, label, width),
        )

    return Candlestick(
        unit_id=lane.unit_id,
        start_pos=start_pos,
        start_label=start_label,
        start_label_pos=_clamp_label(start_pos, start_label, width),
        start_offset=start_offset,
        wick=wick,
        gap=gap,
        **fields,
    )


# =============================================================================
# Full layout
# =============================================================================


@dataclass(frozen=True)
class TimelineLayout:
    """Everything a renderer needs to draw one frame of the timeline."""

    lanes: tuple[LogicalUnit, ...]
    window: Optional[TimeWindow]
    bar_width: int
    bars: tuple[Bar, ...] = ()
    ticks: tuple[Tick, ...] = ()
    cursor: Optional[Candlestick] = None
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.lanes


def build_layout(
    forest: Forest,
    viewport: Optional[TimelineViewport] = None,
    selected: Optional[int] = 0,
    now: Optional[datetime] = None,
) -> TimelineLayout:
    """Lay out a forest for the given viewport and selected lane index."""
    viewport = viewport or TimelineViewport()
    lanes = collect_lanes(forest)
    window = compute_window(lanes, now=now)
    if window is None:
        return TimelineLayout(lanes=(), window=None, bar_width=viewport.bar_width, notes=forest.notes)

    cursor = None
    if selected is not None and 0 <= selected < len(lanes):
        cursor = candlestick(lanes, selected, window, viewport)

    return TimelineLayout(
        lanes=tuple(lanes),
        window=window,
        bar_width=viewport.bar_width,
        bars=tuple(layout_bar(lane, window, viewport) for lane in lanes),
        ticks=tuple(axis_ticks(window, viewport)),
        cursor=cursor,
        notes=forest.notes,
    )
