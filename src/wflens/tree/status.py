"""Status and duration of logical units."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from wflens.history.event_model import CorrelatedEvent, Phase
from wflens.tree.unit_model import LogicalUnit, UnitStatus

RUNNING_LABEL = "running"


def current_terminal(events: Iterable[CorrelatedEvent]) -> Optional[CorrelatedEvent]:
    """The terminal event of the latest attempt, or None while it is in flight.

    A SCHEDULE or START event after a terminal begins a new attempt, which
    clears the earlier outcome.
    """
    terminal: Optional[CorrelatedEvent] = None
    for event in events:
        if event.phase in (Phase.TERMINAL, Phase.INSTANT):
            terminal = event
        elif event.phase in (Phase.SCHEDULE, Phase.START) and terminal is not None:
            terminal = None
    return terminal


def derive_status(events: Iterable[CorrelatedEvent]) -> tuple[UnitStatus, Optional[datetime]]:
    """Return (status, end_time) for a unit's member events."""
    terminal = current_terminal(events)
    if terminal is None:
        return UnitStatus.RUNNING, None
    label = terminal.event_class.status or UnitStatus.COMPLETED.value
    return UnitStatus(label), terminal.timestamp


def unit_duration(unit: LogicalUnit) -> Optional[timedelta]:
    """Wall-clock duration, or None for a unit that is still running.

    Clock skew that would make the duration negative is clamped to zero.
    """
    if unit.end_time is None:
        return None
    return max(unit.end_time - unit.start_time, timedelta(0))


def format_duration(d: timedelta) -> str:
    """Compact human duration: 250ms, 1.5s, 2m5s, 1h30m."""
    total_ms = int(d.total_seconds() * 1000)
    if total_ms < 1000:
        return f"{total_ms}ms"
    seconds = d.total_seconds()
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m{secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes}m"


def format_unit_duration(unit: LogicalUnit) -> str:
    duration = unit_duration(unit)
    if duration is None:
        return RUNNING_LABEL
    return format_duration(duration)
