"""History pipeline: correlate, group, collapse retries, derive status.

``build_forest`` is a pure function of the event batch. It performs no I/O and
returns a brand-new Forest on every call.
"""
from __future__ import annotations

import logging
from typing import Iterable

from wflens.config import DEFAULT_COLLAPSE_DEPTH
from wflens.correlation.correlator import correlate
from wflens.history.event_model import CorrelatedEvent, UnitKind
from wflens.tree.grouper import UnitBuilder, group_events
from wflens.tree.retries import RETRYABLE_KINDS, count_attempts
from wflens.tree.status import derive_status
from wflens.tree.unit_model import Forest, LogicalUnit

logger = logging.getLogger(__name__)


def display_name(kind: UnitKind, events: list[CorrelatedEvent]) -> str:
    """Human label for a unit, taken from the first member that names it."""

    def first(attr: str) -> str | None:
        for event in events:
            value = getattr(event, attr)
            if value:
                return value
        return None

    if kind is UnitKind.WORKFLOW:
        return first("child_workflow_type") or "Workflow"
    if kind is UnitKind.WORKFLOW_TASK:
        return "WorkflowTask"
    if kind is UnitKind.ACTIVITY:
        return first("activity_type") or first("activity_id") or "Activity"
    if kind is UnitKind.TIMER:
        timer_id = first("timer_id")
        return f"Timer {timer_id}" if timer_id else "Timer"
    if kind is UnitKind.CHILD_WORKFLOW:
        return first("child_workflow_type") or first("child_workflow_id") or "ChildWorkflow"
    if kind is UnitKind.SIGNAL:
        name = first("signal_name")
        return f"Signal {name}" if name else "Signal"
    return events[0].event_type


def _sort_key(unit: LogicalUnit) -> tuple:
    return (unit.start_time, unit.anchor_event_id)


def _freeze(builder: UnitBuilder, depth: int, collapse_depth: int) -> LogicalUnit:
    events = builder.events
    status, end_time = derive_status(events)
    attempts = count_attempts(events) if builder.kind in RETRYABLE_KINDS else 1
    children = sorted(
        (_freeze(child, depth + 1, collapse_depth) for child in builder.children),
        key=_sort_key,
    )
    return LogicalUnit(
        unit_id=builder.unit_id,
        kind=builder.kind,
        display_name=display_name(builder.kind, events),
        status=status,
        start_time=builder.start_time,
        end_time=end_time,
        attempts=attempts,
        member_events=tuple(events),
        children=tuple(children),
        collapsed=depth >= collapse_depth,
    )


def build_forest(
    events: Iterable[CorrelatedEvent],
    collapse_depth: int = DEFAULT_COLLAPSE_DEPTH,
) -> Forest:
    """Build the logical-unit forest for one workflow run.

    Args:
        events: The run's history events
        collapse_depth: Units at this depth or deeper start collapsed

    Returns:
        Forest of root units ordered by start time; empty for an empty log
    """
    correlation = correlate(events)
    builders = group_events(correlation)
    roots = sorted((_freeze(b, 0, collapse_depth) for b in builders), key=_sort_key)

    forest = Forest(
        roots=tuple(roots),
        misses=tuple(correlation.misses),
        notes=tuple(correlation.notes),
    )
    logger.debug(
        "Built forest: %d events, %d root unit(s), %d miss(es)",
        len(correlation.events), len(roots), len(correlation.misses),
    )
    return forest
