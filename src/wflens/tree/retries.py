"""Collapse retried activities and child workflows into one unit.

An activity whose attempt failed can be scheduled again under the same
activity id. Each Scheduled→Started→(Completed|Failed) cycle is an attempt of
the same logical unit rather than a unit of its own.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from wflens.history.event_model import CorrelatedEvent, Phase, UnitKind
from wflens.tree.status import current_terminal

if TYPE_CHECKING:
    from wflens.tree.grouper import UnitBuilder

# Kinds whose repeated scheduling is a retry, not a new unit
RETRYABLE_KINDS = frozenset({UnitKind.ACTIVITY, UnitKind.CHILD_WORKFLOW})


def retry_identity(event: CorrelatedEvent) -> Optional[tuple[UnitKind, str]]:
    """Key under which repeated scheduling events are considered the same unit."""
    kind = event.unit_kind
    if kind is UnitKind.ACTIVITY:
        name = event.activity_id or event.activity_type
    elif kind is UnitKind.CHILD_WORKFLOW:
        name = event.child_workflow_id
    else:
        return None
    return (kind, name) if name else None


class RetryIndex:
    """Tracks the latest unit per retry identity during grouping."""

    def __init__(self) -> None:
        self._units: dict[tuple[UnitKind, str], UnitBuilder] = {}

    def register(self, unit: UnitBuilder, event: CorrelatedEvent) -> None:
        key = retry_identity(event)
        if key is not None:
            self._units[key] = unit

    def claim(self, event: CorrelatedEvent) -> Optional[UnitBuilder]:
        """Return the unit a scheduling event retries, if any.

        Only a unit whose latest attempt ended without completing is retried.
        A completed unit is finished and an in-flight one is a concurrent
        sibling, so scheduling the same identity again starts a new unit.
        """
        key = retry_identity(event)
        if key is None:
            return None
        unit = self._units.get(key)
        if unit is None:
            return None
        terminal = current_terminal(unit.events)
        if terminal is None or terminal.event_class.status == "Completed":
            return None
        return unit

    def __len__(self) -> int:
        return len(self._units)


def count_attempts(events: Iterable[CorrelatedEvent]) -> int:
    """Number of distinct attempts observed on a unit's START events.

    Attempt numbers are counted per scheduling cycle, so two cycles that both
    report attempt 1 are two attempts. A START event without an attempt number
    counts as the next attempt of its cycle.
    """
    seen: set[tuple[int, int]] = set()
    cycle = 0
    ordinal = 0
    for event in events:
        if event.phase is Phase.SCHEDULE:
            cycle += 1
            ordinal = 0
        elif event.phase is Phase.START:
            ordinal += 1
            number = event.attempt if event.attempt is not None else ordinal
            seen.add((cycle, number))
    return max(1, len(seen))
