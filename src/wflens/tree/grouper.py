"""Partition correlated events into logical units and nest them.

One forward pass in id order. Every event lands in exactly one unit: a
scheduling event opens a unit (or is claimed as a retry), continuation events
join the unit that owns the event they reference, and events with nothing to
continue fall back to the run's Workflow unit. Dangling references never abort
the pass; the event starts a standalone unit instead.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from wflens.correlation.correlator import Correlation
from wflens.history.event_model import CorrelatedEvent, Phase, UnitKind
from wflens.tree.retries import RetryIndex

logger = logging.getLogger(__name__)

# Kinds that fall back to the Workflow unit when they continue nothing
_WORKFLOW_LEVEL_KINDS = frozenset({UnitKind.WORKFLOW, UnitKind.OTHER})


class UnitBuilder:
    """Mutable accumulator for one unit while the pass is running."""

    def __init__(self, kind: UnitKind, anchor: CorrelatedEvent) -> None:
        self.kind = kind
        self.events: list[CorrelatedEvent] = [anchor]
        self.children: list[UnitBuilder] = []

    @property
    def anchor(self) -> CorrelatedEvent:
        return self.events[0]

    @property
    def unit_id(self) -> str:
        return f"{self.kind.value}:{self.anchor.event_id}"

    @property
    def start_time(self) -> datetime:
        """Earliest scheduling timestamp, or earliest member when never scheduled."""
        scheduled = [e.timestamp for e in self.events if e.phase is Phase.SCHEDULE]
        return min(scheduled or [e.timestamp for e in self.events])

    def add(self, event: CorrelatedEvent) -> None:
        self.events.append(event)

    def __repr__(self) -> str:
        return f"UnitBuilder({self.unit_id}, events={len(self.events)}, children={len(self.children)})"


class _Pass:
    def __init__(self, correlation: Correlation) -> None:
        self.correlation = correlation
        self.roots: list[UnitBuilder] = []
        self.owner: dict[int, UnitBuilder] = {}
        self.retries = RetryIndex()
        self.workflow: Optional[UnitBuilder] = None
        self.standalone = 0

    def run(self) -> list[UnitBuilder]:
        for event in self.correlation.events:
            self.owner[event.event_id] = self._place(event)
        if self.standalone:
            logger.debug("%d event(s) started standalone units", self.standalone)
        return self.roots

    def _place(self, event: CorrelatedEvent) -> UnitBuilder:
        phase = event.phase
        kind = event.unit_kind

        if phase is Phase.SCHEDULE:
            if kind is UnitKind.WORKFLOW:
                return self._workflow_unit(event)
            unit = self.retries.claim(event)
            if unit is not None:
                unit.add(event)
                return unit
            unit = UnitBuilder(kind, event)
            self._attach(unit, event)
            self.retries.register(unit, event)
            return unit

        if phase is Phase.INSTANT:
            unit = UnitBuilder(kind, event)
            parent = self.workflow
            if parent is not None and parent.start_time <= event.timestamp:
                parent.children.append(unit)
            else:
                self.roots.append(unit)
            return unit

        target = self._continued_unit(event)
        if target is not None:
            target.add(event)
            return target

        if kind in _WORKFLOW_LEVEL_KINDS:
            return self._workflow_unit(event)

        # Continues an event that is not in the log
        self.standalone += 1
        unit = UnitBuilder(kind, event)
        self._attach(unit, event)
        self.retries.register(unit, event)
        return unit

    def _continued_unit(self, event: CorrelatedEvent) -> Optional[UnitBuilder]:
        for ref in self.correlation.continues(event.event_id):
            unit = self.owner.get(ref)
            if unit is not None:
                return unit
        return None

    def _workflow_unit(self, event: CorrelatedEvent) -> UnitBuilder:
        """Add the event to the Workflow unit, creating it on first use."""
        if self.workflow is None:
            self.workflow = UnitBuilder(UnitKind.WORKFLOW, event)
            self.roots.append(self.workflow)
        else:
            self.workflow.add(event)
        return self.workflow

    def _attach(self, unit: UnitBuilder, event: CorrelatedEvent) -> None:
        """Nest a new unit under the workflow task that issued it, else the workflow."""
        task_event = self.correlation.scheduling_context(event.event_id)
        parent = self.owner.get(task_event) if task_event is not None else None
        if parent is None:
            parent = self.workflow
        if parent is not None and parent.start_time <= unit.start_time:
            parent.children.append(unit)
        else:
            self.roots.append(unit)


def group_events(correlation: Correlation) -> list[UnitBuilder]:
    """Group a correlated history into root unit builders.

    Args:
        correlation: Output of ``correlate``

    Returns:
        Root builders in creation order; the caller orders and freezes them
    """
    return _Pass(correlation).run()
