"""Resolve history back-references into links between events.

The correlator builds an arena of events keyed by id and, in a single forward
pass, resolves each event's ``scheduled_ref``/``started_ref``/``initiated_ref``
(and ``task_ref``) to the earlier event it continues. A reference to an id that
is missing from the log, or that does not point backwards, is a correlation
miss: it is recorded and dropped, never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from wflens.history.event_model import CorrelatedEvent

logger = logging.getLogger(__name__)

# Reference fields in resolution order
REF_FIELDS = ("scheduled_ref", "started_ref", "initiated_ref")


@dataclass(frozen=True)
class CorrelationMiss:
    """A back-reference that could not be resolved."""

    event_id: int
    ref_field: str
    ref: int


@dataclass
class Correlation:
    """Result of correlating one workflow run's history."""

    events: list[CorrelatedEvent]
    by_id: dict[int, CorrelatedEvent]
    links: dict[int, tuple[int, ...]]
    task_links: dict[int, int]
    misses: list[CorrelationMiss] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def continues(self, event_id: int) -> tuple[int, ...]:
        """Ids of the earlier events this event continues, in resolution order."""
        return self.links.get(event_id, ())

    def scheduling_context(self, event_id: int) -> Optional[int]:
        """Id of the WorkflowTaskCompleted event that issued this event, if known."""
        return self.task_links.get(event_id)

    def missed(self, event_id: int) -> bool:
        """True if any back-reference of this event was dangling."""
        return any(m.event_id == event_id for m in self.misses)


def _order_events(events: Iterable[CorrelatedEvent]) -> tuple[list[CorrelatedEvent], list[str]]:
    """Stable sort by id and drop duplicate ids, keeping the first occurrence."""
    event_list = list(events)
    notes: list[str] = []

    ordered = sorted(event_list, key=lambda e: e.event_id)
    if ordered != event_list:
        notes.append("Events were not in id order; sorted by event id")

    unique: list[CorrelatedEvent] = []
    seen: set[int] = set()
    duplicates = 0
    for event in ordered:
        if event.event_id in seen:
            duplicates += 1
            continue
        seen.add(event.event_id)
        unique.append(event)

    if duplicates:
        notes.append(f"Dropped {duplicates} event(s) with duplicate ids")
    return unique, notes


def _resolve(
    event: CorrelatedEvent,
    ref_field: str,
    ref: Optional[int],
    by_id: dict[int, CorrelatedEvent],
    misses: list[CorrelationMiss],
) -> Optional[int]:
    if not ref:
        return None
    if ref >= event.event_id or ref not in by_id:
        misses.append(CorrelationMiss(event_id=event.event_id, ref_field=ref_field, ref=ref))
        logger.debug(
            "Event %d (%s): %s=%d does not resolve",
            event.event_id, event.event_type, ref_field, ref,
        )
        return None
    return ref


def correlate(events: Iterable[CorrelatedEvent]) -> Correlation:
    """Correlate a workflow run's history.

    Args:
        events: The run's events, normally already in id order

    Returns:
        Correlation with the id-ordered events, links and any misses
    """
    ordered, notes = _order_events(events)
    if not ordered:
        return Correlation(events=[], by_id={}, links={}, task_links={}, notes=["No events to correlate"])

    by_id: dict[int, CorrelatedEvent] = {}
    links: dict[int, tuple[int, ...]] = {}
    task_links: dict[int, int] = {}
    misses: list[CorrelationMiss] = []

    # Forward pass: by_id only holds earlier events while an event is resolved
    for event in ordered:
        resolved: list[int] = []
        for ref_field in REF_FIELDS:
            ref = _resolve(event, ref_field, getattr(event, ref_field), by_id, misses)
            if ref is not None and ref not in resolved:
                resolved.append(ref)
        if resolved:
            links[event.event_id] = tuple(resolved)

        task_ref = _resolve(event, "task_ref", event.task_ref, by_id, misses)
        if task_ref is not None:
            task_links[event.event_id] = task_ref

        by_id[event.event_id] = event

    if misses:
        notes.append(f"{len(misses)} back-reference(s) could not be resolved")

    return Correlation(
        events=ordered,
        by_id=by_id,
        links=links,
        task_links=task_links,
        misses=misses,
        notes=notes,
    )
