from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from wflens.correlation.correlator import CorrelationMiss
from wflens.history.event_model import CorrelatedEvent, UnitKind


class UnitStatus(str, Enum):
    """Display status of a logical unit."""

    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"
    CANCELED = "Canceled"
    TERMINATED = "Terminated"
    FIRED = "Fired"
    SIGNALED = "Signaled"


FAILURE_STATUSES = frozenset({UnitStatus.FAILED, UnitStatus.TIMED_OUT})


@dataclass
class LogicalUnit:
    """A group of causally related events shown as one node / one lane."""

    unit_id: str  # "<kind>:<anchor event id>", stable across refreshes
    kind: UnitKind
    display_name: str
    status: UnitStatus
    start_time: datetime
    end_time: Optional[datetime]
    attempts: int
    member_events: tuple[CorrelatedEvent, ...]
    children: tuple[LogicalUnit, ...] = ()

    # Presentation flag, toggled by the tree consumer
    collapsed: bool = False

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    @property
    def anchor_event_id(self) -> int:
        return self.member_events[0].event_id

    def walk(self, depth: int = 0) -> Iterator[tuple[LogicalUnit, int]]:
        """Pre-order traversal yielding (unit, depth)."""
        yield self, depth
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "kind": self.kind.value,
            "name": self.display_name,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "attempts": self.attempts,
            "event_ids": [e.event_id for e in self.member_events],
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class Forest:
    """The grouped history of one workflow run."""

    roots: tuple[LogicalUnit, ...]
    misses: tuple[CorrelationMiss, ...] = ()
    notes: tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.roots)

    def __iter__(self) -> Iterator[LogicalUnit]:
        return iter(self.roots)

    @property
    def is_empty(self) -> bool:
        return not self.roots

    def walk(self) -> Iterator[tuple[LogicalUnit, int]]:
        """Pre-order traversal of every unit, yielding (unit, depth)."""
        for root in self.roots:
            yield from root.walk()

    def find(self, unit_id: str) -> Optional[LogicalUnit]:
        """Look a unit up by its identity."""
        for unit, _ in self.walk():
            if unit.unit_id == unit_id:
                return unit
        return None

    def event_count(self) -> int:
        return sum(len(unit.member_events) for unit, _ in self.walk())

    def to_dict(self) -> dict[str, Any]:
        return {
            "roots": [root.to_dict() for root in self.roots],
            "notes": list(self.notes),
            "misses": [
                {"event_id": m.event_id, "ref_field": m.ref_field, "ref": m.ref}
                for m in self.misses
            ],
        }
