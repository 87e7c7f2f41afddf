from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class UnitKind(str, Enum):
    """Kind of logical unit an event belongs to."""

    WORKFLOW = "Workflow"
    WORKFLOW_TASK = "WorkflowTask"
    ACTIVITY = "Activity"
    TIMER = "Timer"
    CHILD_WORKFLOW = "ChildWorkflow"
    SIGNAL = "Signal"
    OTHER = "Other"


class Phase(str, Enum):
    """Where an event sits in its unit's lifecycle."""

    SCHEDULE = "schedule"  # opens a unit
    START = "start"  # an attempt began
    TERMINAL = "terminal"  # closes the current attempt
    INSTANT = "instant"  # opens and closes a unit in one event
    PROGRESS = "progress"  # anything else


@dataclass(frozen=True)
class EventClass:
    kind: UnitKind
    phase: Phase
    status: Optional[str] = None  # terminal/instant status label


# event_type -> (kind, phase, status label)
EVENT_CLASSES: dict[str, EventClass] = {
    # Workflow execution
    "WorkflowExecutionStarted": EventClass(UnitKind.WORKFLOW, Phase.SCHEDULE),
    "WorkflowExecutionCompleted": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "Completed"),
    "WorkflowExecutionFailed": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "Failed"),
    "WorkflowExecutionTimedOut": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "TimedOut"),
    "WorkflowExecutionCanceled": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "Canceled"),
    "WorkflowExecutionTerminated": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "Terminated"),
    "WorkflowExecutionContinuedAsNew": EventClass(UnitKind.WORKFLOW, Phase.TERMINAL, "Completed"),
    "WorkflowExecutionCancelRequested": EventClass(UnitKind.WORKFLOW, Phase.PROGRESS),
    # Workflow tasks
    "WorkflowTaskScheduled": EventClass(UnitKind.WORKFLOW_TASK, Phase.SCHEDULE),
    "WorkflowTaskStarted": EventClass(UnitKind.WORKFLOW_TASK, Phase.START),
    "WorkflowTaskCompleted": EventClass(UnitKind.WORKFLOW_TASK, Phase.TERMINAL, "Completed"),
    "WorkflowTaskFailed": EventClass(UnitKind.WORKFLOW_TASK, Phase.TERMINAL, "Failed"),
    "WorkflowTaskTimedOut": EventClass(UnitKind.WORKFLOW_TASK, Phase.TERMINAL, "TimedOut"),
    # Activities
    "ActivityTaskScheduled": EventClass(UnitKind.ACTIVITY, Phase.SCHEDULE),
    "ActivityTaskStarted": EventClass(UnitKind.ACTIVITY, Phase.START),
    "ActivityTaskCompleted": EventClass(UnitKind.ACTIVITY, Phase.TERMINAL, "Completed"),
    "ActivityTaskFailed": EventClass(UnitKind.ACTIVITY, Phase.TERMINAL, "Failed"),
    "ActivityTaskTimedOut": EventClass(UnitKind.ACTIVITY, Phase.TERMINAL, "TimedOut"),
    "ActivityTaskCanceled": EventClass(UnitKind.ACTIVITY, Phase.TERMINAL, "Canceled"),
    "ActivityTaskCancelRequested": EventClass(UnitKind.ACTIVITY, Phase.PROGRESS),
    # Timers
    "TimerStarted": EventClass(UnitKind.TIMER, Phase.SCHEDULE),
    "TimerFired": EventClass(UnitKind.TIMER, Phase.TERMINAL, "Fired"),
    "TimerCanceled": EventClass(UnitKind.TIMER, Phase.TERMINAL, "Canceled"),
    # Child workflows
    "StartChildWorkflowExecutionInitiated": EventClass(UnitKind.CHILD_WORKFLOW, Phase.SCHEDULE),
    "StartChildWorkflowExecutionFailed": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "Failed"),
    "ChildWorkflowExecutionStarted": EventClass(UnitKind.CHILD_WORKFLOW, Phase.START),
    "ChildWorkflowExecutionCompleted": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "Completed"),
    "ChildWorkflowExecutionFailed": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "Failed"),
    "ChildWorkflowExecutionTimedOut": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "TimedOut"),
    "ChildWorkflowExecutionCanceled": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "Canceled"),
    "ChildWorkflowExecutionTerminated": EventClass(UnitKind.CHILD_WORKFLOW, Phase.TERMINAL, "Terminated"),
    # Signals
    "WorkflowExecutionSignaled": EventClass(UnitKind.SIGNAL, Phase.INSTANT, "Signaled"),
    "SignalExternalWorkflowExecutionInitiated": EventClass(UnitKind.SIGNAL, Phase.SCHEDULE),
    "ExternalWorkflowExecutionSignaled": EventClass(UnitKind.SIGNAL, Phase.TERMINAL, "Completed"),
    "SignalExternalWorkflowExecutionFailed": EventClass(UnitKind.SIGNAL, Phase.TERMINAL, "Failed"),
}

_OTHER = EventClass(UnitKind.OTHER, Phase.PROGRESS)


def classify_event_type(event_type: str) -> EventClass:
    """Look up the kind/phase for an event type; unknown types are OTHER."""
    return EVENT_CLASSES.get(event_type, _OTHER)


@dataclass(frozen=True)
class RawEvent:
    """One immutable record in a workflow run's history."""

    event_id: int
    event_type: str
    timestamp: datetime
    details: str = ""

    def __post_init__(self) -> None:
        # Naive timestamps are UTC
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))


@dataclass(frozen=True)
class CorrelatedEvent(RawEvent):
    """A history event with its back-references and identity attributes."""

    # Back-references (ids of earlier events)
    scheduled_ref: Optional[int] = None
    started_ref: Optional[int] = None
    initiated_ref: Optional[int] = None
    task_ref: Optional[int] = None  # WorkflowTaskCompleted that issued the command

    # Identity
    activity_id: Optional[str] = None
    activity_type: Optional[str] = None
    timer_id: Optional[str] = None
    child_workflow_id: Optional[str] = None
    child_workflow_type: Optional[str] = None
    signal_name: Optional[str] = None

    # Metadata
    attempt: Optional[int] = None
    task_queue: Optional[str] = None
    identity: Optional[str] = None

    # Payloads
    result: Optional[str] = None
    failure: Optional[str] = None

    # Decided once from event_type
    event_class: EventClass = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "event_class", classify_event_type(self.event_type))

    @property
    def unit_kind(self) -> UnitKind:
        return self.event_class.kind

    @property
    def phase(self) -> Phase:
        return self.event_class.phase

    def back_refs(self) -> tuple[int, ...]:
        """Non-empty back-references in resolution order."""
        refs = (self.scheduled_ref, self.started_ref, self.initiated_ref)
        return tuple(r for r in refs if r)
