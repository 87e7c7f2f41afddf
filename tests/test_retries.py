"""Tests for retry collapsing and attempt counting."""
from __future__ import annotations

from wflens.history.event_model import UnitKind
from wflens.tree.build_tree import build_forest
from wflens.tree.retries import count_attempts, retry_identity
from wflens.tree.unit_model import UnitStatus


def _cycle(make_event, first_id: int, at: float, outcome: str, attempt: int, activity_id: str = "charge"):
    """Scheduled -> Started -> outcome for one attempt of an activity."""
    return [
        make_event(first_id, "ActivityTaskScheduled", at, activity_id=activity_id),
        make_event(first_id + 1, "ActivityTaskStarted", at + 0.1, scheduled_ref=first_id, attempt=attempt),
        make_event(
            first_id + 2, outcome, at + 0.5,
            scheduled_ref=first_id, started_ref=first_id + 1,
        ),
    ]


class TestRetryCollapsing:
    """Repeated scheduling of one identity becomes attempts of one unit."""

    def test_failed_then_completed_attempts(self, make_event, t0) -> None:
        events = [
            make_event(1, "WorkflowExecutionStarted", 0),
            make_event(2, "ActivityTaskScheduled", 1, activity_id="5"),
            make_event(3, "ActivityTaskStarted", 1, scheduled_ref=2),
            make_event(4, "ActivityTaskFailed", 2, scheduled_ref=2, started_ref=3),
            make_event(5, "ActivityTaskScheduled", 2, activity_id="5"),
            make_event(6, "ActivityTaskStarted", 2, scheduled_ref=5),
            make_event(7, "ActivityTaskCompleted", 3, scheduled_ref=5, started_ref=6),
        ]
        forest = build_forest(events)

        activities = [u for u, _ in forest.walk() if u.kind is UnitKind.ACTIVITY]
        assert len(activities) == 1
        unit = activities[0]
        assert unit.attempts == 2
        assert unit.status is UnitStatus.COMPLETED
        assert unit.start_time == t0.replace(second=1)
        assert unit.end_time == t0.replace(second=3)

    def test_three_failures_then_success(self, make_event) -> None:
        events = [make_event(1, "WorkflowExecutionStarted")]
        for attempt in range(1, 5):
            outcome = "ActivityTaskCompleted" if attempt == 4 else "ActivityTaskFailed"
            events += _cycle(make_event, 10 * attempt, float(attempt), outcome, attempt)
        forest = build_forest(events)

        unit = forest.find("Activity:10")
        assert unit is not None
        assert unit.attempts == 4
        assert unit.status is UnitStatus.COMPLETED
        assert len(unit.member_events) == 12
        assert [u.unit_id for u, _ in forest.walk()] == ["Workflow:1", "Activity:10"]

    def test_in_flight_retry_is_running(self, make_event) -> None:
        events = _cycle(make_event, 1, 0, "ActivityTaskTimedOut", 1)
        events += [
            make_event(4, "ActivityTaskScheduled", 1, activity_id="charge"),
            make_event(5, "ActivityTaskStarted", 1.1, scheduled_ref=4, attempt=2),
        ]
        forest = build_forest(events)

        unit = forest.roots[0]
        assert len(forest) == 1
        assert unit.status is UnitStatus.RUNNING
        assert unit.end_time is None
        assert unit.attempts == 2

    def test_completed_unit_is_not_claimed(self, make_event) -> None:
        events = _cycle(make_event, 1, 0, "ActivityTaskCompleted", 1)
        events += _cycle(make_event, 4, 1, "ActivityTaskCompleted", 1)
        forest = build_forest(events)

        assert [root.unit_id for root in forest] == ["Activity:1", "Activity:4"]
        assert all(root.attempts == 1 for root in forest)

    def test_concurrent_same_type_schedules_are_separate(self, make_event) -> None:
        events = [
            make_event(1, "WorkflowExecutionStarted", 0),
            make_event(2, "ActivityTaskScheduled", 1, activity_type="Charge"),
            make_event(3, "ActivityTaskScheduled", 1, activity_type="Charge"),
            make_event(4, "ActivityTaskStarted", 1.1, scheduled_ref=2),
            make_event(5, "ActivityTaskStarted", 1.1, scheduled_ref=3),
            make_event(6, "ActivityTaskCompleted", 2, scheduled_ref=2, started_ref=4),
            make_event(7, "ActivityTaskFailed", 2, scheduled_ref=3, started_ref=5),
        ]
        forest = build_forest(events)

        activities = [u for u, _ in forest.walk() if u.kind is UnitKind.ACTIVITY]
        assert [(u.unit_id, u.status, u.attempts) for u in activities] == [
            ("Activity:2", UnitStatus.COMPLETED, 1),
            ("Activity:3", UnitStatus.FAILED, 1),
        ]

    def test_different_ids_are_separate(self, make_event) -> None:
        events = _cycle(make_event, 1, 0, "ActivityTaskFailed", 1, activity_id="a")
        events += _cycle(make_event, 4, 1, "ActivityTaskFailed", 1, activity_id="b")
        forest = build_forest(events)

        assert len(forest) == 2

    def test_child_workflow_restart(self, make_event) -> None:
        events = [
            make_event(1, "StartChildWorkflowExecutionInitiated", 0, child_workflow_id="c-1"),
            make_event(2, "StartChildWorkflowExecutionFailed", 0.1, initiated_ref=1),
            make_event(3, "StartChildWorkflowExecutionInitiated", 1, child_workflow_id="c-1"),
            make_event(4, "ChildWorkflowExecutionStarted", 1.2, initiated_ref=3),
            make_event(5, "ChildWorkflowExecutionCompleted", 2, initiated_ref=3, started_ref=4),
        ]
        forest = build_forest(events)

        assert len(forest) == 1
        unit = forest.roots[0]
        assert unit.kind is UnitKind.CHILD_WORKFLOW
        assert unit.status is UnitStatus.COMPLETED
        assert len(unit.member_events) == 5

    def test_timers_are_never_retries(self, make_event) -> None:
        events = [
            make_event(1, "TimerStarted", 0, timer_id="t"),
            make_event(2, "TimerCanceled", 1, started_ref=1),
            make_event(3, "TimerStarted", 2, timer_id="t"),
        ]
        forest = build_forest(events)

        assert [root.unit_id for root in forest] == ["Timer:1", "Timer:3"]


class TestRetryIdentity:
    def test_activity_prefers_id(self, make_event) -> None:
        event = make_event(1, "ActivityTaskScheduled", activity_id="a-1", activity_type="Charge")
        assert retry_identity(event) == (UnitKind.ACTIVITY, "a-1")

    def test_activity_falls_back_to_type(self, make_event) -> None:
        event = make_event(1, "ActivityTaskScheduled", activity_type="Charge")
        assert retry_identity(event) == (UnitKind.ACTIVITY, "Charge")

    def test_child_workflow_uses_workflow_id(self, make_event) -> None:
        event = make_event(1, "StartChildWorkflowExecutionInitiated", child_workflow_id="c-1")
        assert retry_identity(event) == (UnitKind.CHILD_WORKFLOW, "c-1")

    def test_timer_has_none(self, make_event) -> None:
        assert retry_identity(make_event(1, "TimerStarted", timer_id="t")) is None


class TestCountAttempts:
    def test_no_starts_is_one(self, make_event) -> None:
        assert count_attempts([make_event(1, "ActivityTaskScheduled")]) == 1
        assert count_attempts([]) == 1

    def test_numbers_within_one_cycle(self, make_event) -> None:
        events = [
            make_event(1, "ActivityTaskScheduled"),
            make_event(2, "ActivityTaskStarted", attempt=1),
            make_event(3, "ActivityTaskStarted", attempt=2),
            make_event(4, "ActivityTaskStarted", attempt=2),
        ]
        assert count_attempts(events) == 2

    def test_unnumbered_starts_count_per_cycle(self, make_event) -> None:
        events = [
            make_event(1, "ActivityTaskScheduled"),
            make_event(2, "ActivityTaskStarted"),
            make_event(3, "ActivityTaskScheduled"),
            make_event(4, "ActivityTaskStarted"),
        ]
        assert count_attempts(events) == 2
