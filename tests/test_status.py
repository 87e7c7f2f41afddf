"""Tests for status derivation and duration formatting."""
from __future__ import annotations

from datetime import timedelta

import pytest

from wflens.history.event_model import UnitKind
from wflens.tree.status import (
    RUNNING_LABEL,
    current_terminal,
    derive_status,
    format_duration,
    format_unit_duration,
    unit_duration,
)
from wflens.tree.unit_model import LogicalUnit, UnitStatus


def _unit(t0, start: float, end: float | None) -> LogicalUnit:
    return LogicalUnit(
        unit_id="Activity:1",
        kind=UnitKind.ACTIVITY,
        display_name="a",
        status=UnitStatus.RUNNING if end is None else UnitStatus.COMPLETED,
        start_time=t0 + timedelta(seconds=start),
        end_time=None if end is None else t0 + timedelta(seconds=end),
        attempts=1,
        member_events=(),
    )


class TestDeriveStatus:
    def test_no_terminal_is_running(self, make_event) -> None:
        events = [make_event(1, "ActivityTaskScheduled"), make_event(2, "ActivityTaskStarted", 1)]
        assert derive_status(events) == (UnitStatus.RUNNING, None)

    def test_terminal_sets_end_time(self, make_event, t0) -> None:
        events = [make_event(1, "ActivityTaskScheduled"), make_event(2, "ActivityTaskTimedOut", 4)]
        status, end = derive_status(events)
        assert status is UnitStatus.TIMED_OUT
        assert end == t0 + timedelta(seconds=4)

    def test_later_schedule_clears_terminal(self, make_event) -> None:
        events = [
            make_event(1, "ActivityTaskScheduled"),
            make_event(2, "ActivityTaskFailed", 1),
            make_event(3, "ActivityTaskScheduled", 2),
        ]
        assert current_terminal(events) is None
        assert derive_status(events)[0] is UnitStatus.RUNNING

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            ("TimerFired", UnitStatus.FIRED),
            ("TimerCanceled", UnitStatus.CANCELED),
            ("WorkflowExecutionTerminated", UnitStatus.TERMINATED),
            ("WorkflowExecutionContinuedAsNew", UnitStatus.COMPLETED),
            ("WorkflowExecutionSignaled", UnitStatus.SIGNALED),
        ],
    )
    def test_status_labels(self, make_event, event_type: str, expected: UnitStatus) -> None:
        assert derive_status([make_event(1, event_type)])[0] is expected


class TestDuration:
    def test_running_has_no_duration(self, t0) -> None:
        unit = _unit(t0, 0, None)
        assert unit_duration(unit) is None
        assert format_unit_duration(unit) == RUNNING_LABEL

    def test_clock_skew_is_clamped(self, t0) -> None:
        assert unit_duration(_unit(t0, 5, 3)) == timedelta(0)

    def test_completed(self, t0) -> None:
        assert format_unit_duration(_unit(t0, 1, 2.5)) == "1.5s"

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0.25, "250ms"),
            (1.5, "1.5s"),
            (125, "2m5s"),
            (5400, "1h30m"),
        ],
    )
    def test_format_duration(self, seconds: float, expected: str) -> None:
        assert format_duration(timedelta(seconds=seconds)) == expected
