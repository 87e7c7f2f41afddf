"""Tests for history event classification and file parsing."""
from __future__ import annotations

import json
import logging
from datetime import timezone
from pathlib import Path

import pytest

from wflens.history.event_model import Phase, UnitKind, classify_event_type
from wflens.history.parse import (
    format_failure,
    format_payloads,
    load_history_document,
    load_history_file,
    normalize_event,
    normalize_event_type,
    parse_history_entries,
    parse_timestamp,
    unwrap_events,
)


# =============================================================================
# Event classification
# =============================================================================


class TestClassifyEventType:
    """Kind and phase are decided once from the event type."""

    def test_activity_lifecycle(self) -> None:
        assert classify_event_type("ActivityTaskScheduled").phase is Phase.SCHEDULE
        assert classify_event_type("ActivityTaskStarted").phase is Phase.START
        completed = classify_event_type("ActivityTaskCompleted")
        assert completed.kind is UnitKind.ACTIVITY
        assert completed.phase is Phase.TERMINAL
        assert completed.status == "Completed"

    def test_timer_fired_status(self) -> None:
        fired = classify_event_type("TimerFired")
        assert fired.kind is UnitKind.TIMER
        assert fired.status == "Fired"

    def test_continued_as_new_counts_as_completed(self) -> None:
        assert classify_event_type("WorkflowExecutionContinuedAsNew").status == "Completed"

    def test_incoming_signal_is_instant(self) -> None:
        signaled = classify_event_type("WorkflowExecutionSignaled")
        assert signaled.kind is UnitKind.SIGNAL
        assert signaled.phase is Phase.INSTANT

    def test_unknown_type_is_other(self) -> None:
        marker = classify_event_type("MarkerRecorded")
        assert marker.kind is UnitKind.OTHER
        assert marker.phase is Phase.PROGRESS
        assert marker.status is None

    def test_event_exposes_kind_and_phase(self, make_event) -> None:
        event = make_event(3, "ActivityTaskStarted", scheduled_ref=2)
        assert event.unit_kind is UnitKind.ACTIVITY
        assert event.phase is Phase.START
        assert event.back_refs() == (2,)


# =============================================================================
# Field normalization
# =============================================================================


class TestNormalizeEventType:
    def test_service_enum_name(self) -> None:
        assert normalize_event_type("EVENT_TYPE_ACTIVITY_TASK_SCHEDULED") == "ActivityTaskScheduled"

    def test_camel_case_unchanged(self) -> None:
        assert normalize_event_type("TimerFired") == "TimerFired"


class TestParseTimestamp:
    def test_nanosecond_precision_is_truncated(self) -> None:
        ts = parse_timestamp("2026-03-02T10:00:00.123456789Z")
        assert ts is not None
        assert ts.microsecond == 123456
        assert ts.tzinfo == timezone.utc

    def test_epoch_milliseconds(self) -> None:
        ts = parse_timestamp(1500)
        assert ts is not None
        assert ts.year == 1970
        assert ts.second == 1
        assert ts.microsecond == 500000

    def test_naive_is_utc(self) -> None:
        ts = parse_timestamp("2026-03-02T10:00:00")
        assert ts is not None
        assert ts.tzinfo == timezone.utc

    def test_garbage_is_none(self) -> None:
        assert parse_timestamp("not a time") is None
        assert parse_timestamp(None) is None


class TestNormalizeEvent:
    def test_service_export_entry(self) -> None:
        entry = {
            "eventId": "7",
            "eventTime": "2026-03-02T10:00:00.200Z",
            "eventType": "EVENT_TYPE_ACTIVITY_TASK_STARTED",
            "activityTaskStartedEventAttributes": {
                "scheduledEventId": "5",
                "identity": "worker-1@host",
                "attempt": 3,
            },
        }
        event = normalize_event(entry)

        assert event is not None
        assert event.event_id == 7
        assert event.event_type == "ActivityTaskStarted"
        assert event.scheduled_ref == 5
        assert event.started_ref is None
        assert event.attempt == 3
        assert event.identity == "worker-1@host"
        assert "scheduledEventId" in event.details

    def test_name_wrappers_are_unwrapped(self) -> None:
        entry = {
            "eventId": 5,
            "eventTime": "2026-03-02T10:00:00Z",
            "eventType": "ActivityTaskScheduled",
            "activityTaskScheduledEventAttributes": {
                "activityId": "charge-1",
                "activityType": {"name": "ChargeCard"},
                "taskQueue": {"name": "orders"},
            },
        }
        event = normalize_event(entry)

        assert event is not None
        assert event.activity_id == "charge-1"
        assert event.activity_type == "ChargeCard"
        assert event.task_queue == "orders"

    def test_zero_reference_means_unset(self) -> None:
        event = normalize_event({
            "event_id": 2,
            "event_type": "WorkflowTaskStarted",
            "timestamp": "2026-03-02T10:00:00Z",
            "scheduled_ref": 0,
        })
        assert event is not None
        assert event.scheduled_ref is None

    def test_missing_type_is_rejected(self) -> None:
        assert normalize_event({"eventId": 1, "eventTime": "2026-03-02T10:00:00Z"}) is None

    def test_child_workflow_id_from_execution_block(self) -> None:
        event = normalize_event({
            "eventId": 9,
            "eventTime": "2026-03-02T10:00:00Z",
            "eventType": "ChildWorkflowExecutionStarted",
            "childWorkflowExecutionStartedEventAttributes": {
                "initiatedEventId": "8",
                "workflowExecution": {"workflowId": "pack-7", "runId": "abc"},
            },
        })
        assert event is not None
        assert event.child_workflow_id == "pack-7"
        assert event.initiated_ref == 8


class TestPayloads:
    def test_base64_payload_is_decoded(self) -> None:
        assert format_payloads({"payloads": [{"data": "Im9rIg=="}]}) == '"ok"'

    def test_failure_includes_stack_trace(self) -> None:
        text = format_failure({"message": "card declined", "stackTrace": "at charge"})
        assert text is not None
        assert text.startswith("card declined")
        assert "Stack Trace:" in text


# =============================================================================
# Documents and files
# =============================================================================


class TestUnwrapEvents:
    def test_accepts_wrapped_forms(self) -> None:
        events = [{"eventId": 1}]
        assert unwrap_events(events) == events
        assert unwrap_events({"events": events}) == events
        assert unwrap_events({"history": {"events": events}}) == events

    def test_rejects_other_shapes(self) -> None:
        with pytest.raises(ValueError, match="list of events"):
            unwrap_events({"foo": 1})


class TestParseHistoryEntries:
    def test_bad_entries_are_skipped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        entries = [
            {"eventId": 1, "eventType": "WorkflowExecutionStarted", "eventTime": "2026-03-02T10:00:00Z"},
            {"eventType": "WorkflowTaskScheduled"},
            "not an object",
        ]
        with caplog.at_level(logging.WARNING, logger="wflens.history.parse"):
            events = parse_history_entries(entries)

        assert [e.event_id for e in events] == [1]
        assert "Skipped 2 history entries" in caplog.text


class TestLoadHistoryFile:
    def test_service_export_jsonl(self, order_history_path: Path) -> None:
        events = load_history_file(order_history_path)

        assert len(events) == 20
        by_id = {e.event_id: e for e in events}
        assert by_id[1].child_workflow_type == "OrderWorkflow"
        assert by_id[5].task_ref == 4
        assert by_id[8].failure is not None and "card declined" in by_id[8].failure
        assert by_id[15].result == '"ok"'
        assert by_id[16].started_ref == 6

    def test_flat_yaml(self, shipment_history_path: Path) -> None:
        events = load_history_file(shipment_history_path)

        assert len(events) == 8
        by_id = {e.event_id: e for e in events}
        assert by_id[5].child_workflow_id == "pack-7"
        assert by_id[5].child_workflow_type == "PackWorkflow"
        assert by_id[7].initiated_ref == 5

    def test_json_array(self, tmp_path: Path) -> None:
        path = tmp_path / "wf.json"
        path.write_text(json.dumps([
            {"event_id": 1, "event_type": "WorkflowExecutionStarted", "timestamp": "2026-03-02T10:00:00Z"},
        ]))
        assert [e.event_type for e in load_history_file(path)] == ["WorkflowExecutionStarted"]

    def test_invalid_jsonl_line_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.jsonl"
        path.write_text('{"eventId": 1}\n{not json}\n')
        with pytest.raises(ValueError, match="Line 2"):
            load_history_document(path)

    def test_invalid_yaml_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("events: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_history_document(path)
