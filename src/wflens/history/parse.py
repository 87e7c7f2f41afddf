"""Load workflow history documents and normalize them into CorrelatedEvents.

Accepts the workflow service's JSON export (``eventId``/``eventType``/
``eventTime`` plus a ``...EventAttributes`` block per event) as well as a flat
snake_case form. Files may be a JSON array, a ``{"events": [...]}`` or
``{"history": {"events": [...]}}`` object, JSONL, or YAML with the same shapes.
"""
from __future__ import annotations

import base64
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from wflens.history.event_model import CorrelatedEvent

logger = logging.getLogger(__name__)


# Field name mappings: canonical name -> list of common alternatives
FIELD_MAPPINGS = {
    "event_id": ["event_id", "eventId", "id"],
    "event_type": ["event_type", "eventType", "type"],
    "timestamp": ["timestamp", "eventTime", "event_time", "time"],
    "details": ["details"],
    "scheduled_ref": ["scheduled_ref", "scheduledEventId", "scheduled_event_id"],
    "started_ref": ["started_ref", "startedEventId", "started_event_id"],
    "initiated_ref": ["initiated_ref", "initiatedEventId", "initiated_event_id"],
    "task_ref": ["task_ref", "workflowTaskCompletedEventId", "workflow_task_completed_event_id"],
    "activity_id": ["activity_id", "activityId"],
    "activity_type": ["activity_type", "activityType"],
    "timer_id": ["timer_id", "timerId"],
    "child_workflow_id": ["child_workflow_id", "childWorkflowId", "workflowId"],
    "child_workflow_type": ["child_workflow_type", "childWorkflowType", "workflowType"],
    "signal_name": ["signal_name", "signalName"],
    "attempt": ["attempt"],
    "task_queue": ["task_queue", "taskQueue"],
    "identity": ["identity"],
    "result": ["result"],
    "failure": ["failure", "lastFailure", "reason"],
}

# Keys of the per-event attribute block in the service export
_ATTRIBUTES_SUFFIX = "EventAttributes"

_EVENT_TYPE_PREFIX = "EVENT_TYPE_"
_UPPER_SNAKE = re.compile(r"^[A-Z0-9_]+$")


def normalize_event_type(event_type: str) -> str:
    """Convert ``EVENT_TYPE_ACTIVITY_TASK_SCHEDULED`` style names to CamelCase.

    Already-CamelCase names are returned unchanged.
    """
    event_type = event_type.strip()
    if event_type.startswith(_EVENT_TYPE_PREFIX):
        event_type = event_type[len(_EVENT_TYPE_PREFIX):]
    if "_" in event_type and _UPPER_SNAKE.match(event_type):
        return "".join(part.capitalize() for part in event_type.split("_") if part)
    return event_type


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        ts = str(value)
        if ts.endswith("Z"):
            ts = ts[:-1] + "+00:00"
        # fromisoformat only accepts up to microseconds
        ts = re.sub(r"(\.\d{6})\d+", r"\1", ts)
        parsed = datetime.fromisoformat(ts)
    except (ValueError, TypeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _attributes_block(obj: dict[str, Any]) -> dict[str, Any]:
    """Return the ``...EventAttributes`` block, or ``attributes`` if present."""
    for key, value in obj.items():
        if key.endswith(_ATTRIBUTES_SUFFIX) and isinstance(value, dict):
            return value
    attrs = obj.get("attributes")
    return attrs if isinstance(attrs, dict) else {}


def extract_field(obj: dict[str, Any], canonical_name: str, default: Any = None) -> Any:
    """Extract a field using multiple possible names, searching the attribute block."""
    alternatives = FIELD_MAPPINGS.get(canonical_name, [canonical_name])

    for name in alternatives:
        if name in obj and obj[name] not in (None, ""):
            return obj[name]

    attrs = _attributes_block(obj)
    for name in alternatives:
        if name in attrs and attrs[name] not in (None, ""):
            return attrs[name]

    # Child and external-signal events nest the workflow id one level deeper
    if canonical_name == "child_workflow_id":
        execution = attrs.get("workflowExecution")
        if isinstance(execution, dict) and execution.get("workflowId"):
            return execution["workflowId"]

    return default


def _name_of(value: Any) -> Optional[str]:
    """Service exports wrap type and queue names as ``{"name": ...}``."""
    if value is None:
        return None
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name else None
    return str(value)


def _as_ref(value: Any) -> Optional[int]:
    """Back-references are int64s, often serialized as strings; 0 means unset."""
    if value is None or value == "":
        return None
    try:
        ref = int(value)
    except (TypeError, ValueError):
        return None
    return ref if ref > 0 else None


def format_payloads(value: Any) -> Optional[str]:
    """Render a result payload as text, decoding base64 ``data`` where present."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and "payloads" in value:
        parts: list[str] = []
        for payload in value.get("payloads") or []:
            data = payload.get("data") if isinstance(payload, dict) else payload
            if isinstance(data, str):
                try:
                    parts.append(base64.b64decode(data, validate=True).decode("utf-8"))
                    continue
                except (ValueError, UnicodeDecodeError):
                    pass
            parts.append(json.dumps(data, default=str))
        return ", ".join(parts)
    return json.dumps(value, default=str)


def format_failure(value: Any) -> Optional[str]:
    """Failures carry a message and optionally a stack trace."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        message = value.get("message") or json.dumps(value, default=str)
        stack = value.get("stackTrace")
        if stack:
            message += "\n\nStack Trace:\n" + stack
        return message
    return str(value)


def normalize_event(obj: dict[str, Any]) -> Optional[CorrelatedEvent]:
    """Normalize one history entry into a CorrelatedEvent.

    Returns None for entries without an id, type or parseable timestamp.
    """
    event_id = _as_ref(extract_field(obj, "event_id"))
    event_type = extract_field(obj, "event_type")
    timestamp = parse_timestamp(extract_field(obj, "timestamp"))
    if event_id is None or not event_type or timestamp is None:
        return None

    attempt = extract_field(obj, "attempt")
    try:
        attempt = int(attempt) if attempt is not None else None
    except (TypeError, ValueError):
        attempt = None

    details = extract_field(obj, "details")
    if details is None:
        attrs = _attributes_block(obj)
        details = json.dumps(attrs, default=str, sort_keys=True) if attrs else ""

    return CorrelatedEvent(
        event_id=event_id,
        event_type=normalize_event_type(str(event_type)),
        timestamp=timestamp,
        details=str(details),
        scheduled_ref=_as_ref(extract_field(obj, "scheduled_ref")),
        started_ref=_as_ref(extract_field(obj, "started_ref")),
        initiated_ref=_as_ref(extract_field(obj, "initiated_ref")),
        task_ref=_as_ref(extract_field(obj, "task_ref")),
        activity_id=_name_of(extract_field(obj, "activity_id")),
        activity_type=_name_of(extract_field(obj, "activity_type")),
        timer_id=_name_of(extract_field(obj, "timer_id")),
        child_workflow_id=_name_of(extract_field(obj, "child_workflow_id")),
        child_workflow_type=_name_of(extract_field(obj, "child_workflow_type")),
        signal_name=_name_of(extract_field(obj, "signal_name")),
        attempt=attempt,
        task_queue=_name_of(extract_field(obj, "task_queue")),
        identity=_name_of(extract_field(obj, "identity")),
        result=format_payloads(extract_field(obj, "result")),
        failure=format_failure(extract_field(obj, "failure")),
    )


def unwrap_events(data: Any) -> list[Any]:
    """Accept a bare list, ``{"events": [...]}`` or ``{"history": {"events": [...]}}``."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("history"), dict):
            data = data["history"]
        events = data.get("events")
        if isinstance(events, list):
            return events
    raise ValueError(
        "History document must be a list of events or an object with an 'events' list"
    )


def parse_history_entries(entries: list[Any]) -> list[CorrelatedEvent]:
    """Normalize raw entries, skipping anything that isn't a recognizable event."""
    events: list[CorrelatedEvent] = []
    skipped = 0
    for entry in entries:
        event = normalize_event(entry) if isinstance(entry, dict) else None
        if event is None:
            skipped += 1
            continue
        events.append(event)

    if skipped:
        logger.warning("Skipped %d history entries without id, type or timestamp", skipped)
    return events


def load_history_document(path: Path) -> Any:
    """Read a history file as JSON, JSONL or YAML without normalizing it."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(
            f"Cannot read history file {path}: encoding error.\n"
            f"Ensure the file is saved as UTF-8."
        ) from e

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in history file {path}:\n{e}") from e

    if suffix == ".jsonl":
        entries: list[Any] = []
        for line_num, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"Line {line_num} of {path} is not valid JSON: {e}") from e
        return entries

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in history file {path}: {e}") from e


def load_history_file(path: Path) -> list[CorrelatedEvent]:
    """Load and normalize a history file."""
    return parse_history_entries(unwrap_events(load_history_document(path)))
