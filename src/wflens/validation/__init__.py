"""Schema validation for workflow history files."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema

from wflens.history.parse import load_history_document, unwrap_events

HISTORY_SCHEMA = "wflens.history.schema.json"


@dataclass
class ValidationError:
    """A single validation error."""

    path: str
    message: str


@dataclass
class ValidationResult:
    """Result of validating a file."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    file_path: str = ""

    def summary(self) -> str:
        """Return a human-readable summary."""
        if self.valid:
            return f"✓ {self.file_path}: Valid"
        lines = [f"✗ {self.file_path}: {len(self.errors)} error(s)"]
        for err in self.errors:
            lines.append(f"  {err.path} - {err.message}")
        return "\n".join(lines)


def _get_schema_dir() -> Path:
    """schemas/ ships inside the wflens package."""
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict[str, Any]:
    """Load a JSON schema by name."""
    schema_path = _get_schema_dir() / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _format_path(path: list[Any]) -> str:
    """Format a jsonschema path as a dotted string."""
    if not path:
        return "$"
    parts = ["$"]
    for p in path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(f".{p}")
    return "".join(parts)


def validate_history_data(data: Any, file_path: str = "") -> ValidationResult:
    """Validate an already-loaded history document.

    The document may be a bare event list or wrapped in ``events`` /
    ``history.events``; the schema describes the event list.
    """
    result = ValidationResult(valid=True, file_path=file_path)

    try:
        events = unwrap_events(data)
    except ValueError as e:
        result.valid = False
        result.errors.append(ValidationError(path="$", message=str(e)))
        return result

    validator = jsonschema.Draft202012Validator(_load_schema(HISTORY_SCHEMA))
    for err in validator.iter_errors(events):
        result.valid = False
        result.errors.append(ValidationError(
            path=_format_path(list(err.absolute_path)),
            message=err.message,
        ))
    return result


def validate_history(history_path: str | Path) -> ValidationResult:
    """Validate a history file (JSON, JSONL or YAML) against the history schema.

    Args:
        history_path: Path to the history file.

    Returns:
        ValidationResult with any errors found.
    """
    history_path = Path(history_path)
    result = ValidationResult(valid=True, file_path=str(history_path))

    if not history_path.exists():
        result.valid = False
        result.errors.append(ValidationError(
            path="$",
            message=f"File not found: {history_path}"
        ))
        return result

    try:
        data = load_history_document(history_path)
    except (ValueError, OSError) as e:
        result.valid = False
        result.errors.append(ValidationError(path="$", message=str(e)))
        return result

    return validate_history_data(data, file_path=str(history_path))
