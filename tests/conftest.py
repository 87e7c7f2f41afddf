"""wflens test configuration and fixtures."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from wflens.history.event_model import CorrelatedEvent  # noqa: E402

T0 = datetime(2026, 3, 2, 10, 0, 0, tzinfo=timezone.utc)


def _event(event_id: int, event_type: str, at: float = 0.0, **fields: Any) -> CorrelatedEvent:
    """Build an event ``at`` seconds after T0."""
    return CorrelatedEvent(
        event_id=event_id,
        event_type=event_type,
        timestamp=T0 + timedelta(seconds=at),
        **fields,
    )


@pytest.fixture
def t0() -> datetime:
    """Reference start time used by ``make_event``."""
    return T0


@pytest.fixture
def make_event() -> Callable[..., CorrelatedEvent]:
    """Factory: make_event(id, type, at=seconds_after_t0, **fields)."""
    return _event


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def histories_dir(fixtures_dir: Path) -> Path:
    """Return the directory of sample workflow histories."""
    return fixtures_dir / "histories"


@pytest.fixture
def order_history_path(histories_dir: Path) -> Path:
    """Completed run with a retried activity, a timer and a signal (service export JSONL)."""
    return histories_dir / "order-1001.jsonl"


@pytest.fixture
def shipment_history_path(histories_dir: Path) -> Path:
    """In-flight run with a running child workflow and activity (flat YAML)."""
    return histories_dir / "shipment-7.yaml"
