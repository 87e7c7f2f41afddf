"""History events, file parsing and fetching."""
from wflens.history.event_model import CorrelatedEvent, Phase, RawEvent, UnitKind
from wflens.history.loader import FileHistoryProvider, WorkflowRef, fetch_history

__all__ = [
    "CorrelatedEvent",
    "Phase",
    "RawEvent",
    "UnitKind",
    "FileHistoryProvider",
    "WorkflowRef",
    "fetch_history",
]
