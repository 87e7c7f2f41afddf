"""Presentation state for one workflow run: forest, selection and viewport.

A refresh fetches the history, rebuilds the forest from scratch and swaps it
in only when the fetch succeeded. Selections are re-resolved by unit identity
against the new forest and fall back to the first node/lane when the unit is
gone. Zoom and scroll belong to the viewport and survive refreshes.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from wflens.config import DEFAULT_COLLAPSE_DEPTH, DEFAULT_FETCH_TIMEOUT_SECONDS, Config
from wflens.diagrams.timeline_layout import TimelineLayout, TimelineViewport, build_layout, collect_lanes
from wflens.history.loader import FetchCancelledError, FetchError, HistoryProvider, WorkflowRef, fetch_history
from wflens.tree.build_tree import build_forest
from wflens.tree.navigation import find_first_failed, visible_units
from wflens.tree.unit_model import Forest, LogicalUnit

logger = logging.getLogger(__name__)


class HistorySession:
    def __init__(
        self,
        provider: HistoryProvider,
        ref: WorkflowRef,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        collapse_depth: int = DEFAULT_COLLAPSE_DEPTH,
        viewport: Optional[TimelineViewport] = None,
    ):
        self.provider = provider
        self.ref = ref
        self.timeout = timeout
        self.collapse_depth = collapse_depth
        self.viewport = viewport or TimelineViewport()

        self.forest: Forest = Forest(roots=())
        self.last_error: Optional[FetchError] = None
        self.selected_node_id: Optional[str] = None
        self.selected_lane_id: Optional[str] = None
        self._lanes: list[LogicalUnit] = []
        self._cancel = threading.Event()

    @classmethod
    def from_config(cls, provider: HistoryProvider, ref: WorkflowRef, config: Config) -> HistorySession:
        return cls(
            provider,
            ref,
            timeout=config.fetch_timeout_seconds,
            collapse_depth=config.collapse_depth,
            viewport=TimelineViewport(bar_width=max(config.timeline_width, 1)),
        )

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def refresh(self) -> bool:
        """Fetch and rebuild. Returns False (keeping prior state) on failure.

        A ``cancel()`` issued before or during the fetch abandons this refresh;
        the flag is cleared once the refresh has finished either way.
        """
        try:
            events = fetch_history(self.provider, self.ref, timeout=self.timeout, cancel_event=self._cancel)
            forest = build_forest(events, collapse_depth=self.collapse_depth)
            if self._cancel.is_set():
                raise FetchCancelledError(self.ref)
        except FetchError as e:
            self.last_error = e
            logger.warning("History refresh failed, keeping previous view: %s", e)
            return False
        finally:
            self._cancel.clear()

        self.apply(forest)
        self.last_error = None
        return True

    def cancel(self) -> None:
        """Abandon an in-flight refresh. The current forest is left as is."""
        self._cancel.set()

    def apply(self, forest: Forest) -> None:
        """Swap in a new forest and re-resolve selections by identity."""
        self.forest = forest
        self._lanes = collect_lanes(forest)

        nodes = [unit for unit, _ in forest.walk()]
        self.selected_node_id = self._reselect(self.selected_node_id, nodes)
        self.selected_lane_id = self._reselect(self.selected_lane_id, self._lanes)

    @staticmethod
    def _reselect(previous: Optional[str], units: list[LogicalUnit]) -> Optional[str]:
        if not units:
            return None
        if previous is not None and any(u.unit_id == previous for u in units):
            return previous
        return units[0].unit_id

    # -------------------------------------------------------------------------
    # Tree selection
    # -------------------------------------------------------------------------

    @property
    def selected_node(self) -> Optional[LogicalUnit]:
        if self.selected_node_id is None:
            return None
        return self.forest.find(self.selected_node_id)

    def select_node(self, unit_id: str) -> bool:
        if self.forest.find(unit_id) is None:
            return False
        self.selected_node_id = unit_id
        return True

    def move_node_selection(self, delta: int) -> Optional[LogicalUnit]:
        """Move through the visible rows of the tree, clamped at both ends."""
        rows = [unit for unit, _ in visible_units(self.forest)]
        if not rows:
            return None
        ids = [u.unit_id for u in rows]
        current = ids.index(self.selected_node_id) if self.selected_node_id in ids else 0
        index = min(max(current + delta, 0), len(rows) - 1)
        self.selected_node_id = ids[index]
        return rows[index]

    def jump_to_failed(self) -> bool:
        unit = find_first_failed(self.forest)
        if unit is None:
            return False
        self.selected_node_id = unit.unit_id
        return True

    # -------------------------------------------------------------------------
    # Timeline selection
    # -------------------------------------------------------------------------

    @property
    def lanes(self) -> list[LogicalUnit]:
        return list(self._lanes)

    @property
    def selected_lane_index(self) -> Optional[int]:
        for i, lane in enumerate(self._lanes):
            if lane.unit_id == self.selected_lane_id:
                return i
        return None

    def select_lane(self, unit_id: str) -> bool:
        if not any(lane.unit_id == unit_id for lane in self._lanes):
            return False
        self.selected_lane_id = unit_id
        return True

    def move_lane_selection(self, delta: int) -> Optional[LogicalUnit]:
        if not self._lanes:
            return None
        current = self.selected_lane_index or 0
        index = min(max(current + delta, 0), len(self._lanes) - 1)
        self.selected_lane_id = self._lanes[index].unit_id
        return self._lanes[index]

    def timeline(self, now: Optional[datetime] = None) -> TimelineLayout:
        return build_layout(self.forest, self.viewport, selected=self.selected_lane_index, now=now)
