"""Tests for tree expand/collapse and failure search."""
from __future__ import annotations

import pytest

from wflens.tree.build_tree import build_forest
from wflens.tree.navigation import collapse_all, expand_all, find_first_failed, toggle, visible_units
from wflens.tree.unit_model import Forest


@pytest.fixture
def failing_forest(make_event) -> Forest:
    """Workflow -> WorkflowTask -> failed activity, collapsed below the root."""
    return build_forest(
        [
            make_event(1, "WorkflowExecutionStarted", 0),
            make_event(2, "WorkflowTaskScheduled", 0.1),
            make_event(3, "WorkflowTaskStarted", 0.2, scheduled_ref=2),
            make_event(4, "WorkflowTaskCompleted", 0.3, scheduled_ref=2, started_ref=3),
            make_event(5, "ActivityTaskScheduled", 0.4, task_ref=4, activity_id="x"),
            make_event(6, "ActivityTaskStarted", 0.5, scheduled_ref=5),
            make_event(7, "ActivityTaskFailed", 0.9, scheduled_ref=5, started_ref=6),
        ],
        collapse_depth=1,
    )


def _visible_ids(forest: Forest) -> list[str]:
    return [unit.unit_id for unit, _ in visible_units(forest)]


class TestVisibleUnits:
    def test_collapsed_subtrees_are_hidden(self, failing_forest: Forest) -> None:
        assert _visible_ids(failing_forest) == ["Workflow:1", "WorkflowTask:2"]

    def test_toggle(self, failing_forest: Forest) -> None:
        task = failing_forest.find("WorkflowTask:2")
        assert task is not None
        assert toggle(task) is False
        assert _visible_ids(failing_forest) == ["Workflow:1", "WorkflowTask:2", "Activity:5"]
        assert toggle(task) is True

    def test_expand_and_collapse_all(self, failing_forest: Forest) -> None:
        expand_all(failing_forest)
        assert len(_visible_ids(failing_forest)) == 3
        collapse_all(failing_forest)
        assert _visible_ids(failing_forest) == ["Workflow:1"]


class TestFindFirstFailed:
    def test_reveals_ancestors(self, failing_forest: Forest) -> None:
        unit = find_first_failed(failing_forest)

        assert unit is not None
        assert unit.unit_id == "Activity:5"
        assert "Activity:5" in _visible_ids(failing_forest)

    def test_without_reveal(self, failing_forest: Forest) -> None:
        unit = find_first_failed(failing_forest, reveal=False)
        assert unit is not None
        assert "Activity:5" not in _visible_ids(failing_forest)

    def test_no_failures(self, make_event) -> None:
        forest = build_forest([make_event(1, "WorkflowExecutionStarted")])
        assert find_first_failed(forest) is None
