from __future__ import annotations

from datetime import datetime, timezone

import pytest

from nextaction.engine.inbox import (
    InboxState,
    inbox_state,
    project_from_inbox_item,
    reconcile,
    resolve_to_parent,
    resolve_to_project,
    set_tentative,
)
from nextaction.errors import InvalidTransitionError
from nextaction.model import Task


def _lookup(*tasks: Task):
    by_id = {task.id: task for task in tasks}
    return by_id.get


def test_inbox_states() -> None:
    assert inbox_state(Task(id="a", title="A")) is InboxState.UNASSIGNED
    assert inbox_state(Task(id="a", title="A", tentative_project_id="p")) is InboxState.TENTATIVE
    assert inbox_state(Task(id="a", title="A", project_id="p")) is InboxState.RESOLVED
    assert inbox_state(Task(id="a", title="A", parent_task_id="b")) is InboxState.RESOLVED


def test_set_tentative_replaces_and_clears() -> None:
    task = Task(id="a", title="A", tentative_parent_task_id="old")

    moved = set_tentative(task, project_id="p")
    assert moved.tentative_project_id == "p"
    assert moved.tentative_parent_task_id is None

    cleared = set_tentative(moved)
    assert inbox_state(cleared) is InboxState.UNASSIGNED


def test_set_tentative_rejects_both_targets_and_assigned_tasks() -> None:
    with pytest.raises(ValueError):
        set_tentative(Task(id="a", title="A"), project_id="p", parent_task_id="t")
    with pytest.raises(InvalidTransitionError):
        set_tentative(Task(id="a", title="A", project_id="p"), project_id="q")


def test_reconcile_parent_wins_and_inherits_parent_project() -> None:
    parent = Task(id="parent", title="Parent", project_id="proj")
    item = Task(
        id="item",
        title="Item",
        tentative_project_id="other",
        tentative_parent_task_id="parent",
    )

    result = reconcile([item], _lookup(parent))

    assert result.processed == 1
    updated = result.updated[0]
    assert updated.parent_task_id == "parent"
    assert updated.project_id == "proj"
    assert updated.tentative_project_id is None
    assert updated.tentative_parent_task_id is None


def test_reconcile_project_only_and_skips_others() -> None:
    to_project = Task(id="a", title="A", tentative_project_id="p")
    untouched = Task(id="b", title="B")
    finished = Task(id="c", title="C", status="completed", tentative_project_id="p")

    result = reconcile([to_project, untouched, finished], _lookup())

    assert result.processed == 1
    assert result.updated[0].project_id == "p"
    assert result.updated[0].parent_task_id is None


def test_reconcile_with_vanished_parent_leaves_project_empty() -> None:
    item = Task(id="a", title="A", tentative_parent_task_id="gone")
    updated = reconcile([item], _lookup()).updated[0]
    assert updated.parent_task_id == "gone"
    assert updated.project_id is None


def test_resolve_to_project_and_parent() -> None:
    item = Task(id="a", title="A", tentative_project_id="x")

    filed = resolve_to_project(item, "p", position=3)
    assert (filed.project_id, filed.order, filed.tentative_project_id) == ("p", 3, None)

    parent = Task(id="t", title="T", project_id="proj")
    nested = resolve_to_parent(item, parent)
    assert nested.parent_task_id == "t"
    assert nested.project_id == "proj"

    with pytest.raises(InvalidTransitionError):
        resolve_to_parent(item, item)
    with pytest.raises(InvalidTransitionError):
        resolve_to_project(filed, "q")


def test_project_from_inbox_item_copies_fields() -> None:
    due = datetime(2025, 2, 1, tzinfo=timezone.utc)
    item = Task(id="a", title="Plan trip", note="ideas", flagged=True, due_date=due)

    fields = project_from_inbox_item(item)
    assert fields["title"] == "Plan trip"
    assert fields["due_date"] == due
    assert fields["type"] == "parallel"
    assert fields["auto_complete"] is True

    single = project_from_inbox_item(item, "single_actions")
    assert single["auto_complete"] is False

    with pytest.raises(ValueError):
        project_from_inbox_item(item, "kanban")
