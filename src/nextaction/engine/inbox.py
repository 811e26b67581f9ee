"""Inbox items and their tentative assignments.

An inbox item has neither a project nor a parent task. While it sits in the
inbox it may carry a tentative target; ``reconcile`` turns tentative targets
into real assignments in one pass.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import InvalidTransitionError
from ..model import Task, normalize_project_type


class InboxState(str, Enum):
    UNASSIGNED = "unassigned"
    TENTATIVE = "tentative"
    RESOLVED = "resolved"


def is_inbox_item(task: Task) -> bool:
    return task.project_id is None and task.parent_task_id is None


def inbox_state(task: Task) -> InboxState:
    if not is_inbox_item(task):
        return InboxState.RESOLVED
    if task.tentative_project_id is not None or task.tentative_parent_task_id is not None:
        return InboxState.TENTATIVE
    return InboxState.UNASSIGNED


def set_tentative(
    task: Task,
    *,
    project_id: str | None = None,
    parent_task_id: str | None = None,
) -> Task:
    if project_id is not None and parent_task_id is not None:
        raise ValueError("choose a tentative project or a tentative parent task, not both")
    if inbox_state(task) is InboxState.RESOLVED:
        raise InvalidTransitionError(
            f"task {task.id} is already assigned; tentative targets apply to inbox items"
        )
    return task.with_changes(
        tentative_project_id=project_id,
        tentative_parent_task_id=parent_task_id,
    )


@dataclass(frozen=True)
class ReconcileResult:
    updated: list[Task] = field(default_factory=list)
    processed: int = 0


def _resolve_one(
    task: Task,
    parent_lookup: Callable[[str], Task | None],
) -> Task:
    if task.tentative_parent_task_id is not None:
        parent = parent_lookup(task.tentative_parent_task_id)
        return task.with_changes(
            parent_task_id=task.tentative_parent_task_id,
            project_id=parent.project_id if parent is not None else None,
            tentative_project_id=None,
            tentative_parent_task_id=None,
        )
    return task.with_changes(
        project_id=task.tentative_project_id,
        tentative_project_id=None,
        tentative_parent_task_id=None,
    )


def reconcile(
    tasks: Iterable[Task],
    parent_lookup: Callable[[str], Task | None],
) -> ReconcileResult:
    """Apply every tentative target among active inbox items.

    A tentative parent wins over a tentative project; the item then inherits
    the parent's current project. ``parent_lookup`` returns ``None`` for a
    parent that no longer exists.
    """
    updated: list[Task] = []
    for task in tasks:
        if not task.is_active or inbox_state(task) is not InboxState.TENTATIVE:
            continue
        updated.append(_resolve_one(task, parent_lookup))
    return ReconcileResult(updated=updated, processed=len(updated))


def _require_inbox(task: Task) -> None:
    if not is_inbox_item(task):
        raise InvalidTransitionError(f"task {task.id} is not in the inbox")


def resolve_to_project(
    task: Task,
    project_id: str,
    *,
    position: int | None = None,
) -> Task:
    _require_inbox(task)
    changes: dict[str, Any] = {
        "project_id": project_id,
        "tentative_project_id": None,
        "tentative_parent_task_id": None,
    }
    if position is not None:
        changes["order"] = position
    return task.with_changes(**changes)


def resolve_to_parent(
    task: Task,
    parent: Task,
    *,
    position: int | None = None,
) -> Task:
    _require_inbox(task)
    if parent.id == task.id:
        raise InvalidTransitionError("a task cannot be its own parent")
    changes: dict[str, Any] = {
        "parent_task_id": parent.id,
        "project_id": parent.project_id,
        "tentative_project_id": None,
        "tentative_parent_task_id": None,
    }
    if position is not None:
        changes["order"] = position
    return task.with_changes(**changes)


def project_from_inbox_item(task: Task, project_type: str | None = None) -> dict[str, Any]:
    """Field set for a project that replaces ``task``."""
    _require_inbox(task)
    kind = normalize_project_type(project_type) if project_type else "parallel"
    return {
        "title": task.title,
        "note": task.note,
        "flagged": task.flagged,
        "due_date": task.due_date,
        "defer_date": task.defer_date,
        "type": kind,
        "auto_complete": kind != "single_actions",
    }
