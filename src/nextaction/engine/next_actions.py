"""Reduce available tasks to the next-actions list.

Every available standalone task is a next action. Inside a project only the
first available task (in sibling order) is.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime

from ..model import Project, Task, ordering_key
from .availability import Availability, classify
from .dates import EffectiveDates
from .hierarchy import Snapshot, resolve_all, resolve_task


def classify_all(
    snapshot: Snapshot,
    now: datetime,
    *,
    effective: dict[str, EffectiveDates] | None = None,
    strict: bool = False,
) -> dict[str, Availability]:
    if effective is None:
        effective = resolve_all(snapshot, strict=strict)
    result: dict[str, Availability] = {}
    for task in snapshot.ordered_tasks():
        siblings = (
            snapshot.tasks_in_project(task.project_id)
            if task.project_id is not None
            else []
        )
        result[task.id] = classify(
            task,
            effective[task.id].defer,
            snapshot.project_for(task),
            siblings,
            now,
        )
    return result


def next_actions_from(
    ordered: Iterable[Task],
    available_ids: Collection[str],
) -> list[Task]:
    selected: list[Task] = []
    seen_projects: set[str] = set()
    for task in ordered:
        if task.id not in available_ids:
            continue
        if task.project_id is None:
            selected.append(task)
            continue
        if task.project_id in seen_projects:
            continue
        seen_projects.add(task.project_id)
        selected.append(task)
    return selected


def select_next_actions(
    tasks: Iterable[Task],
    projects: Iterable[Project],
    now: datetime,
    *,
    strict: bool = False,
) -> list[Task]:
    snapshot = Snapshot.build(tasks=tasks, projects=projects)
    availability = classify_all(snapshot, now, strict=strict)
    available_ids = {
        task_id for task_id, state in availability.items() if state.is_available
    }
    return next_actions_from(snapshot.ordered_tasks(), available_ids)


def first_available_in_project(
    project_id: str,
    tasks: Iterable[Task],
    projects: Iterable[Project],
    now: datetime,
    *,
    strict: bool = False,
) -> Task | None:
    snapshot = Snapshot.build(tasks=tasks, projects=projects)
    project = snapshot.projects.get(project_id)
    members = snapshot.tasks_in_project(project_id)
    memo: dict[str, EffectiveDates] = {}
    for task in sorted(members, key=ordering_key):
        if not task.is_active:
            continue
        dates = resolve_task(snapshot, task.id, memo=memo, strict=strict)
        if classify(task, dates.defer, project, members, now).is_available:
            return task
    return None
