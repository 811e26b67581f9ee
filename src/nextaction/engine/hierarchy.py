"""Snapshot indexing, ancestor traversal and effective-date resolution."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import CyclicHierarchyError, OrphanedReferenceError
from ..model import Folder, Project, Tag, Task, ordering_key
from .dates import EffectiveDates, combine


@dataclass
class Snapshot:
    tasks: dict[str, Task] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)
    folders: dict[str, Folder] = field(default_factory=dict)
    tags: dict[str, Tag] = field(default_factory=dict)
    _by_project: dict[str, list[Task]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _by_parent: dict[str, list[Task]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._by_project = {}
        self._by_parent = {}
        for task in sorted(self.tasks.values(), key=ordering_key):
            if task.project_id is not None:
                self._by_project.setdefault(task.project_id, []).append(task)
            if task.parent_task_id is not None:
                self._by_parent.setdefault(task.parent_task_id, []).append(task)

    @classmethod
    def build(
        cls,
        tasks: Iterable[Task] = (),
        projects: Iterable[Project] = (),
        folders: Iterable[Folder] = (),
        tags: Iterable[Tag] = (),
    ) -> Snapshot:
        return cls(
            tasks={task.id: task for task in tasks},
            projects={project.id: project for project in projects},
            folders={folder.id: folder for folder in folders},
            tags={tag.id: tag for tag in tags},
        )

    def task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise ValueError(f"unknown task: {task_id}")
        return task

    def project(self, project_id: str) -> Project:
        project = self.projects.get(project_id)
        if project is None:
            raise ValueError(f"unknown project: {project_id}")
        return project

    def project_for(self, task: Task) -> Project | None:
        if task.project_id is None:
            return None
        return self.projects.get(task.project_id)

    def tasks_in_project(self, project_id: str) -> list[Task]:
        return list(self._by_project.get(project_id, []))

    def children_of(self, task_id: str) -> list[Task]:
        return list(self._by_parent.get(task_id, []))

    def ordered_tasks(self) -> list[Task]:
        return sorted(self.tasks.values(), key=ordering_key)


def ancestor_chain(snapshot: Snapshot, task_id: str) -> list[str]:
    """Parent-task ids above ``task_id``, nearest first."""
    chain: list[str] = []
    seen = {task_id}
    current = snapshot.task(task_id).parent_task_id
    while current is not None and current in snapshot.tasks:
        if current in seen:
            if current in chain:
                cycle = chain[chain.index(current) :] + [current]
            else:
                cycle = [task_id, *chain, current]
            raise CyclicHierarchyError("task parent", cycle)
        seen.add(current)
        chain.append(current)
        current = snapshot.tasks[current].parent_task_id
    return chain


def check_parent_cycles(parent_by_id: Mapping[str, str | None]) -> list[list[str]]:
    """Return every cycle in an ``id -> parent_id`` table."""
    state: dict[str, int] = {}
    cycles: list[list[str]] = []
    for start in sorted(parent_by_id):
        if state.get(start):
            continue
        path: list[str] = []
        index_by_id: dict[str, int] = {}
        node: str | None = start
        while node is not None and node in parent_by_id and not state.get(node):
            state[node] = 1
            index_by_id[node] = len(path)
            path.append(node)
            node = parent_by_id[node]
        if node is not None and node in index_by_id:
            cycles.append(path[index_by_id[node] :] + [node])
        for visited in path:
            state[visited] = 2
    return cycles


def require_acyclic(parent_by_id: Mapping[str, str | None], *, kind: str) -> None:
    cycles = check_parent_cycles(parent_by_id)
    if cycles:
        raise CyclicHierarchyError(kind, cycles[0])


def _project_dates(
    snapshot: Snapshot,
    task: Task,
    *,
    strict: bool,
) -> tuple[datetime | None, datetime | None]:
    if task.project_id is None:
        return None, None
    project = snapshot.projects.get(task.project_id)
    if project is None:
        if strict:
            raise OrphanedReferenceError("project", task.id, task.project_id)
        return None, None
    dates = resolve_project_dates(project)
    return dates.due, dates.defer


def resolve_task(
    snapshot: Snapshot,
    task_id: str,
    *,
    memo: dict[str, EffectiveDates] | None = None,
    strict: bool = False,
) -> EffectiveDates:
    if memo is None:
        memo = {}
    if task_id in memo:
        return memo[task_id]
    snapshot.task(task_id)

    # Walk up until a resolved ancestor or a root, then fold back down.
    path: list[str] = []
    on_path: set[str] = set()
    parent_result: EffectiveDates | None = None
    current = task_id
    while True:
        if current in memo:
            parent_result = memo[current]
            break
        if current in on_path:
            cycle = path[path.index(current) :] + [current]
            raise CyclicHierarchyError("task parent", cycle)
        path.append(current)
        on_path.add(current)
        parent_id = snapshot.tasks[current].parent_task_id
        if parent_id is None:
            break
        if parent_id not in snapshot.tasks:
            if strict:
                raise OrphanedReferenceError("parent task", current, parent_id)
            break
        current = parent_id

    for node_id in reversed(path):
        task = snapshot.tasks[node_id]
        project_due, project_defer = _project_dates(snapshot, task, strict=strict)
        result = combine(
            task.due_date,
            task.defer_date,
            parent=parent_result,
            project_due=project_due,
            project_defer=project_defer,
        )
        memo[node_id] = result
        parent_result = result
    return memo[task_id]


def resolve_all(snapshot: Snapshot, *, strict: bool = False) -> dict[str, EffectiveDates]:
    memo: dict[str, EffectiveDates] = {}
    for task_id in snapshot.tasks:
        resolve_task(snapshot, task_id, memo=memo, strict=strict)
    return memo


def resolve_project_dates(project: Project) -> EffectiveDates:
    return combine(
        project.due_date,
        project.defer_date,
        parent=None,
        project_due=None,
        project_defer=None,
    )


def validate_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    errors: list[dict[str, Any]] = []
    warnings: list[dict[str, Any]] = []

    tables: tuple[tuple[str, Mapping[str, str | None]], ...] = (
        ("task_parent_cycle", {t.id: t.parent_task_id for t in snapshot.tasks.values()}),
        ("folder_parent_cycle", {f.id: f.parent_id for f in snapshot.folders.values()}),
        ("tag_parent_cycle", {t.id: t.parent_id for t in snapshot.tags.values()}),
    )
    for code, parents in tables:
        for cycle in check_parent_cycles(parents):
            errors.append(
                {
                    "code": code,
                    "id": cycle[0],
                    "cycle": cycle,
                    "message": f"parent cycle detected: {' -> '.join(cycle)}",
                }
            )

    for task in snapshot.ordered_tasks():
        parent = None
        if task.parent_task_id is not None:
            parent = snapshot.tasks.get(task.parent_task_id)
            if parent is None:
                warnings.append(
                    {
                        "code": "orphaned_parent_task",
                        "id": task.id,
                        "missing_id": task.parent_task_id,
                        "message": "parent task is missing; its dates are ignored",
                    }
                )
        if task.project_id is not None and task.project_id not in snapshot.projects:
            warnings.append(
                {
                    "code": "orphaned_project",
                    "id": task.id,
                    "missing_id": task.project_id,
                    "message": "project is missing; its dates and status are ignored",
                }
            )
        if parent is not None and parent.project_id != task.project_id:
            warnings.append(
                {
                    "code": "project_mismatch_with_parent",
                    "id": task.id,
                    "parent_id": parent.id,
                    "message": "subtask project differs from its parent task's project",
                }
            )
        has_tentative = (
            task.tentative_project_id is not None
            or task.tentative_parent_task_id is not None
        )
        if task.tentative_project_id and task.tentative_parent_task_id:
            warnings.append(
                {
                    "code": "both_tentative_fields_set",
                    "id": task.id,
                    "message": "inbox item has both a tentative project and parent task",
                }
            )
        if has_tentative and (task.project_id or task.parent_task_id):
            warnings.append(
                {
                    "code": "tentative_on_assigned_task",
                    "id": task.id,
                    "message": "tentative assignment set on a task that is already assigned",
                }
            )

    for project in snapshot.projects.values():
        if project.folder_id is not None and project.folder_id not in snapshot.folders:
            warnings.append(
                {
                    "code": "orphaned_folder",
                    "id": project.id,
                    "missing_id": project.folder_id,
                    "message": "project folder is missing",
                }
            )

    for tag in snapshot.tags.values():
        if tag.parent_id is not None and tag.parent_id not in snapshot.tags:
            warnings.append(
                {
                    "code": "orphaned_tag_parent",
                    "id": tag.id,
                    "missing_id": tag.parent_id,
                    "message": "parent tag is missing",
                }
            )

    error_codes = {finding["code"] for finding in errors}
    warning_codes = {finding["code"] for finding in warnings}
    checks = {
        "task_acyclic": "task_parent_cycle" not in error_codes,
        "folder_acyclic": "folder_parent_cycle" not in error_codes,
        "tag_acyclic": "tag_parent_cycle" not in error_codes,
        "references_resolved": not any(
            code.startswith("orphaned_") for code in warning_codes
        ),
        "inbox_consistent": not (
            {"both_tentative_fields_set", "tentative_on_assigned_task"} & warning_codes
        ),
    }
    return {
        "counts": {
            "tasks": len(snapshot.tasks),
            "projects": len(snapshot.projects),
            "folders": len(snapshot.folders),
            "tags": len(snapshot.tags),
        },
        "checks": checks,
        "errors": errors,
        "warnings": warnings,
    }
