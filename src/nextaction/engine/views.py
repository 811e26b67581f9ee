"""Named task views built on the resolver and classifier."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from ..model import Project, Task, ordering_key
from ..util import to_epoch_ms
from .availability import BlockingReason
from .dates import (
    DEFAULT_DUE_SOON_HOURS,
    is_deferred,
    is_due_soon,
    is_overdue,
)
from .hierarchy import Snapshot, resolve_all
from .next_actions import classify_all, next_actions_from


@dataclass(frozen=True)
class TaskEvaluation:
    task: Task
    effective_due_date: datetime | None
    effective_defer_date: datetime | None
    has_local_due_date: bool
    has_local_defer_date: bool
    is_available: bool
    blocking_reasons: frozenset[BlockingReason]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.task.id,
            "title": self.task.title,
            "status": self.task.status,
            "project_id": self.task.project_id,
            "parent_task_id": self.task.parent_task_id,
            "effective_due_date": to_epoch_ms(self.effective_due_date),
            "effective_defer_date": to_epoch_ms(self.effective_defer_date),
            "has_local_due_date": self.has_local_due_date,
            "has_local_defer_date": self.has_local_defer_date,
            "is_available": self.is_available,
            "blocking_reasons": sorted(r.value for r in self.blocking_reasons),
        }


def evaluate(
    snapshot: Snapshot,
    now: datetime,
    *,
    strict: bool = False,
) -> dict[str, TaskEvaluation]:
    effective = resolve_all(snapshot, strict=strict)
    availability = classify_all(snapshot, now, effective=effective, strict=strict)
    out: dict[str, TaskEvaluation] = {}
    for task in snapshot.ordered_tasks():
        dates = effective[task.id]
        state = availability[task.id]
        out[task.id] = TaskEvaluation(
            task=task,
            effective_due_date=dates.due,
            effective_defer_date=dates.defer,
            has_local_due_date=dates.has_local_due,
            has_local_defer_date=dates.has_local_defer,
            is_available=state.is_available,
            blocking_reasons=state.blocking_reasons,
        )
    return out


def _active(evaluations: dict[str, TaskEvaluation]) -> list[TaskEvaluation]:
    return [ev for ev in evaluations.values() if ev.task.is_active]


def _by_date(
    rows: list[TaskEvaluation],
    date_of: Callable[[TaskEvaluation], datetime | None],
) -> list[TaskEvaluation]:
    # Stable: ties keep sibling order from ``evaluate``.
    return sorted(rows, key=lambda ev: to_epoch_ms(date_of(ev)) or 0)


def overdue(
    snapshot: Snapshot, now: datetime, *, strict: bool = False
) -> list[TaskEvaluation]:
    rows = [
        ev
        for ev in _active(evaluate(snapshot, now, strict=strict))
        if is_overdue(ev.effective_due_date, now)
    ]
    return _by_date(rows, lambda ev: ev.effective_due_date)


def due_soon(
    snapshot: Snapshot,
    now: datetime,
    *,
    threshold_hours: float = DEFAULT_DUE_SOON_HOURS,
    strict: bool = False,
) -> list[TaskEvaluation]:
    rows = [
        ev
        for ev in _active(evaluate(snapshot, now, strict=strict))
        if is_due_soon(ev.effective_due_date, now, threshold_hours)
    ]
    return _by_date(rows, lambda ev: ev.effective_due_date)


def deferred(
    snapshot: Snapshot, now: datetime, *, strict: bool = False
) -> list[TaskEvaluation]:
    rows = [
        ev
        for ev in _active(evaluate(snapshot, now, strict=strict))
        if is_deferred(ev.effective_defer_date, now)
    ]
    return _by_date(rows, lambda ev: ev.effective_defer_date)


def available(
    snapshot: Snapshot, now: datetime, *, strict: bool = False
) -> list[TaskEvaluation]:
    return [
        ev
        for ev in _active(evaluate(snapshot, now, strict=strict))
        if ev.is_available
    ]


def next_actions(
    snapshot: Snapshot, now: datetime, *, strict: bool = False
) -> list[TaskEvaluation]:
    evaluations = evaluate(snapshot, now, strict=strict)
    available_ids = {task_id for task_id, ev in evaluations.items() if ev.is_available}
    ordered = [ev.task for ev in evaluations.values()]
    return [evaluations[task.id] for task in next_actions_from(ordered, available_ids)]


VIEW_NAMES = ("available", "next", "overdue", "due-soon", "deferred")


def run_view(
    name: str,
    snapshot: Snapshot,
    now: datetime,
    *,
    threshold_hours: float = DEFAULT_DUE_SOON_HOURS,
    strict: bool = False,
) -> list[TaskEvaluation]:
    key = name.strip().lower().replace("_", "-")
    if key == "available":
        return available(snapshot, now, strict=strict)
    if key in {"next", "next-actions"}:
        return next_actions(snapshot, now, strict=strict)
    if key == "overdue":
        return overdue(snapshot, now, strict=strict)
    if key == "due-soon":
        return due_soon(
            snapshot, now, threshold_hours=threshold_hours, strict=strict
        )
    if key == "deferred":
        return deferred(snapshot, now, strict=strict)
    raise ValueError(f"unknown view: {name} (choose from {', '.join(VIEW_NAMES)})")


def inbox_stats(tasks: Iterable[Task], now: datetime) -> dict[str, int]:
    """Counts over inbox items; they have no ancestors so own dates apply."""
    stats = {
        "total": 0,
        "active": 0,
        "available": 0,
        "deferred": 0,
        "completed": 0,
        "flagged": 0,
        "with_due_date": 0,
        "overdue": 0,
    }
    for task in tasks:
        if task.project_id is not None or task.parent_task_id is not None:
            continue
        stats["total"] += 1
        if task.status == "completed":
            stats["completed"] += 1
        if not task.is_active:
            continue
        stats["active"] += 1
        if task.flagged:
            stats["flagged"] += 1
        if task.due_date is not None:
            stats["with_due_date"] += 1
        if is_deferred(task.defer_date, now):
            stats["deferred"] += 1
        else:
            stats["available"] += 1
        if is_overdue(task.due_date, now):
            stats["overdue"] += 1
    return stats


def available_projects(projects: Iterable[Project], now: datetime) -> list[Project]:
    return sorted(
        (
            project
            for project in projects
            if project.status == "active" and not is_deferred(project.defer_date, now)
        ),
        key=ordering_key,
    )


def projects_due_for_review(
    projects: Iterable[Project], now: datetime
) -> list[Project]:
    due: list[Project] = []
    for project in projects:
        if project.status != "active" or project.review_interval is None:
            continue
        last = project.last_reviewed_at
        if last is None or last + timedelta(days=project.review_interval) <= now:
            due.append(project)
    return sorted(due, key=ordering_key)
