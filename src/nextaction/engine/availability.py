"""Availability classification, blocking reasons and the sequential-project gate."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..model import Project, Task, ordering_key
from .dates import is_deferred


class BlockingReason(str, Enum):
    DEFERRED = "deferred"
    PROJECT_ON_HOLD = "project_on_hold"
    PROJECT_DEFERRED = "project_deferred"
    SEQUENTIAL = "sequential"
    # Reserved for blocked-parent propagation; never populated yet.
    PARENT_BLOCKED = "parent_blocked"


@dataclass(frozen=True)
class Availability:
    is_available: bool
    blocking_reasons: frozenset[BlockingReason] = field(default_factory=frozenset)

    def reason_values(self) -> list[str]:
        return sorted(reason.value for reason in self.blocking_reasons)


def is_project_blocking(status: str | None) -> bool:
    if status is None:
        return False
    return status != "active"


def first_active(tasks: Iterable[Task]) -> Task | None:
    active = sorted((task for task in tasks if task.is_active), key=ordering_key)
    return active[0] if active else None


def is_blocked_by_sequential(
    task: Task,
    project_type: str | None,
    siblings: Iterable[Task],
) -> bool:
    if task.project_id is None or project_type != "sequential":
        return False
    first = first_active(
        sibling for sibling in siblings if sibling.project_id == task.project_id
    )
    if first is None:
        return False
    return first.id != task.id


def classify(
    task: Task,
    effective_defer: datetime | None,
    project: Project | None,
    siblings: Iterable[Task],
    now: datetime,
) -> Availability:
    if not task.is_active:
        return Availability(is_available=False)

    reasons: set[BlockingReason] = set()
    if is_deferred(effective_defer, now):
        reasons.add(BlockingReason.DEFERRED)

    if project is not None:
        if is_project_blocking(project.status):
            reasons.add(BlockingReason.PROJECT_ON_HOLD)
        if is_deferred(project.defer_date, now):
            reasons.add(BlockingReason.PROJECT_DEFERRED)
        if is_blocked_by_sequential(task, project.type, siblings):
            reasons.add(BlockingReason.SEQUENTIAL)

    return Availability(
        is_available=not reasons,
        blocking_reasons=frozenset(reasons),
    )
