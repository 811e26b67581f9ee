"""Effective-date combination rules and date predicates.

Due dates propagate downward as the earliest deadline in the chain; defer
dates propagate as the latest, so a deferred ancestor holds back everything
beneath it. Every predicate takes ``now`` from the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_DUE_SOON_HOURS = 48


@dataclass(frozen=True)
class EffectiveDates:
    due: datetime | None
    defer: datetime | None
    has_local_due: bool = False
    has_local_defer: bool = False


def _present(*values: datetime | None) -> list[datetime]:
    return [value for value in values if value is not None]


def resolve_effective_due(
    item_due: datetime | None,
    parent_effective_due: datetime | None,
    project_due: datetime | None,
) -> datetime | None:
    dates = _present(item_due, parent_effective_due, project_due)
    return min(dates) if dates else None


def resolve_effective_defer(
    item_defer: datetime | None,
    parent_effective_defer: datetime | None,
    project_defer: datetime | None,
) -> datetime | None:
    dates = _present(item_defer, parent_effective_defer, project_defer)
    return max(dates) if dates else None


def combine(
    due: datetime | None,
    defer: datetime | None,
    *,
    parent: EffectiveDates | None,
    project_due: datetime | None,
    project_defer: datetime | None,
) -> EffectiveDates:
    return EffectiveDates(
        due=resolve_effective_due(due, parent.due if parent else None, project_due),
        defer=resolve_effective_defer(
            defer, parent.defer if parent else None, project_defer
        ),
        has_local_due=due is not None,
        has_local_defer=defer is not None,
    )


def is_available(effective_defer: datetime | None, now: datetime) -> bool:
    return effective_defer is None or effective_defer <= now


def is_deferred(effective_defer: datetime | None, now: datetime) -> bool:
    return effective_defer is not None and effective_defer > now


def is_overdue(effective_due: datetime | None, now: datetime) -> bool:
    return effective_due is not None and effective_due < now


def is_due_soon(
    effective_due: datetime | None,
    now: datetime,
    threshold_hours: float = DEFAULT_DUE_SOON_HOURS,
) -> bool:
    if effective_due is None:
        return False
    return now < effective_due <= now + timedelta(hours=threshold_hours)
