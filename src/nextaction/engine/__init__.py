"""Pure evaluation over a snapshot: effective dates, availability, views."""

from __future__ import annotations

from .availability import Availability, BlockingReason, classify
from .dates import (
    DEFAULT_DUE_SOON_HOURS,
    EffectiveDates,
    is_available,
    is_deferred,
    is_due_soon,
    is_overdue,
    resolve_effective_defer,
    resolve_effective_due,
)
from .hierarchy import Snapshot, resolve_all, resolve_task, validate_snapshot
from .inbox import InboxState, reconcile, set_tentative
from .next_actions import first_available_in_project, select_next_actions
from .views import TaskEvaluation, evaluate, run_view

__all__ = [
    "DEFAULT_DUE_SOON_HOURS",
    "Availability",
    "BlockingReason",
    "EffectiveDates",
    "InboxState",
    "Snapshot",
    "TaskEvaluation",
    "classify",
    "evaluate",
    "first_available_in_project",
    "is_available",
    "is_deferred",
    "is_due_soon",
    "is_overdue",
    "reconcile",
    "resolve_all",
    "resolve_effective_defer",
    "resolve_effective_due",
    "resolve_task",
    "run_view",
    "select_next_actions",
    "set_tentative",
    "validate_snapshot",
]
