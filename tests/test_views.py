from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nextaction.engine.availability import BlockingReason
from nextaction.engine.hierarchy import Snapshot
from nextaction.engine.views import (
    VIEW_NAMES,
    available_projects,
    evaluate,
    inbox_stats,
    projects_due_for_review,
    run_view,
)
from nextaction.model import Project, Task

NOW = datetime(2025, 1, 10, 12, tzinfo=timezone.utc)


def _ids(rows) -> list[str]:
    return [row.task.id for row in rows]


def _snapshot() -> Snapshot:
    return Snapshot.build(
        projects=[
            Project(id="p", title="Launch", due_date=NOW + timedelta(hours=24)),
            Project(id="q", title="Later", defer_date=NOW + timedelta(days=3)),
        ],
        tasks=[
            Task(id="late", title="Late", due_date=NOW - timedelta(hours=1)),
            Task(id="edge", title="Edge", due_date=NOW + timedelta(hours=48)),
            Task(id="now", title="Due now", due_date=NOW),
            Task(id="p1", title="Inherits project due", project_id="p", order=0),
            Task(id="p2", title="Second", project_id="p", order=1),
            Task(id="q1", title="Deferred by project", project_id="q"),
            Task(id="done", title="Done", status="completed", due_date=NOW - timedelta(days=1)),
        ],
    )


def test_evaluate_exposes_inherited_dates_and_reasons() -> None:
    evaluations = evaluate(_snapshot(), NOW)

    p1 = evaluations["p1"]
    assert p1.effective_due_date == NOW + timedelta(hours=24)
    assert p1.has_local_due_date is False
    assert p1.is_available is True

    q1 = evaluations["q1"]
    assert q1.is_available is False
    assert q1.blocking_reasons == {BlockingReason.DEFERRED, BlockingReason.PROJECT_DEFERRED}
    assert q1.to_dict()["blocking_reasons"] == ["deferred", "project_deferred"]


def test_overdue_excludes_inactive_and_boundary() -> None:
    assert _ids(run_view("overdue", _snapshot(), NOW)) == ["late"]


def test_due_soon_includes_threshold_edge() -> None:
    rows = run_view("due-soon", _snapshot(), NOW)
    assert _ids(rows) == ["p1", "p2", "edge"]


def test_due_soon_uses_custom_window() -> None:
    rows = run_view("due-soon", _snapshot(), NOW, threshold_hours=12)
    assert _ids(rows) == []


def test_deferred_view_sorted_by_effective_defer() -> None:
    snapshot = Snapshot.build(
        tasks=[
            Task(id="b", title="B", defer_date=NOW + timedelta(days=2)),
            Task(id="a", title="A", defer_date=NOW + timedelta(days=1)),
            Task(id="c", title="C", defer_date=NOW),
        ]
    )
    assert _ids(run_view("deferred", snapshot, NOW)) == ["a", "b"]


def test_available_and_next_views() -> None:
    snapshot = _snapshot()
    assert set(_ids(run_view("available", snapshot, NOW))) == {"late", "edge", "now", "p1", "p2"}
    assert _ids(run_view("next", snapshot, NOW)) == ["edge", "late", "now", "p1"]
    assert _ids(run_view("next_actions", snapshot, NOW)) == ["edge", "late", "now", "p1"]


def test_unknown_view_is_rejected() -> None:
    assert "due-soon" in VIEW_NAMES
    with pytest.raises(ValueError, match="unknown view"):
        run_view("someday", Snapshot(), NOW)


def test_inbox_stats_counts_only_inbox_items() -> None:
    tasks = [
        Task(id="a", title="A", flagged=True, due_date=NOW - timedelta(hours=1)),
        Task(id="b", title="B", defer_date=NOW + timedelta(days=1)),
        Task(id="c", title="C", status="completed", flagged=True),
        Task(id="d", title="D", project_id="p"),
    ]
    assert inbox_stats(tasks, NOW) == {
        "total": 3,
        "active": 2,
        "available": 1,
        "deferred": 1,
        "completed": 1,
        "flagged": 1,
        "with_due_date": 1,
        "overdue": 1,
    }


def test_available_projects_and_review_queue() -> None:
    reviewed = NOW - timedelta(days=3)
    projects = [
        Project(id="a", title="Active"),
        Project(id="b", title="Held", status="on_hold"),
        Project(id="c", title="Deferred", defer_date=NOW + timedelta(days=1)),
        Project(id="d", title="Fresh", last_reviewed_at=reviewed),
        Project(id="e", title="Stale", last_reviewed_at=NOW - timedelta(days=7)),
    ]

    assert [p.id for p in available_projects(projects, NOW)] == ["a", "d", "e"]
    assert [p.id for p in projects_due_for_review(projects, NOW)] == ["a", "c", "e"]
