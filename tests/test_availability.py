from __future__ import annotations

from datetime import datetime, timedelta, timezone

from nextaction.engine.availability import (
    BlockingReason,
    classify,
    first_active,
    is_blocked_by_sequential,
    is_project_blocking,
)
from nextaction.model import Project, Task

NOW = datetime(2025, 1, 10, 9, tzinfo=timezone.utc)


def test_plain_task_is_available() -> None:
    task = Task(id="t", title="T")
    result = classify(task, None, None, [], NOW)
    assert result.is_available is True
    assert result.blocking_reasons == frozenset()


def test_inactive_task_is_unavailable_without_reasons() -> None:
    for status in ("completed", "dropped"):
        task = Task(id="t", title="T", status=status)
        result = classify(task, None, None, [], NOW)
        assert result.is_available is False
        assert result.reason_values() == []


def test_deferred_until_exactly_now_is_available() -> None:
    task = Task(id="t", title="T", defer_date=NOW)
    assert classify(task, NOW, None, [], NOW).is_available is True


def test_future_effective_defer_blocks() -> None:
    task = Task(id="t", title="T")
    result = classify(task, NOW + timedelta(hours=1), None, [], NOW)
    assert result.blocking_reasons == {BlockingReason.DEFERRED}


def test_on_hold_project_blocks() -> None:
    project = Project(id="p", title="P", status="on_hold")
    task = Task(id="t", title="T", project_id="p")
    result = classify(task, None, project, [task], NOW)
    assert result.reason_values() == ["project_on_hold"]


def test_reasons_accumulate() -> None:
    project = Project(
        id="p",
        title="P",
        status="on_hold",
        type="sequential",
        defer_date=NOW + timedelta(days=2),
    )
    first = Task(id="a", title="First", project_id="p", order=0)
    second = Task(id="b", title="Second", project_id="p", order=1)

    result = classify(second, NOW + timedelta(days=2), project, [first, second], NOW)

    assert result.is_available is False
    assert result.reason_values() == [
        "deferred",
        "project_deferred",
        "project_on_hold",
        "sequential",
    ]


def test_sequential_only_first_active_sibling_is_unblocked() -> None:
    project = Project(id="p", title="P", type="sequential")
    done = Task(id="a", title="A", project_id="p", order=0, status="completed")
    current = Task(id="b", title="B", project_id="p", order=1)
    waiting = Task(id="c", title="C", project_id="p", order=2)
    siblings = [done, current, waiting]

    assert classify(current, None, project, siblings, NOW).is_available is True
    blocked = classify(waiting, None, project, siblings, NOW)
    assert blocked.blocking_reasons == {BlockingReason.SEQUENTIAL}


def test_sequential_gate_ignores_deferral_of_first_task() -> None:
    project = Project(id="p", title="P", type="sequential")
    first = Task(id="a", title="A", project_id="p", order=0, defer_date=NOW + timedelta(days=1))
    second = Task(id="b", title="B", project_id="p", order=1)

    assert is_blocked_by_sequential(second, project.type, [first, second]) is True
    assert classify(first, first.defer_date, project, [first, second], NOW).reason_values() == [
        "deferred"
    ]


def test_parallel_and_single_action_projects_do_not_gate() -> None:
    task = Task(id="b", title="B", project_id="p", order=1)
    other = Task(id="a", title="A", project_id="p", order=0)
    assert is_blocked_by_sequential(task, "parallel", [other, task]) is False
    assert is_blocked_by_sequential(task, "single_actions", [other, task]) is False


def test_order_ties_break_by_newest_then_id() -> None:
    older = Task(
        id="x",
        title="Older",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    newer = Task(
        id="y",
        title="Newer",
        created_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
    )
    assert first_active([older, newer]) == newer

    same_a = Task(id="a", title="A")
    same_b = Task(id="b", title="B")
    assert first_active([same_b, same_a]) == same_a


def test_project_blocking_statuses() -> None:
    assert is_project_blocking(None) is False
    assert is_project_blocking("active") is False
    assert is_project_blocking("on_hold") is True
    assert is_project_blocking("completed") is True
    assert is_project_blocking("dropped") is True
