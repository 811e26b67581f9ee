from __future__ import annotations

from datetime import datetime, timedelta, timezone

from nextaction.engine.hierarchy import Snapshot
from nextaction.engine.next_actions import (
    classify_all,
    first_available_in_project,
    next_actions_from,
    select_next_actions,
)
from nextaction.model import Project, Task

NOW = datetime(2025, 1, 10, 9, tzinfo=timezone.utc)


def _ids(tasks: list[Task]) -> list[str]:
    return [task.id for task in tasks]


def test_one_next_action_per_project_plus_every_standalone() -> None:
    projects = [Project(id="p", title="Parallel"), Project(id="q", title="Seq", type="sequential")]
    tasks = [
        Task(id="p1", title="P1", project_id="p", order=0),
        Task(id="p2", title="P2", project_id="p", order=1),
        Task(id="q1", title="Q1", project_id="q", order=0),
        Task(id="q2", title="Q2", project_id="q", order=1),
        Task(id="s1", title="S1", order=0),
        Task(id="s2", title="S2", order=1),
    ]

    assert _ids(select_next_actions(tasks, projects, NOW)) == ["p1", "q1", "s1", "s2"]


def test_deferred_first_task_yields_next_available_sibling() -> None:
    projects = [Project(id="p", title="P")]
    tasks = [
        Task(id="a", title="A", project_id="p", order=0, defer_date=NOW + timedelta(days=1)),
        Task(id="b", title="B", project_id="p", order=1),
    ]

    assert _ids(select_next_actions(tasks, projects, NOW)) == ["b"]
    assert first_available_in_project("p", tasks, projects, NOW).id == "b"


def test_sequential_project_with_deferred_head_has_no_next_action() -> None:
    projects = [Project(id="p", title="P", type="sequential")]
    tasks = [
        Task(id="a", title="A", project_id="p", order=0, defer_date=NOW + timedelta(days=1)),
        Task(id="b", title="B", project_id="p", order=1),
    ]

    assert select_next_actions(tasks, projects, NOW) == []
    assert first_available_in_project("p", tasks, projects, NOW) is None


def test_on_hold_project_contributes_nothing() -> None:
    projects = [Project(id="p", title="P", status="on_hold")]
    tasks = [Task(id="a", title="A", project_id="p")]
    assert select_next_actions(tasks, projects, NOW) == []


def test_empty_project_has_no_first_available() -> None:
    assert first_available_in_project("p", [], [Project(id="p", title="P")], NOW) is None


def test_classify_all_covers_every_task() -> None:
    snapshot = Snapshot.build(
        tasks=[Task(id="a", title="A"), Task(id="b", title="B", status="completed")]
    )
    result = classify_all(snapshot, NOW)
    assert set(result) == {"a", "b"}
    assert result["a"].is_available is True
    assert result["b"].is_available is False


def test_next_actions_from_respects_given_order() -> None:
    ordered = [
        Task(id="x", title="X", project_id="p"),
        Task(id="y", title="Y", project_id="p"),
        Task(id="z", title="Z"),
    ]
    assert _ids(next_actions_from(ordered, {"y", "z"})) == ["y", "z"]


def test_completing_first_task_moves_first_available() -> None:
    projects = [Project(id="p", title="P", type="sequential")]
    t1 = Task(id="t1", title="T1", project_id="p", order=0)
    t2 = Task(id="t2", title="T2", project_id="p", order=1)

    assert first_available_in_project("p", [t1, t2], projects, NOW).id == "t1"

    done = t1.with_changes(status="completed")
    assert first_available_in_project("p", [done, t2], projects, NOW).id == "t2"
    assert _ids(select_next_actions([done, t2], projects, NOW)) == ["t2"]
