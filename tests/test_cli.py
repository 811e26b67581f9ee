from __future__ import annotations

import json
from pathlib import Path

import pytest

from nextaction import cli

NOW = "2025-01-10T12:00:00Z"


def _json(capsys: pytest.CaptureFixture[str]):
    return json.loads(capsys.readouterr().out)


def _add_project(capsys: pytest.CaptureFixture[str], *args: str) -> str:
    cli.main(["project", "add", *args, "--json"])
    return _json(capsys)["id"]


def _add_task(capsys: pytest.CaptureFixture[str], *args: str) -> str:
    cli.main(["task", "add", *args, "--json"])
    return _json(capsys)["id"]


def test_task_list_on_empty_workspace_has_no_side_effects(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["task", "list"])
    assert "(no tasks)" in capsys.readouterr().out
    assert not state_dir.exists()

    cli.main(["view", "next"])
    assert "(nothing here)" in capsys.readouterr().out
    assert not state_dir.exists()


def test_task_add_json_includes_iso_timestamps(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["task", "add", "Call dentist", "--due", "2025-01-10", "--flag", "--json"])
    payload = _json(capsys)

    assert payload["id"].startswith("task-")
    assert payload["flagged"] is True
    assert payload["due_date_iso"] == "2025-01-10T00:00:00Z"
    assert (state_dir / "nextaction.sqlite3").exists()

    cli.main(["task", "list", "--json"])
    rows = _json(capsys)
    assert [row["title"] for row in rows] == ["Call dentist"]


def test_sequential_project_next_action_and_show(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project_id = _add_project(
        capsys, "Launch", "--type", "sequential", "--due", "2025-01-11T00:00:00Z"
    )
    first = _add_task(capsys, "Draft", "--project", project_id, "--order", "0")
    second = _add_task(capsys, "Review", "--project", project_id, "--order", "1")

    cli.main(["view", "next", "--now", NOW, "--json"])
    assert [row["id"] for row in _json(capsys)] == [first]

    cli.main(["view", "due-soon", "--now", NOW, "--json"])
    assert [row["id"] for row in _json(capsys)] == [first, second]

    cli.main(["show", second, "--now", NOW, "--json"])
    shown = _json(capsys)
    assert shown["is_available"] is False
    assert shown["blocking_reasons"] == ["sequential"]
    assert shown["has_local_due_date"] is False
    assert shown["parents"] == []

    cli.main(["show", first, "--now", NOW])
    out = capsys.readouterr().out
    assert "available: yes" in out
    assert "effective due: 2025-01-11T00:00:00Z (inherited)" in out
    assert "blocked by: -" in out

    child = _add_task(capsys, "Outline", "--parent", first)
    cli.main(["show", child, "--now", NOW, "--json"])
    assert _json(capsys)["parents"] == [first]


def test_show_unknown_task_fails(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["show", "task-missing"])
    assert exc.value.code == 1
    assert "task not found: task-missing" in capsys.readouterr().err


def test_validate_reports_clean_workspace(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _add_task(capsys, "Inbox item")

    cli.main(["validate"])
    out = capsys.readouterr().out
    assert "ok    task_acyclic" in out
    assert "ok    references_resolved" in out

    cli.main(["validate", "--json"])
    report = _json(capsys)
    assert report["errors"] == []
    assert report["counts"]["tasks"] == 1


def test_inbox_tentative_then_clean_up(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project_id = _add_project(capsys, "Home")
    item = _add_task(capsys, "Fix tap")

    cli.main(["inbox", "count"])
    assert capsys.readouterr().out.strip() == "1"

    cli.main(["inbox", "tentative", item, "--project", project_id, "--json"])
    assert _json(capsys)["tentative_project_id"] == project_id

    cli.main(["inbox", "clean-up"])
    assert capsys.readouterr().out.strip() == "processed: 1"

    cli.main(["task", "show", item, "--json"])
    task = _json(capsys)
    assert task["project_id"] == project_id
    assert task["tentative_project_id"] is None

    cli.main(["inbox", "count", "--json"])
    assert _json(capsys) == {"count": 0}


def test_task_cycle_is_rejected(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    parent = _add_task(capsys, "Parent")
    child = _add_task(capsys, "Child", "--parent", parent)

    with pytest.raises(SystemExit) as exc:
        cli.main(["task", "edit", parent, "--parent", child])
    assert exc.value.code == 1
    assert "cycle" in capsys.readouterr().err


def test_delete_requires_yes(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    task_id = _add_task(capsys, "Throwaway")

    with pytest.raises(SystemExit) as exc:
        cli.main(["task", "delete", task_id])
    assert exc.value.code == 1
    assert "--yes" in capsys.readouterr().err

    cli.main(["task", "delete", task_id, "--yes"])
    assert capsys.readouterr().out.strip() == f"deleted: {task_id}"


def test_version_help_and_unknown_command(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--version"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == "nextaction 0.1.0"

    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "commands:" in out
    assert "inbox <command>" in out

    with pytest.raises(SystemExit) as exc:
        cli.main(["frobnicate"])
    assert exc.value.code == 2
    assert "unknown command: frobnicate" in capsys.readouterr().err
