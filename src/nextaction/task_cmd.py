from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from .model import TASK_STATUSES
from .render import (
    TASK_HEADERS,
    emit_json,
    fail,
    print_rows,
    print_task_line,
    task_columns,
)
from .stores.task import TaskStore
from .ui import OutputMode, add_output_mode_argument, resolve_output_mode
from .util import parse_datetime

_READ_COMMANDS = {"list", "show", "subtasks"}


def _add_date_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--due", help="Due date (ISO 8601)")
    parser.add_argument("--defer", help="Defer date (ISO 8601)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nextaction task", description="Manage tasks.")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List tasks")
    ls.add_argument("--status", choices=TASK_STATUSES, help="Filter by status")
    ls.add_argument("--project", help="Filter by project id")
    ls.add_argument("--parent", help="Filter by parent task id")
    ls.add_argument("--flagged", action="store_true", help="Only flagged tasks")
    ls.add_argument("--due-before", help="Due strictly before (ISO 8601)")
    ls.add_argument("--due-after", help="Due strictly after (ISO 8601)")
    ls.add_argument("--inbox", action="store_true", help="Only inbox items")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    show = sub.add_parser("show", help="Show one task")
    show.add_argument("id", help="Task id")
    show.add_argument("--json", action="store_true", help="Output JSON")

    subtasks = sub.add_parser("subtasks", help="List subtasks of a task")
    subtasks.add_argument("id", help="Task id")
    subtasks.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(subtasks)

    new = sub.add_parser("add", help="Create a task")
    new.add_argument("title", help="Task title")
    new.add_argument("-n", "--note", help="Note")
    new.add_argument("--project", help="Project id")
    new.add_argument("--parent", help="Parent task id")
    new.add_argument("--flag", action="store_true", help="Flag the task")
    new.add_argument("--estimate", type=int, help="Estimated minutes")
    new.add_argument("--order", type=int, default=0, help="Sibling position")
    _add_date_arguments(new)
    new.add_argument("--json", action="store_true", help="Output JSON")

    edit = sub.add_parser("edit", help="Edit task fields")
    edit.add_argument("id", help="Task id")
    edit.add_argument("--title", help="New title")
    edit.add_argument("-n", "--note", help="New note")
    edit.add_argument("--project", help="Move into a project")
    edit.add_argument("--parent", help="Nest under a task")
    edit.add_argument("--flag", dest="flagged", action="store_true", default=None)
    edit.add_argument("--unflag", dest="flagged", action="store_false")
    edit.add_argument("--estimate", type=int, help="Estimated minutes")
    edit.add_argument("--order", type=int, help="Sibling position")
    _add_date_arguments(edit)
    edit.add_argument("--clear-due", action="store_true", help="Remove the due date")
    edit.add_argument("--clear-defer", action="store_true", help="Remove the defer date")
    edit.add_argument("--json", action="store_true", help="Output JSON")

    for name, help_text in (
        ("complete", "Mark task(s) completed"),
        ("drop", "Mark task(s) dropped"),
        ("restore", "Return task(s) to active"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", nargs="+", help="Task id(s)")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete task(s) and their subtasks")
    delete.add_argument("id", nargs="+", help="Task id(s)")
    delete.add_argument("--yes", action="store_true", help="Confirm delete operation")
    delete.add_argument("--json", action="store_true", help="Output JSON")
    return p


def _edit_changes(args: argparse.Namespace) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if args.title is not None:
        changes["title"] = args.title
    if args.note is not None:
        changes["note"] = args.note
    if args.project is not None:
        changes["project_id"] = args.project
    if args.parent is not None:
        changes["parent_task_id"] = args.parent
    if args.flagged is not None:
        changes["flagged"] = args.flagged
    if args.estimate is not None:
        changes["estimated_duration"] = args.estimate
    if args.order is not None:
        changes["order"] = args.order
    if args.clear_due:
        changes["due_date"] = None
    elif args.due is not None:
        changes["due_date"] = parse_datetime(args.due)
    if args.clear_defer:
        changes["defer_date"] = None
    elif args.defer is not None:
        changes["defer_date"] = parse_datetime(args.defer)
    return changes


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    store = TaskStore.from_workdir(Path.cwd(), create=args.command not in _READ_COMMANDS)
    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output)
        except ValueError as exc:
            fail(str(exc), code=2)

    try:
        if args.command == "list":
            filters: dict[str, Any] = {}
            if args.project:
                filters["project_id"] = args.project
            if args.parent:
                filters["parent_task_id"] = args.parent
            rows = store.list(
                status=args.status,
                flagged=True if args.flagged else None,
                due_before=parse_datetime(args.due_before),
                due_after=parse_datetime(args.due_after),
                inbox_only=args.inbox,
                **filters,
            )
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [task_columns(row) for row in rows],
                headers=TASK_HEADERS,
                output_mode=output_mode,
                title="Tasks",
                empty="(no tasks)",
            )
            return

        if args.command == "show":
            task = store.get(args.id)
            if task is None:
                fail(f"task not found: {args.id}")
            if args.json:
                emit_json(task.to_dict())
                return
            print_task_line(task)
            if task.parent_task_id:
                print(f"parent: {task.parent_task_id}")
            if task.note:
                print()
                print(task.note)
            return

        if args.command == "subtasks":
            rows = store.subtasks(args.id)
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [task_columns(row) for row in rows],
                headers=TASK_HEADERS,
                output_mode=output_mode,
                title=f"Subtasks: {args.id}",
                empty="(no subtasks)",
            )
            return

        if args.command == "add":
            task = store.create(
                args.title,
                note=args.note,
                flagged=args.flag,
                estimated_duration=args.estimate,
                due_date=parse_datetime(args.due),
                defer_date=parse_datetime(args.defer),
                project_id=args.project,
                parent_task_id=args.parent,
                order=args.order,
            )
            if args.json:
                emit_json(task.to_dict())
            else:
                print(task.id)
            return

        if args.command == "edit":
            task = store.update(args.id, **_edit_changes(args))
            if args.json:
                emit_json(task.to_dict())
            else:
                print_task_line(task)
            return

        if args.command in {"complete", "drop", "restore"}:
            action = getattr(store, args.command)
            rows = [action(task_id) for task_id in args.id]
            if args.json:
                emit_json([row.to_dict() for row in rows])
            else:
                for row in rows:
                    print_task_line(row)
            return

        if args.command == "delete":
            if not args.yes:
                fail("refusing to delete without --yes")
            results = [store.delete(task_id) for task_id in args.id]
            if args.json:
                emit_json(results)
            else:
                for result in results:
                    print(f"deleted: {result['id']}")
            return
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
