from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from .engine.views import projects_due_for_review
from .model import PROJECT_STATUSES, PROJECT_TYPES, Project
from .render import (
    PROJECT_HEADERS,
    TASK_HEADERS,
    emit_json,
    fail,
    print_rows,
    project_columns,
    resolve_now,
    task_columns,
)
from .stores.project import ProjectStore
from .stores.task import TaskStore
from .ui import OutputMode, add_output_mode_argument, resolve_output_mode
from .util import parse_datetime

_READ_COMMANDS = {"list", "show", "review"}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nextaction project", description="Manage projects.")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List projects")
    ls.add_argument("--status", choices=PROJECT_STATUSES, help="Filter by status")
    ls.add_argument("--type", choices=PROJECT_TYPES, help="Filter by type")
    ls.add_argument("--folder", help="Filter by folder id")
    ls.add_argument("--flagged", action="store_true", help="Only flagged projects")
    ls.add_argument("--available", action="store_true", help="Active and not deferred")
    ls.add_argument("--now", help="Evaluate at this instant (ISO 8601)")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    show = sub.add_parser("show", help="Show a project and its tasks")
    show.add_argument("id", help="Project id")
    show.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(show)

    review = sub.add_parser("review", help="List projects due for review")
    review.add_argument("--now", help="Evaluate at this instant (ISO 8601)")
    review.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(review)

    new = sub.add_parser("add", help="Create a project")
    new.add_argument("title", help="Project title")
    new.add_argument("-n", "--note", help="Note")
    new.add_argument("--type", choices=PROJECT_TYPES, default="parallel")
    new.add_argument("--folder", help="Folder id")
    new.add_argument("--flag", action="store_true", help="Flag the project")
    new.add_argument("--due", help="Due date (ISO 8601)")
    new.add_argument("--defer", help="Defer date (ISO 8601)")
    new.add_argument("--review-interval", type=int, default=7, help="Days between reviews")
    new.add_argument("--order", type=int, default=0, help="Position")
    new.add_argument("--json", action="store_true", help="Output JSON")

    edit = sub.add_parser("edit", help="Edit project fields")
    edit.add_argument("id", help="Project id")
    edit.add_argument("--title", help="New title")
    edit.add_argument("-n", "--note", help="New note")
    edit.add_argument("--type", choices=PROJECT_TYPES, help="New type")
    edit.add_argument("--due", help="Due date (ISO 8601)")
    edit.add_argument("--defer", help="Defer date (ISO 8601)")
    edit.add_argument("--clear-due", action="store_true", help="Remove the due date")
    edit.add_argument("--clear-defer", action="store_true", help="Remove the defer date")
    edit.add_argument("--review-interval", type=int, help="Days between reviews")
    edit.add_argument("--json", action="store_true", help="Output JSON")

    for name, help_text in (
        ("complete", "Mark a project completed"),
        ("hold", "Put a project on hold"),
        ("activate", "Return a project to active"),
        ("reviewed", "Mark a project reviewed"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", help="Project id")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    drop = sub.add_parser("drop", help="Drop a project")
    drop.add_argument("id", help="Project id")
    drop.add_argument("--drop-tasks", action="store_true", help="Drop its tasks too")
    drop.add_argument("--json", action="store_true", help="Output JSON")

    move = sub.add_parser("move", help="Move a project to a folder")
    move.add_argument("id", help="Project id")
    move.add_argument("--folder", help="Target folder id (omit for top level)")
    move.add_argument("--position", type=int, help="Position within the folder")
    move.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete a project")
    delete.add_argument("id", help="Project id")
    delete.add_argument(
        "--delete-tasks",
        action="store_true",
        help="Delete its tasks instead of moving them to the inbox",
    )
    delete.add_argument("--yes", action="store_true", help="Confirm delete operation")
    delete.add_argument("--json", action="store_true", help="Output JSON")
    return p


def _print_project(project: Project) -> None:
    print("  ".join(project_columns(project)))


def _edit_changes(args: argparse.Namespace) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for attr, column in (
        ("title", "title"),
        ("note", "note"),
        ("type", "type"),
        ("review_interval", "review_interval"),
    ):
        value = getattr(args, attr)
        if value is not None:
            changes[column] = value
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
    create = args.command not in _READ_COMMANDS
    store = ProjectStore.from_workdir(Path.cwd(), create=create)
    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output)
        except ValueError as exc:
            fail(str(exc), code=2)

    try:
        if args.command == "list":
            filters: dict[str, Any] = {}
            if args.folder:
                filters["folder_id"] = args.folder
            rows = store.list(
                status=args.status,
                type=args.type,
                flagged=True if args.flagged else None,
                available_only=args.available,
                now=resolve_now(args.now),
                **filters,
            )
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [project_columns(row) for row in rows],
                headers=PROJECT_HEADERS,
                output_mode=output_mode,
                title="Projects",
                empty="(no projects)",
            )
            return

        if args.command == "show":
            project = store.get(args.id)
            if project is None:
                fail(f"project not found: {args.id}")
            tasks = TaskStore(store.root, create_on_connect=False).list(
                project_id=project.id
            )
            if args.json:
                payload = project.to_dict()
                payload["tasks"] = [task.to_dict() for task in tasks]
                emit_json(payload)
                return
            _print_project(project)
            print_rows(
                [task_columns(task) for task in tasks],
                headers=TASK_HEADERS,
                output_mode=output_mode,
                title=project.title,
                empty="(no tasks)",
            )
            return

        if args.command == "review":
            rows = projects_due_for_review(store.list(), resolve_now(args.now))
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [project_columns(row) for row in rows],
                headers=PROJECT_HEADERS,
                output_mode=output_mode,
                title="Due for review",
                empty="(nothing to review)",
            )
            return

        if args.command == "add":
            project = store.create(
                args.title,
                note=args.note,
                type=args.type,
                flagged=args.flag,
                due_date=parse_datetime(args.due),
                defer_date=parse_datetime(args.defer),
                folder_id=args.folder,
                review_interval=args.review_interval,
                order=args.order,
            )
            if args.json:
                emit_json(project.to_dict())
            else:
                print(project.id)
            return

        if args.command == "delete":
            if not args.yes:
                fail("refusing to delete without --yes")
            result = store.delete(args.id, delete_tasks=args.delete_tasks)
            if args.json:
                emit_json(result)
            else:
                print(f"deleted: {result['id']}")
            return

        if args.command == "edit":
            project = store.update(args.id, **_edit_changes(args))
        elif args.command == "drop":
            project = store.drop(args.id, drop_tasks=args.drop_tasks)
        elif args.command == "move":
            project = store.move(args.id, args.folder, position=args.position)
        elif args.command == "reviewed":
            project = store.mark_reviewed(args.id)
        else:
            project = getattr(store, args.command)(args.id)
        if args.json:
            emit_json(project.to_dict())
        else:
            _print_project(project)
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
