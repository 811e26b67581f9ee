from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .engine.inbox import inbox_state
from .model import PROJECT_TYPES, Task
from .render import emit_json, fail, format_time, print_rows, resolve_now, truncate
from .stores.inbox import InboxStore
from .ui import OutputMode, add_output_mode_argument, resolve_output_mode

_HEADERS = ("ID", "STATE", "FLAG", "DUE", "DEFER", "TENTATIVE", "TITLE")
_READ_COMMANDS = {"list", "count", "stats"}


def _columns(task: Task) -> tuple[str, ...]:
    tentative = task.tentative_parent_task_id or task.tentative_project_id or "-"
    return (
        task.id,
        inbox_state(task).value,
        "*" if task.flagged else "",
        format_time(task.due_date),
        format_time(task.defer_date),
        tentative,
        truncate(task.title, 56),
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nextaction inbox", description="Process the inbox.")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List inbox items")
    ls.add_argument("--completed", action="store_true", help="Include completed items")
    ls.add_argument("--dropped", action="store_true", help="Include dropped items")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    count = sub.add_parser("count", help="Count active inbox items")
    count.add_argument("--json", action="store_true", help="Output JSON")

    stats = sub.add_parser("stats", help="Inbox statistics")
    stats.add_argument("--now", help="Evaluate at this instant (ISO 8601)")
    stats.add_argument("--json", action="store_true", help="Output JSON")

    tentative = sub.add_parser("tentative", help="Set or clear a tentative target")
    tentative.add_argument("id", help="Inbox item id")
    target = tentative.add_mutually_exclusive_group()
    target.add_argument("--project", help="Tentative project id")
    target.add_argument("--parent", help="Tentative parent task id")
    tentative.add_argument("--json", action="store_true", help="Output JSON")

    to_project = sub.add_parser("to-project", help="File an item into a project")
    to_project.add_argument("id", help="Inbox item id")
    to_project.add_argument("project", help="Project id")
    to_project.add_argument("--position", type=int, help="Position in the project")
    to_project.add_argument("--json", action="store_true", help="Output JSON")

    to_task = sub.add_parser("to-task", help="Nest an item under a task")
    to_task.add_argument("id", help="Inbox item id")
    to_task.add_argument("parent", help="Parent task id")
    to_task.add_argument("--position", type=int, help="Position under the parent")
    to_task.add_argument("--json", action="store_true", help="Output JSON")

    convert = sub.add_parser("convert", help="Turn an item into a project")
    convert.add_argument("id", help="Inbox item id")
    convert.add_argument("--type", choices=PROJECT_TYPES, help="Project type")
    convert.add_argument("--json", action="store_true", help="Output JSON")

    reorder = sub.add_parser("reorder", help="Move an item within the inbox")
    reorder.add_argument("id", help="Inbox item id")
    reorder.add_argument("position", type=int, help="New position")
    reorder.add_argument("--json", action="store_true", help="Output JSON")

    cleanup = sub.add_parser("clean-up", help="Apply every tentative target")
    cleanup.add_argument("--json", action="store_true", help="Output JSON")
    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    inbox = InboxStore.from_workdir(Path.cwd(), create=args.command not in _READ_COMMANDS)
    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output)
        except ValueError as exc:
            fail(str(exc), code=2)

    try:
        if args.command == "list":
            rows = inbox.list(
                include_completed=args.completed, include_dropped=args.dropped
            )
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [_columns(row) for row in rows],
                headers=_HEADERS,
                output_mode=output_mode,
                title="Inbox",
                empty="(inbox is empty)",
            )
            return

        if args.command == "count":
            total = inbox.count()
            if args.json:
                emit_json({"count": total})
            else:
                print(total)
            return

        if args.command == "stats":
            stats = inbox.stats(resolve_now(args.now))
            if args.json:
                emit_json(stats)
            else:
                for key, value in stats.items():
                    print(f"{key}: {value}")
            return

        if args.command == "clean-up":
            result = inbox.clean_up()
            if args.json:
                emit_json(
                    {
                        "processed": result["processed"],
                        "updated": [task.to_dict() for task in result["updated"]],
                    }
                )
            else:
                print(f"processed: {result['processed']}")
            return

        if args.command == "convert":
            project = inbox.convert_to_project(args.id, project_type=args.type)
            if args.json:
                emit_json(project.to_dict())
            else:
                print(project.id)
            return

        if args.command == "tentative":
            task = inbox.set_tentative(
                args.id, project_id=args.project, parent_task_id=args.parent
            )
        elif args.command == "to-project":
            task = inbox.process_to_project(args.id, args.project, position=args.position)
        elif args.command == "to-task":
            task = inbox.process_to_task(args.id, args.parent, position=args.position)
        else:
            task = inbox.reorder(args.id, args.position)
        if args.json:
            emit_json(task.to_dict())
        else:
            print("  ".join(_columns(task)))
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
