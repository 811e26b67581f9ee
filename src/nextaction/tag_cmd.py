from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .model import TAG_STATUSES, Location, Tag
from .render import emit_json, fail, print_rows
from .stores.tag import TagStore
from .ui import OutputMode, add_output_mode_argument, resolve_output_mode

_HEADERS = ("ID", "STATUS", "PARENT", "NEXT", "EXCL", "LOCATION", "NAME")
_READ_COMMANDS = {"list", "of"}


def _columns(tag: Tag) -> tuple[str, ...]:
    location = "-"
    if tag.location is not None:
        location = tag.location.name or f"{tag.location.latitude},{tag.location.longitude}"
    return (
        tag.id,
        tag.status,
        tag.parent_id or "-",
        "yes" if tag.allows_next_action else "no",
        "yes" if tag.children_mutually_exclusive else "no",
        location,
        tag.name,
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nextaction tag", description="Manage tags.")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List tags")
    ls.add_argument("--all", action="store_true", help="Include dropped tags")
    ls.add_argument("--located", action="store_true", help="Only tags with a location")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    of = sub.add_parser("of", help="Tags attached to a task or project")
    target = of.add_mutually_exclusive_group(required=True)
    target.add_argument("--task", help="Task id")
    target.add_argument("--project", help="Project id")
    of.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(of)

    new = sub.add_parser("add", help="Create a tag")
    new.add_argument("name", help="Tag name")
    new.add_argument("--parent", help="Parent tag id")
    new.add_argument("--order", type=int, default=0, help="Position")
    new.add_argument("--exclusive", action="store_true", help="Children are mutually exclusive")
    new.add_argument(
        "--no-next-action",
        dest="allows_next_action",
        action="store_false",
        help="Tasks with this tag are not next actions",
    )
    new.add_argument("--lat", type=float, help="Location latitude")
    new.add_argument("--lon", type=float, help="Location longitude")
    new.add_argument("--radius", type=int, help="Location radius in meters")
    new.add_argument("--place", help="Location name")
    new.add_argument("--json", action="store_true", help="Output JSON")

    rename = sub.add_parser("rename", help="Rename a tag")
    rename.add_argument("id", help="Tag id")
    rename.add_argument("name", help="New name")
    rename.add_argument("--json", action="store_true", help="Output JSON")

    status = sub.add_parser("status", help="Set tag status")
    status.add_argument("id", help="Tag id")
    status.add_argument("value", choices=TAG_STATUSES, help="New status")
    status.add_argument("--json", action="store_true", help="Output JSON")

    move = sub.add_parser("move", help="Move a tag")
    move.add_argument("id", help="Tag id")
    move.add_argument("--parent", help="New parent tag id (omit for top level)")
    move.add_argument("--position", type=int, help="Position")
    move.add_argument("--json", action="store_true", help="Output JSON")

    for name, help_text in (("attach", "Attach a tag"), ("detach", "Detach a tag")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", help="Tag id")
        group = cmd.add_mutually_exclusive_group(required=True)
        group.add_argument("--task", help="Task id")
        group.add_argument("--project", help="Project id")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete a tag")
    delete.add_argument("id", help="Tag id")
    delete.add_argument("--children", action="store_true", help="Delete child tags too")
    delete.add_argument("--yes", action="store_true", help="Confirm delete operation")
    delete.add_argument("--json", action="store_true", help="Output JSON")
    return p


def _location(args: argparse.Namespace) -> Location | None:
    if args.lat is None and args.lon is None:
        return None
    if args.lat is None or args.lon is None:
        raise ValueError("location needs both --lat and --lon")
    return Location(latitude=args.lat, longitude=args.lon, radius=args.radius, name=args.place)


def _print_tags(
    rows: list[Tag], *, json_output: bool, output_mode: OutputMode, title: str
) -> None:
    if json_output:
        emit_json([row.to_dict() for row in rows])
        return
    print_rows(
        [_columns(row) for row in rows],
        headers=_HEADERS,
        output_mode=output_mode,
        title=title,
        empty="(no tags)",
    )


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    store = TagStore.from_workdir(Path.cwd(), create=args.command not in _READ_COMMANDS)
    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output)
        except ValueError as exc:
            fail(str(exc), code=2)

    try:
        if args.command == "list":
            if args.located:
                rows = store.location_tags()
            else:
                rows = store.list(include_dropped=args.all)
            _print_tags(rows, json_output=args.json, output_mode=output_mode, title="Tags")
            return

        if args.command == "of":
            if args.task:
                rows = store.task_tags(args.task)
            else:
                rows = store.project_tags(args.project)
            _print_tags(
                rows,
                json_output=args.json,
                output_mode=output_mode,
                title=f"Tags: {args.task or args.project}",
            )
            return

        if args.command in {"attach", "detach"}:
            if args.task:
                method = store.add_to_task if args.command == "attach" else store.remove_from_task
                rows = method(args.task, args.id)
            else:
                method = (
                    store.add_to_project if args.command == "attach" else store.remove_from_project
                )
                rows = method(args.project, args.id)
            _print_tags(
                rows,
                json_output=args.json,
                output_mode="plain",
                title=f"Tags: {args.task or args.project}",
            )
            return

        if args.command == "delete":
            if not args.yes:
                fail("refusing to delete without --yes")
            result = store.delete(args.id, delete_children=args.children)
            if args.json:
                emit_json(result)
            else:
                print(f"deleted: {result['id']}")
            return

        if args.command == "add":
            tag = store.create(
                args.name,
                parent_id=args.parent,
                order=args.order,
                allows_next_action=args.allows_next_action,
                children_mutually_exclusive=args.exclusive,
                location=_location(args),
            )
            if not args.json:
                print(tag.id)
                return
        elif args.command == "rename":
            tag = store.rename(args.id, args.name)
        elif args.command == "status":
            tag = store.set_status(args.id, args.value)
        else:
            tag = store.move(args.id, args.parent, position=args.position)
        if args.json:
            emit_json(tag.to_dict())
        else:
            print("  ".join(_columns(tag)))
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
