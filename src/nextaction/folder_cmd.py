from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .model import Folder
from .render import emit_json, fail, print_rows
from .stores.folder import FolderStore
from .ui import OutputMode, add_output_mode_argument, resolve_output_mode

_HEADERS = ("ID", "STATUS", "PARENT", "ORDER", "NAME")


def _columns(folder: Folder) -> tuple[str, ...]:
    return (
        folder.id,
        folder.status,
        folder.parent_id or "-",
        str(folder.order),
        folder.name,
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nextaction folder", description="Manage folders.")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List folders")
    ls.add_argument("--all", action="store_true", help="Include dropped folders")
    ls.add_argument("--parent", help="Only children of this folder")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    stats = sub.add_parser("stats", help="Counts for one folder")
    stats.add_argument("id", help="Folder id")
    stats.add_argument("--json", action="store_true", help="Output JSON")

    new = sub.add_parser("add", help="Create a folder")
    new.add_argument("name", help="Folder name")
    new.add_argument("--parent", help="Parent folder id")
    new.add_argument("--order", type=int, default=0, help="Position")
    new.add_argument("--json", action="store_true", help="Output JSON")

    rename = sub.add_parser("rename", help="Rename a folder")
    rename.add_argument("id", help="Folder id")
    rename.add_argument("name", help="New name")
    rename.add_argument("--json", action="store_true", help="Output JSON")

    for name, help_text in (("drop", "Drop a folder"), ("activate", "Reactivate a folder")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id", help="Folder id")
        cmd.add_argument("--json", action="store_true", help="Output JSON")

    move = sub.add_parser("move", help="Move a folder")
    move.add_argument("id", help="Folder id")
    move.add_argument("--parent", help="New parent folder id (omit for top level)")
    move.add_argument("--position", type=int, help="Position")
    move.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete a folder")
    delete.add_argument("id", help="Folder id")
    delete.add_argument("--recursive", action="store_true", help="Delete child folders too")
    delete.add_argument("--yes", action="store_true", help="Confirm delete operation")
    delete.add_argument("--json", action="store_true", help="Output JSON")
    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    store = FolderStore.from_workdir(Path.cwd(), create=args.command != "list")
    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(args.output)
        except ValueError as exc:
            fail(str(exc), code=2)

    try:
        if args.command == "list":
            if args.parent:
                rows = store.list(include_dropped=args.all, parent_id=args.parent)
            else:
                rows = store.list(include_dropped=args.all)
            if args.json:
                emit_json([row.to_dict() for row in rows])
                return
            print_rows(
                [_columns(row) for row in rows],
                headers=_HEADERS,
                output_mode=output_mode,
                title="Folders",
                empty="(no folders)",
            )
            return

        if args.command == "stats":
            stats = store.stats(args.id)
            if args.json:
                emit_json(stats)
            else:
                for key, value in stats.items():
                    print(f"{key}: {value}")
            return

        if args.command == "delete":
            if not args.yes:
                fail("refusing to delete without --yes")
            result = store.delete(args.id, recursive=args.recursive)
            if args.json:
                emit_json(result)
            else:
                print(f"deleted: {result['id']}")
            return

        if args.command == "add":
            folder = store.create(args.name, parent_id=args.parent, order=args.order)
            if not args.json:
                print(folder.id)
                return
        elif args.command == "rename":
            folder = store.rename(args.id, args.name)
        elif args.command == "move":
            folder = store.move(args.id, args.parent, position=args.position)
        else:
            folder = getattr(store, args.command)(args.id)
        if args.json:
            emit_json(folder.to_dict())
        else:
            print("  ".join(_columns(folder)))
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
