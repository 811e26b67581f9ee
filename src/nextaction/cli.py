"""CLI entry point for nextaction."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from . import __version__
from . import capture_cmd, folder_cmd, inbox_cmd, project_cmd, tag_cmd, task_cmd, view_cmd
from .stores.state import resolve_state_dir
from .ui import OutputMode, make_console, render_rich_help, resolve_output_mode

_COMMANDS: tuple[tuple[str, str], ...] = (
    ("task <command>", "Create, edit, complete and list tasks"),
    ("project <command>", "Projects, their status and review cycle"),
    ("folder <command>", "Folders that group projects"),
    ("tag <command>", "Tags, locations and tag assignment"),
    ("inbox <command>", "List, process and clean up the inbox"),
    ("view <name>", "available | next | overdue | due-soon | deferred"),
    ("show <task-id>", "Effective dates and blocking reasons for one task"),
    ("validate", "Check hierarchy cycles and dangling references"),
    ("capture <text>", "Extract tasks from free text"),
    ("serve", "Start the JSON web API"),
)

_OPTIONS: tuple[tuple[str, str], ...] = (
    ("--json", "JSON output (per command)"),
    ("--output auto|plain|rich", "Table rendering (or NEXTACTION_OUTPUT)"),
    ("--now ISO", "Evaluate views at a fixed instant"),
    ("--version", "Show version"),
)

_EXAMPLES: tuple[tuple[str, str], ...] = (
    ("nextaction task add 'Call dentist' --due 2025-01-10", "Capture a dated task"),
    ("nextaction view next", "First available action per project"),
    ("nextaction view due-soon --hours 24", "Due within a day"),
    ("nextaction inbox clean-up", "Apply tentative assignments"),
)


def _mode() -> OutputMode:
    try:
        return resolve_output_mode(None)
    except ValueError:
        return "plain"


def _print_help() -> None:
    if _mode() == "rich":
        render_rich_help(
            command=f"nextaction {__version__}",
            summary="Next actions, availability and inherited dates for a GTD task tree.",
            usage=("nextaction <command> [args]", "nextaction <command> --help"),
            sections=(("Commands", _COMMANDS), ("Options", _OPTIONS)),
            examples=_EXAMPLES,
        )
        return
    print(f"nextaction {__version__}")
    print()
    print("usage: nextaction <command> [args]")
    print()
    print("commands:")
    for name, about in _COMMANDS:
        print(f"  {name:<22} {about}")
    print()
    print("options:")
    for name, about in _OPTIONS:
        print(f"  {name:<26} {about}")


def cmd_serve(argv: list[str], console: Console) -> int:
    p = argparse.ArgumentParser(prog="nextaction serve", description="Start the JSON web API.")
    p.add_argument("--host", default="127.0.0.1", help="Bind address")
    p.add_argument("--port", type=int, default=8430, help="Bind port")
    p.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = p.parse_args(argv)

    import uvicorn

    state_dir = resolve_state_dir(Path.cwd())
    console.print(
        Panel(
            f"Serving [bold]{state_dir}[/bold] at [bold]http://{args.host}:{args.port}[/bold]",
            title="nextaction serve",
            style="cyan",
            expand=False,
        )
    )
    uvicorn.run(
        "nextaction.web:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


_HANDLERS: dict[str, Callable[[list[str]], None]] = {
    "task": task_cmd.main,
    "project": project_cmd.main,
    "folder": folder_cmd.main,
    "tag": tag_cmd.main,
    "inbox": inbox_cmd.main,
    "view": view_cmd.view_main,
    "show": view_cmd.show_main,
    "validate": view_cmd.validate_main,
    "capture": capture_cmd.main,
}


def main(argv: list[str] | None = None) -> None:
    raw = list(argv) if argv is not None else sys.argv[1:]

    if raw[:1] == ["--version"]:
        print(f"nextaction {__version__}")
        sys.exit(0)
    if not raw or raw[0] in ("-h", "--help", "help"):
        _print_help()
        sys.exit(0)

    command = raw[0]
    if command == "serve":
        sys.exit(cmd_serve(raw[1:], make_console(_mode())))

    handler = _HANDLERS.get(command)
    if handler is None:
        console = make_console(_mode(), stderr=True)
        console.print(Text(f"unknown command: {command}", style="red"))
        console.print(Text("Run `nextaction --help` for the command list.", style="dim"))
        sys.exit(2)
    handler(raw[1:])


if __name__ == "__main__":
    main()
