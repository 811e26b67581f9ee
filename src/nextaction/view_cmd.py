"""Read-only engine commands: ``view``, ``show`` and ``validate``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import load_config
from .engine.hierarchy import ancestor_chain, validate_snapshot
from .engine.views import VIEW_NAMES, TaskEvaluation, evaluate, run_view
from .render import emit_json, fail, format_time, print_rows, resolve_now, truncate
from .stores.base import Database
from .ui import OutputMode, add_output_mode_argument, make_console, render_panel, resolve_output_mode
from .util import eprint

_HEADERS = ("ID", "AVAILABLE", "EFF. DUE", "EFF. DEFER", "BLOCKED BY", "TITLE")


def _columns(ev: TaskEvaluation) -> tuple[str, ...]:
    due = format_time(ev.effective_due_date)
    if ev.effective_due_date is not None and not ev.has_local_due_date:
        due += " (inherited)"
    defer = format_time(ev.effective_defer_date)
    if ev.effective_defer_date is not None and not ev.has_local_defer_date:
        defer += " (inherited)"
    return (
        ev.task.id,
        "yes" if ev.is_available else "no",
        due,
        defer,
        ",".join(ev.to_dict()["blocking_reasons"]) or "-",
        truncate(ev.task.title, 48),
    )


def _database() -> Database:
    return Database.from_workdir(Path.cwd(), create=False)


def _warn_config_error(error: str | None) -> None:
    if error:
        eprint(f"warning: {error}")


def _output_mode(raw: str | None) -> OutputMode:
    try:
        return resolve_output_mode(raw)
    except ValueError as exc:
        fail(str(exc), code=2)


def view_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="nextaction view", description="Run a named view.")
    p.add_argument("name", choices=VIEW_NAMES, help="View name")
    p.add_argument("--now", help="Evaluate at this instant (ISO 8601)")
    p.add_argument("--hours", type=float, help="Due-soon window in hours")
    p.add_argument("--strict", action="store_true", help="Fail on missing references")
    p.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(p)
    args = p.parse_args(list(argv) if argv is not None else sys.argv[1:])
    output_mode = _output_mode(args.output)

    db = _database()
    config = load_config(db.root)
    _warn_config_error(config.error)
    try:
        rows = run_view(
            args.name,
            db.snapshot(),
            resolve_now(args.now),
            threshold_hours=args.hours if args.hours is not None else config.due_soon_hours,
            strict=args.strict or config.strict_references,
        )
    except ValueError as exc:
        fail(str(exc))

    if args.json:
        emit_json([row.to_dict() for row in rows])
        return
    print_rows(
        [_columns(row) for row in rows],
        headers=_HEADERS,
        output_mode=output_mode,
        title=f"View: {args.name}",
        empty="(nothing here)",
    )


def show_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="nextaction show", description="Explain one task.")
    p.add_argument("id", help="Task id")
    p.add_argument("--now", help="Evaluate at this instant (ISO 8601)")
    p.add_argument("--strict", action="store_true", help="Fail on missing references")
    p.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(p)
    args = p.parse_args(list(argv) if argv is not None else sys.argv[1:])
    output_mode = _output_mode(args.output)

    db = _database()
    config = load_config(db.root)
    _warn_config_error(config.error)
    snapshot = db.snapshot()
    try:
        evaluations = evaluate(
            snapshot,
            resolve_now(args.now),
            strict=args.strict or config.strict_references,
        )
    except ValueError as exc:
        fail(str(exc))
    ev = evaluations.get(args.id)
    if ev is None:
        fail(f"task not found: {args.id}")
    parents = ancestor_chain(snapshot, args.id)

    if args.json:
        emit_json({**ev.to_dict(), "parents": parents})
        return
    row = _columns(ev)
    lines = [
        f"title: {ev.task.title}",
        f"status: {ev.task.status}",
        f"parents: {' > '.join(parents) or '-'}",
        f"available: {row[1]}",
        f"effective due: {row[2]}",
        f"effective defer: {row[3]}",
        f"blocked by: {row[4]}",
    ]
    if output_mode == "rich":
        render_panel(make_console("rich"), "\n".join(lines), title=f"Task {ev.task.id}")
        return
    print("\n".join(lines))


def validate_main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(
        prog="nextaction validate", description="Check hierarchy and inbox consistency."
    )
    p.add_argument("--json", action="store_true", help="Output JSON")
    args = p.parse_args(list(argv) if argv is not None else sys.argv[1:])

    report = validate_snapshot(_database().snapshot())
    if args.json:
        emit_json(report)
    else:
        for name, ok in report["checks"].items():
            print(f"{'ok' if ok else 'FAIL':<4}  {name}")
        for finding in report["errors"]:
            print(f"error    {finding['code']}  {finding['id']}  {finding['message']}")
        for finding in report["warnings"]:
            print(f"warning  {finding['code']}  {finding['id']}  {finding['message']}")
    if report["errors"]:
        raise SystemExit(1)
