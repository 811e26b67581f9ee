"""Shared output helpers for the command modules."""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from datetime import datetime
from typing import Any, NoReturn

from .model import Project, Task
from .ui import OutputMode, make_console, render_panel, render_plain_table, render_table
from .util import from_epoch_ms, parse_datetime, utc_now

TASK_HEADERS = ("ID", "STATUS", "FLAG", "DUE", "DEFER", "PROJECT", "TITLE")
PROJECT_HEADERS = ("ID", "STATUS", "TYPE", "DUE", "DEFER", "FOLDER", "TITLE")

_TIMESTAMP_SUFFIXES = ("_at", "_date")


def iso_from_epoch_ms(value: object) -> str | None:
    dt = from_epoch_ms(value)
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def with_iso_timestamps(payload: Any) -> Any:
    if isinstance(payload, dict):
        out: dict[str, Any] = {}
        for key, value in payload.items():
            out[key] = with_iso_timestamps(value)
            if isinstance(key, str) and key.endswith(_TIMESTAMP_SUFFIXES):
                iso = iso_from_epoch_ms(value)
                if iso:
                    out[f"{key}_iso"] = iso
        return out
    if isinstance(payload, list):
        return [with_iso_timestamps(item) for item in payload]
    return payload


def emit_json(payload: Any) -> None:
    print(json.dumps(with_iso_timestamps(payload), ensure_ascii=False, indent=2))


def fail(message: str, *, code: int = 1) -> NoReturn:
    print(f"error: {message}", file=sys.stderr)
    raise SystemExit(code)


def resolve_now(raw: str | None) -> datetime:
    """``--now`` override for evaluating views at a fixed instant."""
    if raw is None or not raw.strip():
        return utc_now()
    value = parse_datetime(raw)
    assert value is not None
    return value


def format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def truncate(value: object, limit: int) -> str:
    text = str(value or "").strip()
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def task_columns(task: Task) -> tuple[str, ...]:
    return (
        task.id,
        task.status,
        "*" if task.flagged else "",
        format_time(task.due_date),
        format_time(task.defer_date),
        task.project_id or "-",
        truncate(task.title, 56),
    )


def project_columns(project: Project) -> tuple[str, ...]:
    return (
        project.id,
        project.status,
        project.type,
        format_time(project.due_date),
        format_time(project.defer_date),
        project.folder_id or "-",
        truncate(project.title, 56),
    )


def print_rows(
    rows: Sequence[Sequence[str]],
    *,
    headers: Sequence[str],
    output_mode: OutputMode,
    title: str,
    empty: str,
) -> None:
    if not rows:
        if output_mode == "rich":
            render_panel(make_console("rich"), empty, title=title)
        else:
            print(empty)
        return
    if output_mode == "rich":
        render_table(
            make_console("rich"),
            title=title,
            headers=headers,
            rows=rows,
            no_wrap_columns=(0, 1),
        )
        return
    render_plain_table(headers, rows)


def print_task_line(task: Task) -> None:
    print("  ".join(task_columns(task)))
