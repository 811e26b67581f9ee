from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from ..engine.hierarchy import Snapshot
from ..model import Folder, Project, Tag, Task
from ..util import to_epoch_ms
from .state import now_ms, resolve_state_dir

_SCHEMA = """
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS folders (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    parent_id TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    modified_at INTEGER NOT NULL,
    FOREIGN KEY(parent_id) REFERENCES folders(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    note TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    type TEXT NOT NULL DEFAULT 'parallel',
    flagged INTEGER NOT NULL DEFAULT 0,
    due_date INTEGER,
    defer_date INTEGER,
    completed_at INTEGER,
    dropped_at INTEGER,
    folder_id TEXT,
    review_interval INTEGER,
    last_reviewed_at INTEGER,
    auto_complete INTEGER NOT NULL DEFAULT 1,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    modified_at INTEGER NOT NULL,
    FOREIGN KEY(folder_id) REFERENCES folders(id) ON DELETE SET NULL
);
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    note TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    flagged INTEGER NOT NULL DEFAULT 0,
    estimated_duration INTEGER,
    due_date INTEGER,
    defer_date INTEGER,
    completed_at INTEGER,
    dropped_at INTEGER,
    project_id TEXT,
    parent_task_id TEXT,
    tentative_project_id TEXT,
    tentative_parent_task_id TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    modified_at INTEGER NOT NULL,
    FOREIGN KEY(parent_task_id) REFERENCES tasks(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    parent_id TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    allows_next_action INTEGER NOT NULL DEFAULT 1,
    children_mutually_exclusive INTEGER NOT NULL DEFAULT 0,
    location_latitude REAL,
    location_longitude REAL,
    location_radius INTEGER,
    location_name TEXT,
    created_at INTEGER NOT NULL,
    modified_at INTEGER NOT NULL,
    FOREIGN KEY(parent_id) REFERENCES tags(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS task_tags (
    task_id TEXT NOT NULL,
    tag_id TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY(task_id, tag_id),
    FOREIGN KEY(task_id) REFERENCES tasks(id) ON DELETE CASCADE,
    FOREIGN KEY(tag_id) REFERENCES tags(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS project_tags (
    project_id TEXT NOT NULL,
    tag_id TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY(project_id, tag_id),
    FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE,
    FOREIGN KEY(tag_id) REFERENCES tags(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id, sort_order);
CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id, sort_order);
CREATE INDEX IF NOT EXISTS idx_projects_folder ON projects(folder_id, sort_order);
CREATE INDEX IF NOT EXISTS idx_task_tags_tag ON task_tags(tag_id);
"""

# Sibling order shared with ``model.ordering_key``.
ORDER_BY = "sort_order ASC, created_at DESC, id ASC"

_T = TypeVar("_T")


def db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_epoch_ms(value)
    if isinstance(value, bool):
        return int(value)
    return value


@dataclass
class Database:
    root: Path
    create_on_connect: bool = True

    @classmethod
    def from_workdir(
        cls: type[_T],
        cwd: Path | None = None,
        *,
        create: bool = True,
    ) -> _T:
        return cls(
            resolve_state_dir(cwd, create=create),
            create_on_connect=create,
        )

    @property
    def db_path(self) -> Path:
        return self.root / "nextaction.sqlite3"

    def _connect(self) -> sqlite3.Connection:
        if self.create_on_connect:
            self.root.mkdir(parents=True, exist_ok=True)
        elif not self.db_path.exists():
            raise FileNotFoundError(str(self.db_path))
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(_SCHEMA)
        return conn

    def _update_row(
        self,
        conn: sqlite3.Connection,
        table: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> None:
        columns = dict(changes)
        columns["modified_at"] = now_ms()
        assignments = ", ".join(f"{name} = ?" for name in columns)
        params = [db_value(value) for value in columns.values()]
        params.append(row_id)
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            tuple(params),
        )
        if cur.rowcount == 0:
            raise ValueError(f"unknown {table[:-1]}: {row_id}")

    def snapshot(self) -> Snapshot:
        """Load every row into an engine snapshot."""
        if not self.db_path.exists():
            return Snapshot()
        with self._connect() as conn:
            tasks = [
                Task.from_row(row)
                for row in conn.execute(f"SELECT * FROM tasks ORDER BY {ORDER_BY}")
            ]
            projects = [
                Project.from_row(row)
                for row in conn.execute(f"SELECT * FROM projects ORDER BY {ORDER_BY}")
            ]
            folders = [
                Folder.from_row(row)
                for row in conn.execute("SELECT * FROM folders ORDER BY sort_order, name")
            ]
            tags = [
                Tag.from_row(row)
                for row in conn.execute("SELECT * FROM tags ORDER BY sort_order, name")
            ]
        return Snapshot.build(tasks=tasks, projects=projects, folders=folders, tags=tags)
