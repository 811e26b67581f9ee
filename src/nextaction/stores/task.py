from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from ..errors import CyclicHierarchyError
from ..model import Task, normalize_task_status, normalize_title
from ..util import new_id, to_epoch_ms
from .base import ORDER_BY, Database
from .state import now_ms

TASK_UPDATE_FIELDS = frozenset(
    {
        "title",
        "note",
        "status",
        "flagged",
        "estimated_duration",
        "due_date",
        "defer_date",
        "project_id",
        "parent_task_id",
        "tentative_project_id",
        "tentative_parent_task_id",
        "order",
    }
)

_UNSET: Any = object()


def _normalize_duration(value: int | None) -> int | None:
    if value is None:
        return None
    minutes = int(value)
    if minutes < 0:
        raise ValueError("estimated duration must be non-negative")
    return minutes


class TaskStore(Database):
    def _require_task(self, conn: sqlite3.Connection, task_id: str) -> Task:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown task: {task_id}")
        return Task.from_row(row)

    def _require_project(self, conn: sqlite3.Connection, project_id: str) -> None:
        row = conn.execute(
            "SELECT 1 FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if row is None:
            raise ValueError(f"unknown project: {project_id}")

    def _check_parent(
        self,
        conn: sqlite3.Connection,
        task_id: str | None,
        parent_id: str,
    ) -> Task:
        parent = self._require_task(conn, parent_id)
        # Walk up from the new parent; meeting task_id would close a loop.
        current: str | None = parent_id
        chain: list[str] = []
        while current is not None and current not in chain:
            if current == task_id:
                raise CyclicHierarchyError("task parent", [task_id, *chain, task_id])
            chain.append(current)
            row = conn.execute(
                "SELECT parent_task_id FROM tasks WHERE id = ?", (current,)
            ).fetchone()
            current = row["parent_task_id"] if row is not None else None
        return parent

    def create(
        self,
        title: str,
        *,
        note: str | None = None,
        flagged: bool = False,
        estimated_duration: int | None = None,
        due_date: datetime | None = None,
        defer_date: datetime | None = None,
        project_id: str | None = None,
        parent_task_id: str | None = None,
        order: int = 0,
    ) -> Task:
        task_title = normalize_title(title)
        duration = _normalize_duration(estimated_duration)
        now = now_ms()
        task_id = new_id("task")

        with self._connect() as conn:
            if parent_task_id is not None:
                parent = self._check_parent(conn, None, parent_task_id)
                if project_id is None:
                    project_id = parent.project_id
            if project_id is not None:
                self._require_project(conn, project_id)
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, note, status, flagged, estimated_duration,
                    due_date, defer_date, project_id, parent_task_id,
                    sort_order, created_at, modified_at
                )
                VALUES(?, ?, ?, 'active', ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    task_title,
                    note,
                    int(flagged),
                    duration,
                    to_epoch_ms(due_date),
                    to_epoch_ms(defer_date),
                    project_id,
                    parent_task_id,
                    int(order),
                    now,
                    now,
                ),
            )
            return self._require_task(conn, task_id)

    def get(self, task_id: str) -> Task | None:
        key = task_id.strip()
        if not key or not self.db_path.exists():
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (key,)).fetchone()
        return Task.from_row(row) if row is not None else None

    def list(
        self,
        *,
        status: str | None = None,
        flagged: bool | None = None,
        project_id: str | None = _UNSET,
        parent_task_id: str | None = _UNSET,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        inbox_only: bool = False,
    ) -> list[Task]:
        """List tasks in sibling order.

        ``project_id`` and ``parent_task_id`` filter on equality; passing
        ``None`` explicitly selects rows where the column is null.
        """
        if not self.db_path.exists():
            return []

        where: list[str] = []
        params: list[Any] = []
        if status:
            where.append("status = ?")
            params.append(normalize_task_status(status))
        if flagged is not None:
            where.append("flagged = ?")
            params.append(int(flagged))
        for column, value in (
            ("project_id", project_id),
            ("parent_task_id", parent_task_id),
        ):
            if value is _UNSET:
                continue
            if value is None:
                where.append(f"{column} IS NULL")
            else:
                where.append(f"{column} = ?")
                params.append(value)
        if due_before is not None:
            where.append("due_date < ?")
            params.append(to_epoch_ms(due_before))
        if due_after is not None:
            where.append("due_date > ?")
            params.append(to_epoch_ms(due_after))
        if inbox_only:
            where.append("project_id IS NULL AND parent_task_id IS NULL")

        query = "SELECT * FROM tasks"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += f" ORDER BY {ORDER_BY}"

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [Task.from_row(row) for row in rows]

    def subtasks(self, task_id: str) -> list[Task]:
        return self.list(parent_task_id=task_id)

    def update(self, task_id: str, **changes: Any) -> Task:
        unknown = set(changes) - TASK_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"cannot update task fields: {', '.join(sorted(unknown))}")

        columns: dict[str, Any] = {}
        for name, value in changes.items():
            if name == "title":
                value = normalize_title(value)
            elif name == "status":
                value = normalize_task_status(value)
            elif name == "estimated_duration":
                value = _normalize_duration(value)
            elif name == "flagged":
                value = bool(value)
            columns["sort_order" if name == "order" else name] = value

        with self._connect() as conn:
            current = self._require_task(conn, task_id)
            if not columns:
                return current
            if columns.get("parent_task_id") is not None:
                self._check_parent(conn, task_id, columns["parent_task_id"])
            if columns.get("project_id") is not None:
                self._require_project(conn, columns["project_id"])
            self._update_row(conn, "tasks", task_id, columns)
            return self._require_task(conn, task_id)

    def complete(self, task_id: str) -> Task:
        return self._set_terminal(task_id, "completed", "completed_at")

    def drop(self, task_id: str) -> Task:
        return self._set_terminal(task_id, "dropped", "dropped_at")

    def _set_terminal(self, task_id: str, status: str, stamp_column: str) -> Task:
        with self._connect() as conn:
            self._require_task(conn, task_id)
            self._update_row(
                conn, "tasks", task_id, {"status": status, stamp_column: now_ms()}
            )
            return self._require_task(conn, task_id)

    def restore(self, task_id: str) -> Task:
        with self._connect() as conn:
            self._require_task(conn, task_id)
            self._update_row(
                conn,
                "tasks",
                task_id,
                {"status": "active", "completed_at": None, "dropped_at": None},
            )
            return self._require_task(conn, task_id)

    def delete(self, task_id: str) -> dict[str, Any]:
        """Delete a task; its subtasks go with it."""
        with self._connect() as conn:
            self._require_task(conn, task_id)
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        return {"id": task_id, "deleted": True}

