from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from ..model import (
    Project,
    normalize_project_status,
    normalize_project_type,
    normalize_title,
)
from ..util import new_id, to_epoch_ms
from .base import ORDER_BY, Database
from .state import now_ms

DEFAULT_REVIEW_INTERVAL_DAYS = 7

PROJECT_UPDATE_FIELDS = frozenset(
    {
        "title",
        "note",
        "status",
        "type",
        "flagged",
        "due_date",
        "defer_date",
        "folder_id",
        "review_interval",
        "auto_complete",
        "order",
    }
)

_UNSET: Any = object()


def _normalize_review_interval(value: int | None) -> int | None:
    if value is None:
        return None
    days = int(value)
    if days < 1:
        raise ValueError("review interval must be at least one day")
    return days


class ProjectStore(Database):
    def _require_project(self, conn: sqlite3.Connection, project_id: str) -> Project:
        row = conn.execute(
            "SELECT * FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if row is None:
            raise ValueError(f"unknown project: {project_id}")
        return Project.from_row(row)

    def _require_folder(self, conn: sqlite3.Connection, folder_id: str) -> None:
        if conn.execute("SELECT 1 FROM folders WHERE id = ?", (folder_id,)).fetchone() is None:
            raise ValueError(f"unknown folder: {folder_id}")

    def create(
        self,
        title: str,
        *,
        note: str | None = None,
        type: str = "parallel",
        flagged: bool = False,
        due_date: datetime | None = None,
        defer_date: datetime | None = None,
        folder_id: str | None = None,
        review_interval: int | None = DEFAULT_REVIEW_INTERVAL_DAYS,
        auto_complete: bool | None = None,
        order: int = 0,
    ) -> Project:
        project_title = normalize_title(title)
        project_type = normalize_project_type(type)
        if auto_complete is None:
            auto_complete = project_type != "single_actions"
        interval = _normalize_review_interval(review_interval)
        now = now_ms()
        project_id = new_id("project")

        with self._connect() as conn:
            if folder_id is not None:
                self._require_folder(conn, folder_id)
            conn.execute(
                """
                INSERT INTO projects(
                    id, title, note, status, type, flagged, due_date, defer_date,
                    folder_id, review_interval, auto_complete, sort_order,
                    created_at, modified_at
                )
                VALUES(?, ?, ?, 'active', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project_id,
                    project_title,
                    note,
                    project_type,
                    int(flagged),
                    to_epoch_ms(due_date),
                    to_epoch_ms(defer_date),
                    folder_id,
                    interval,
                    int(auto_complete),
                    int(order),
                    now,
                    now,
                ),
            )
            return self._require_project(conn, project_id)

    def get(self, project_id: str) -> Project | None:
        key = project_id.strip()
        if not key or not self.db_path.exists():
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (key,)).fetchone()
        return Project.from_row(row) if row is not None else None

    def list(
        self,
        *,
        status: str | None = None,
        type: str | None = None,
        flagged: bool | None = None,
        folder_id: str | None = _UNSET,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        available_only: bool = False,
        now: datetime | None = None,
    ) -> list[Project]:
        if not self.db_path.exists():
            return []

        where: list[str] = []
        params: list[Any] = []
        if status:
            where.append("status = ?")
            params.append(normalize_project_status(status))
        if type:
            where.append("type = ?")
            params.append(normalize_project_type(type))
        if flagged is not None:
            where.append("flagged = ?")
            params.append(int(flagged))
        if folder_id is not _UNSET:
            if folder_id is None:
                where.append("folder_id IS NULL")
            else:
                where.append("folder_id = ?")
                params.append(folder_id)
        if due_before is not None:
            where.append("due_date < ?")
            params.append(to_epoch_ms(due_before))
        if due_after is not None:
            where.append("due_date > ?")
            params.append(to_epoch_ms(due_after))
        if available_only:
            where.append("status = 'active' AND (defer_date IS NULL OR defer_date <= ?)")
            params.append(to_epoch_ms(now) if now is not None else now_ms())

        query = "SELECT * FROM projects"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += f" ORDER BY {ORDER_BY}"

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [Project.from_row(row) for row in rows]

    def update(self, project_id: str, **changes: Any) -> Project:
        unknown = set(changes) - PROJECT_UPDATE_FIELDS
        if unknown:
            raise ValueError(
                f"cannot update project fields: {', '.join(sorted(unknown))}"
            )

        columns: dict[str, Any] = {}
        for name, value in changes.items():
            if name == "title":
                value = normalize_title(value)
            elif name == "status":
                value = normalize_project_status(value)
            elif name == "type":
                value = normalize_project_type(value)
            elif name == "review_interval":
                value = _normalize_review_interval(value)
            elif name in {"flagged", "auto_complete"}:
                value = bool(value)
            columns["sort_order" if name == "order" else name] = value

        with self._connect() as conn:
            current = self._require_project(conn, project_id)
            if not columns:
                return current
            if columns.get("folder_id") is not None:
                self._require_folder(conn, columns["folder_id"])
            self._update_row(conn, "projects", project_id, columns)
            return self._require_project(conn, project_id)

    def _set(self, project_id: str, columns: dict[str, Any]) -> Project:
        with self._connect() as conn:
            self._require_project(conn, project_id)
            self._update_row(conn, "projects", project_id, columns)
            return self._require_project(conn, project_id)

    def complete(self, project_id: str) -> Project:
        return self._set(project_id, {"status": "completed", "completed_at": now_ms()})

    def drop(self, project_id: str, *, drop_tasks: bool = False) -> Project:
        stamp = now_ms()
        with self._connect() as conn:
            self._require_project(conn, project_id)
            if drop_tasks:
                conn.execute(
                    """
                    UPDATE tasks
                    SET status = 'dropped', dropped_at = ?, modified_at = ?
                    WHERE project_id = ?
                    """,
                    (stamp, stamp, project_id),
                )
            self._update_row(
                conn, "projects", project_id, {"status": "dropped", "dropped_at": stamp}
            )
            return self._require_project(conn, project_id)

    def hold(self, project_id: str) -> Project:
        return self._set(project_id, {"status": "on_hold"})

    def activate(self, project_id: str) -> Project:
        return self._set(
            project_id,
            {"status": "active", "completed_at": None, "dropped_at": None},
        )

    def move(
        self,
        project_id: str,
        folder_id: str | None,
        *,
        position: int | None = None,
    ) -> Project:
        with self._connect() as conn:
            self._require_project(conn, project_id)
            if folder_id is not None:
                self._require_folder(conn, folder_id)
            self._update_row(
                conn,
                "projects",
                project_id,
                {"folder_id": folder_id, "sort_order": int(position or 0)},
            )
            return self._require_project(conn, project_id)

    def mark_reviewed(self, project_id: str, *, at: datetime | None = None) -> Project:
        stamp = to_epoch_ms(at) if at is not None else now_ms()
        return self._set(project_id, {"last_reviewed_at": stamp})

    def delete(self, project_id: str, *, delete_tasks: bool = False) -> dict[str, Any]:
        """Delete a project. Its tasks return to the inbox unless ``delete_tasks``."""
        with self._connect() as conn:
            self._require_project(conn, project_id)
            if delete_tasks:
                cur = conn.execute("DELETE FROM tasks WHERE project_id = ?", (project_id,))
            else:
                cur = conn.execute(
                    "UPDATE tasks SET project_id = NULL, modified_at = ? WHERE project_id = ?",
                    (now_ms(), project_id),
                )
            conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return {
            "id": project_id,
            "deleted": True,
            "tasks_deleted" if delete_tasks else "tasks_moved_to_inbox": cur.rowcount,
        }
