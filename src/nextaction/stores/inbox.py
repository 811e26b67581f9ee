from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from ..engine import inbox as inbox_rules
from ..engine.views import inbox_stats
from ..errors import CyclicHierarchyError
from ..model import Project, Task
from ..util import utc_now
from .base import ORDER_BY, Database
from .project import ProjectStore
from .task import TaskStore

_INBOX = "project_id IS NULL AND parent_task_id IS NULL"


class InboxStore(Database):
    """Inbox queries and processing on top of the shared task table."""

    def _require_task(self, conn: sqlite3.Connection, task_id: str) -> Task:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown task: {task_id}")
        return Task.from_row(row)

    def _require_project(self, conn: sqlite3.Connection, project_id: str) -> None:
        if conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone() is None:
            raise ValueError(f"unknown project: {project_id}")

    def _tasks(self) -> TaskStore:
        return TaskStore(self.root, create_on_connect=self.create_on_connect)

    def _save(self, conn: sqlite3.Connection, task: Task) -> Task:
        self._update_row(
            conn,
            "tasks",
            task.id,
            {
                "project_id": task.project_id,
                "parent_task_id": task.parent_task_id,
                "tentative_project_id": task.tentative_project_id,
                "tentative_parent_task_id": task.tentative_parent_task_id,
                "sort_order": int(task.order),
            },
        )
        return self._require_task(conn, task.id)

    def list(
        self,
        *,
        include_completed: bool = False,
        include_dropped: bool = False,
    ) -> list[Task]:
        if not self.db_path.exists():
            return []
        where = [_INBOX]
        if not include_completed:
            where.append("status != 'completed'")
        if not include_dropped:
            where.append("status != 'dropped'")
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM tasks WHERE {' AND '.join(where)} ORDER BY {ORDER_BY}"
            ).fetchall()
        return [Task.from_row(row) for row in rows]

    def count(self) -> int:
        if not self.db_path.exists():
            return 0
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM tasks WHERE {_INBOX} AND status = 'active'"
            ).fetchone()
        return int(row[0])

    def has_items(self) -> bool:
        return self.count() > 0

    def stats(self, now: datetime | None = None) -> dict[str, int]:
        items = self.list(include_completed=True, include_dropped=True)
        return inbox_stats(items, now or utc_now())

    def process_to_project(
        self,
        task_id: str,
        project_id: str,
        *,
        position: int | None = None,
    ) -> Task:
        with self._connect() as conn:
            self._require_project(conn, project_id)
            task = self._require_task(conn, task_id)
            resolved = inbox_rules.resolve_to_project(
                task, project_id, position=position if position is not None else 0
            )
            return self._save(conn, resolved)

    def process_to_task(
        self,
        task_id: str,
        parent_task_id: str,
        *,
        position: int | None = None,
    ) -> Task:
        with self._connect() as conn:
            task = self._require_task(conn, task_id)
            parent = self._tasks()._check_parent(conn, task_id, parent_task_id)
            resolved = inbox_rules.resolve_to_parent(
                task, parent, position=position if position is not None else 0
            )
            return self._save(conn, resolved)

    def set_tentative(
        self,
        task_id: str,
        *,
        project_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> Task:
        with self._connect() as conn:
            task = self._require_task(conn, task_id)
            updated = inbox_rules.set_tentative(
                task, project_id=project_id, parent_task_id=parent_task_id
            )
            if parent_task_id is not None:
                self._tasks()._check_parent(conn, task_id, parent_task_id)
            if project_id is not None:
                self._require_project(conn, project_id)
            return self._save(conn, updated)

    def clean_up(self) -> dict[str, Any]:
        """Apply every tentative assignment in the inbox."""
        if not self.db_path.exists():
            return {"processed": 0, "updated": []}
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM tasks
                WHERE {_INBOX}
                  AND status = 'active'
                  AND (tentative_project_id IS NOT NULL OR tentative_parent_task_id IS NOT NULL)
                ORDER BY {ORDER_BY}
                """
            ).fetchall()
            candidates = [Task.from_row(row) for row in rows]

            def parent_lookup(parent_id: str) -> Task | None:
                row = conn.execute(
                    "SELECT * FROM tasks WHERE id = ?", (parent_id,)
                ).fetchone()
                return Task.from_row(row) if row is not None else None

            result = inbox_rules.reconcile(candidates, parent_lookup)
            tasks = self._tasks()
            saved: list[Task] = []
            for task in result.updated:
                # Targets that vanished or now close a loop leave the item in the inbox.
                if task.parent_task_id is not None:
                    if parent_lookup(task.parent_task_id) is None:
                        task = task.with_changes(parent_task_id=None, project_id=None)
                    else:
                        try:
                            tasks._check_parent(conn, task.id, task.parent_task_id)
                        except CyclicHierarchyError:
                            task = task.with_changes(parent_task_id=None, project_id=None)
                elif task.project_id is not None:
                    try:
                        self._require_project(conn, task.project_id)
                    except ValueError:
                        task = task.with_changes(project_id=None)
                saved.append(self._save(conn, task))
        return {"processed": result.processed, "updated": saved}

    def convert_to_project(self, task_id: str, *, project_type: str | None = None) -> Project:
        with self._connect() as conn:
            task = self._require_task(conn, task_id)
        fields = inbox_rules.project_from_inbox_item(task, project_type)
        project = ProjectStore(self.root, create_on_connect=self.create_on_connect).create(
            fields["title"],
            note=fields["note"],
            type=fields["type"],
            flagged=fields["flagged"],
            due_date=fields["due_date"],
            defer_date=fields["defer_date"],
            auto_complete=fields["auto_complete"],
        )
        with self._connect() as conn:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        return project

    def reorder(self, task_id: str, position: int) -> Task:
        with self._connect() as conn:
            self._require_task(conn, task_id)
            self._update_row(conn, "tasks", task_id, {"sort_order": int(position)})
            return self._require_task(conn, task_id)
