from __future__ import annotations

import sqlite3
from typing import Any

from ..engine.hierarchy import require_acyclic
from ..model import Folder, normalize_folder_status, normalize_title
from ..util import new_id
from .base import Database
from .state import now_ms

_UNSET: Any = object()


class FolderStore(Database):
    def _require_folder(self, conn: sqlite3.Connection, folder_id: str) -> Folder:
        row = conn.execute("SELECT * FROM folders WHERE id = ?", (folder_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown folder: {folder_id}")
        return Folder.from_row(row)

    def _check_parent(
        self,
        conn: sqlite3.Connection,
        folder_id: str,
        parent_id: str | None,
    ) -> None:
        if parent_id is None:
            return
        self._require_folder(conn, parent_id)
        parents = {
            str(row["id"]): row["parent_id"]
            for row in conn.execute("SELECT id, parent_id FROM folders")
        }
        parents[folder_id] = parent_id
        require_acyclic(parents, kind="folder")

    def create(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        order: int = 0,
    ) -> Folder:
        folder_name = normalize_title(name)
        now = now_ms()
        folder_id = new_id("folder")
        with self._connect() as conn:
            if parent_id is not None:
                self._require_folder(conn, parent_id)
            conn.execute(
                """
                INSERT INTO folders(id, name, status, parent_id, sort_order, created_at, modified_at)
                VALUES(?, ?, 'active', ?, ?, ?, ?)
                """,
                (folder_id, folder_name, parent_id, int(order), now, now),
            )
            return self._require_folder(conn, folder_id)

    def get(self, folder_id: str) -> Folder | None:
        if not folder_id.strip() or not self.db_path.exists():
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM folders WHERE id = ?", (folder_id.strip(),)
            ).fetchone()
        return Folder.from_row(row) if row is not None else None

    def list(
        self,
        *,
        status: str | None = None,
        include_dropped: bool = False,
        parent_id: str | None = _UNSET,
    ) -> list[Folder]:
        if not self.db_path.exists():
            return []
        where: list[str] = []
        params: list[Any] = []
        if status:
            where.append("status = ?")
            params.append(normalize_folder_status(status))
        elif not include_dropped:
            where.append("status = 'active'")
        if parent_id is not _UNSET:
            if parent_id is None:
                where.append("parent_id IS NULL")
            else:
                where.append("parent_id = ?")
                params.append(parent_id)
        query = "SELECT * FROM folders"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY sort_order ASC, name ASC"
        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [Folder.from_row(row) for row in rows]

    def update(
        self,
        folder_id: str,
        *,
        name: str | None = None,
        status: str | None = None,
        parent_id: str | None = _UNSET,
        order: int | None = None,
    ) -> Folder:
        columns: dict[str, Any] = {}
        if name is not None:
            columns["name"] = normalize_title(name)
        if status is not None:
            columns["status"] = normalize_folder_status(status)
        if order is not None:
            columns["sort_order"] = int(order)
        with self._connect() as conn:
            current = self._require_folder(conn, folder_id)
            if parent_id is not _UNSET:
                self._check_parent(conn, folder_id, parent_id)
                columns["parent_id"] = parent_id
            if not columns:
                return current
            self._update_row(conn, "folders", folder_id, columns)
            return self._require_folder(conn, folder_id)

    def rename(self, folder_id: str, name: str) -> Folder:
        return self.update(folder_id, name=name)

    def drop(self, folder_id: str) -> Folder:
        return self.update(folder_id, status="dropped")

    def activate(self, folder_id: str) -> Folder:
        return self.update(folder_id, status="active")

    def move(
        self,
        folder_id: str,
        parent_id: str | None,
        *,
        position: int | None = None,
    ) -> Folder:
        return self.update(folder_id, parent_id=parent_id, order=position or 0)

    def delete(self, folder_id: str, *, recursive: bool = False) -> dict[str, Any]:
        """Delete a folder; child folders move up a level unless ``recursive``."""
        with self._connect() as conn:
            folder = self._require_folder(conn, folder_id)
            if not recursive:
                conn.execute(
                    "UPDATE folders SET parent_id = ?, modified_at = ? WHERE parent_id = ?",
                    (folder.parent_id, now_ms(), folder_id),
                )
            conn.execute("DELETE FROM folders WHERE id = ?", (folder_id,))
        return {"id": folder_id, "deleted": True}

    def stats(self, folder_id: str) -> dict[str, int]:
        with self._connect() as conn:
            self._require_folder(conn, folder_id)
            folder_count = conn.execute(
                "SELECT COUNT(*) FROM folders WHERE parent_id = ?", (folder_id,)
            ).fetchone()[0]
            project_rows = conn.execute(
                "SELECT id, status FROM projects WHERE folder_id = ?", (folder_id,)
            ).fetchall()
            project_ids = [str(row["id"]) for row in project_rows]
            total_tasks = 0
            remaining_tasks = 0
            if project_ids:
                marks = ", ".join("?" for _ in project_ids)
                total_tasks, remaining_tasks = conn.execute(
                    f"""
                    SELECT COUNT(*), COALESCE(SUM(status = 'active'), 0)
                    FROM tasks WHERE project_id IN ({marks})
                    """,
                    tuple(project_ids),
                ).fetchone()
        return {
            "folder_count": int(folder_count),
            "project_count": sum(1 for row in project_rows if row["status"] == "active"),
            "total_projects": len(project_rows),
            "total_tasks": int(total_tasks),
            "remaining_tasks": int(remaining_tasks),
        }
