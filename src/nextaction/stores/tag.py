from __future__ import annotations

import sqlite3
from typing import Any

from ..engine.hierarchy import require_acyclic
from ..model import MAX_TAG_NAME_LENGTH, Location, Tag, normalize_tag_status, normalize_title
from ..util import new_id
from .base import Database
from .state import now_ms

_UNSET: Any = object()


def _location_columns(location: Location | None) -> dict[str, Any]:
    if location is None:
        return {
            "location_latitude": None,
            "location_longitude": None,
            "location_radius": None,
            "location_name": None,
        }
    if not -90.0 <= location.latitude <= 90.0:
        raise ValueError("latitude must be between -90 and 90")
    if not -180.0 <= location.longitude <= 180.0:
        raise ValueError("longitude must be between -180 and 180")
    if location.radius is not None and location.radius <= 0:
        raise ValueError("location radius must be positive")
    return {
        "location_latitude": float(location.latitude),
        "location_longitude": float(location.longitude),
        "location_radius": location.radius,
        "location_name": location.name,
    }


class TagStore(Database):
    def _require_tag(self, conn: sqlite3.Connection, tag_id: str) -> Tag:
        row = conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown tag: {tag_id}")
        return Tag.from_row(row)

    def _require_row(self, conn: sqlite3.Connection, table: str, row_id: str) -> None:
        if conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone() is None:
            raise ValueError(f"unknown {table[:-1]}: {row_id}")

    def create(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        order: int = 0,
        allows_next_action: bool = True,
        children_mutually_exclusive: bool = False,
        location: Location | None = None,
    ) -> Tag:
        tag_name = normalize_title(name, limit=MAX_TAG_NAME_LENGTH)
        location_columns = _location_columns(location)
        now = now_ms()
        tag_id = new_id("tag")
        with self._connect() as conn:
            if parent_id is not None:
                self._require_tag(conn, parent_id)
            conn.execute(
                """
                INSERT INTO tags(
                    id, name, status, parent_id, sort_order, allows_next_action,
                    children_mutually_exclusive, location_latitude, location_longitude,
                    location_radius, location_name, created_at, modified_at
                )
                VALUES(?, ?, 'active', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tag_id,
                    tag_name,
                    parent_id,
                    int(order),
                    int(allows_next_action),
                    int(children_mutually_exclusive),
                    location_columns["location_latitude"],
                    location_columns["location_longitude"],
                    location_columns["location_radius"],
                    location_columns["location_name"],
                    now,
                    now,
                ),
            )
            return self._require_tag(conn, tag_id)

    def get(self, tag_id: str) -> Tag | None:
        if not tag_id.strip() or not self.db_path.exists():
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id.strip(),)).fetchone()
        return Tag.from_row(row) if row is not None else None

    def list(
        self,
        *,
        status: str | None = None,
        include_dropped: bool = False,
        parent_id: str | None = _UNSET,
        has_location: bool = False,
    ) -> list[Tag]:
        if not self.db_path.exists():
            return []
        where: list[str] = []
        params: list[Any] = []
        if status:
            where.append("status = ?")
            params.append(normalize_tag_status(status))
        elif not include_dropped:
            where.append("status != 'dropped'")
        if parent_id is not _UNSET:
            if parent_id is None:
                where.append("parent_id IS NULL")
            else:
                where.append("parent_id = ?")
                params.append(parent_id)
        if has_location:
            where.append("location_latitude IS NOT NULL")
        query = "SELECT * FROM tags"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY sort_order ASC, name ASC"
        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [Tag.from_row(row) for row in rows]

    def update(
        self,
        tag_id: str,
        *,
        name: str | None = None,
        status: str | None = None,
        parent_id: str | None = _UNSET,
        order: int | None = None,
        allows_next_action: bool | None = None,
        children_mutually_exclusive: bool | None = None,
        location: Location | None = _UNSET,
    ) -> Tag:
        columns: dict[str, Any] = {}
        if name is not None:
            columns["name"] = normalize_title(name, limit=MAX_TAG_NAME_LENGTH)
        if status is not None:
            columns["status"] = normalize_tag_status(status)
        if order is not None:
            columns["sort_order"] = int(order)
        if allows_next_action is not None:
            columns["allows_next_action"] = bool(allows_next_action)
        if children_mutually_exclusive is not None:
            columns["children_mutually_exclusive"] = bool(children_mutually_exclusive)
        if location is not _UNSET:
            columns.update(_location_columns(location))
        with self._connect() as conn:
            current = self._require_tag(conn, tag_id)
            if parent_id is not _UNSET:
                if parent_id is not None:
                    self._require_tag(conn, parent_id)
                    parents = {
                        str(row["id"]): row["parent_id"]
                        for row in conn.execute("SELECT id, parent_id FROM tags")
                    }
                    parents[tag_id] = parent_id
                    require_acyclic(parents, kind="tag")
                columns["parent_id"] = parent_id
            if not columns:
                return current
            self._update_row(conn, "tags", tag_id, columns)
            return self._require_tag(conn, tag_id)

    def rename(self, tag_id: str, name: str) -> Tag:
        return self.update(tag_id, name=name)

    def set_status(self, tag_id: str, status: str) -> Tag:
        return self.update(tag_id, status=status)

    def move(self, tag_id: str, parent_id: str | None, *, position: int | None = None) -> Tag:
        return self.update(tag_id, parent_id=parent_id, order=position or 0)

    def delete(self, tag_id: str, *, delete_children: bool = False) -> dict[str, Any]:
        with self._connect() as conn:
            tag = self._require_tag(conn, tag_id)
            if not delete_children:
                conn.execute(
                    "UPDATE tags SET parent_id = ?, modified_at = ? WHERE parent_id = ?",
                    (tag.parent_id, now_ms(), tag_id),
                )
            conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
        return {"id": tag_id, "deleted": True}

    def add_to_task(self, task_id: str, tag_id: str) -> list[Tag]:
        """Tag a task; siblings under a mutually exclusive parent are removed."""
        with self._connect() as conn:
            self._require_row(conn, "tasks", task_id)
            tag = self._require_tag(conn, tag_id)
            if tag.parent_id is not None:
                parent = self._require_tag(conn, tag.parent_id)
                if parent.children_mutually_exclusive:
                    conn.execute(
                        """
                        DELETE FROM task_tags
                        WHERE task_id = ?
                          AND tag_id != ?
                          AND tag_id IN (SELECT id FROM tags WHERE parent_id = ?)
                        """,
                        (task_id, tag_id, parent.id),
                    )
            conn.execute(
                "INSERT OR IGNORE INTO task_tags(task_id, tag_id) VALUES(?, ?)",
                (task_id, tag_id),
            )
        return self.task_tags(task_id)

    def remove_from_task(self, task_id: str, tag_id: str) -> list[Tag]:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM task_tags WHERE task_id = ? AND tag_id = ?",
                (task_id, tag_id),
            )
        return self.task_tags(task_id)

    def add_to_project(self, project_id: str, tag_id: str) -> list[Tag]:
        with self._connect() as conn:
            self._require_row(conn, "projects", project_id)
            self._require_tag(conn, tag_id)
            conn.execute(
                "INSERT OR IGNORE INTO project_tags(project_id, tag_id) VALUES(?, ?)",
                (project_id, tag_id),
            )
        return self.project_tags(project_id)

    def remove_from_project(self, project_id: str, tag_id: str) -> list[Tag]:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM project_tags WHERE project_id = ? AND tag_id = ?",
                (project_id, tag_id),
            )
        return self.project_tags(project_id)

    def task_tags(self, task_id: str) -> list[Tag]:
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT t.* FROM task_tags tt
                JOIN tags t ON t.id = tt.tag_id
                WHERE tt.task_id = ?
                ORDER BY tt.sort_order ASC, t.name ASC
                """,
                (task_id,),
            ).fetchall()
        return [Tag.from_row(row) for row in rows]

    def project_tags(self, project_id: str) -> list[Tag]:
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT t.* FROM project_tags pt
                JOIN tags t ON t.id = pt.tag_id
                WHERE pt.project_id = ?
                ORDER BY pt.sort_order ASC, t.name ASC
                """,
                (project_id,),
            ).fetchall()
        return [Tag.from_row(row) for row in rows]

    def location_tags(self) -> list[Tag]:
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tags
                WHERE location_latitude IS NOT NULL AND status = 'active'
                ORDER BY name ASC
                """
            ).fetchall()
        return [Tag.from_row(row) for row in rows]
