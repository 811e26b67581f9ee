"""Row types for tasks, projects, folders and tags."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping

from .util import from_epoch_ms, to_epoch_ms

TASK_STATUSES = ("active", "completed", "dropped")
PROJECT_STATUSES = ("active", "on_hold", "completed", "dropped")
PROJECT_TYPES = ("parallel", "sequential", "single_actions")
FOLDER_STATUSES = ("active", "dropped")
TAG_STATUSES = ("active", "on_hold", "dropped")

MAX_TITLE_LENGTH = 500
MAX_TAG_NAME_LENGTH = 200


def _normalize_choice(value: str, choices: tuple[str, ...], *, field_name: str) -> str:
    text = value.strip().lower()
    if text not in choices:
        raise ValueError(f"invalid {field_name}: {value}")
    return text


def normalize_task_status(status: str) -> str:
    return _normalize_choice(status, TASK_STATUSES, field_name="task status")


def normalize_project_status(status: str) -> str:
    return _normalize_choice(status, PROJECT_STATUSES, field_name="project status")


def normalize_project_type(project_type: str) -> str:
    return _normalize_choice(project_type, PROJECT_TYPES, field_name="project type")


def normalize_folder_status(status: str) -> str:
    return _normalize_choice(status, FOLDER_STATUSES, field_name="folder status")


def normalize_tag_status(status: str) -> str:
    return _normalize_choice(status, TAG_STATUSES, field_name="tag status")


def normalize_title(title: str, *, limit: int = MAX_TITLE_LENGTH) -> str:
    clean = title.strip()
    if not clean:
        raise ValueError("title cannot be empty")
    if len(clean) > limit:
        raise ValueError(f"title exceeds {limit} characters")
    return clean


def ordering_key(item: Any) -> tuple[int, int, str]:
    """Sibling order: ``order`` ascending, newest first, then id."""
    created = to_epoch_ms(getattr(item, "created_at", None)) or 0
    return (int(item.order), -created, str(item.id))


def _ms(row: Mapping[str, Any], key: str) -> datetime | None:
    return from_epoch_ms(row[key]) if key in row.keys() else None


def _opt_str(row: Mapping[str, Any], key: str) -> str | None:
    if key not in row.keys():
        return None
    value = row[key]
    return str(value) if value is not None else None


def _dates_to_dict(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        key: (to_epoch_ms(value) if isinstance(value, datetime) else value)
        for key, value in payload.items()
    }


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: str = "active"
    note: str | None = None
    flagged: bool = False
    estimated_duration: int | None = None
    due_date: datetime | None = None
    defer_date: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    project_id: str | None = None
    parent_task_id: str | None = None
    tentative_project_id: str | None = None
    tentative_parent_task_id: str | None = None
    order: int = 0
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def with_changes(self, **changes: Any) -> Task:
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        duration = row["estimated_duration"]
        return cls(
            id=str(row["id"]),
            title=str(row["title"]),
            note=_opt_str(row, "note"),
            status=str(row["status"]),
            flagged=bool(row["flagged"]),
            estimated_duration=int(duration) if duration is not None else None,
            due_date=_ms(row, "due_date"),
            defer_date=_ms(row, "defer_date"),
            completed_at=_ms(row, "completed_at"),
            dropped_at=_ms(row, "dropped_at"),
            project_id=_opt_str(row, "project_id"),
            parent_task_id=_opt_str(row, "parent_task_id"),
            tentative_project_id=_opt_str(row, "tentative_project_id"),
            tentative_parent_task_id=_opt_str(row, "tentative_parent_task_id"),
            order=int(row["sort_order"]),
            created_at=_ms(row, "created_at"),
            modified_at=_ms(row, "modified_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _dates_to_dict(
            {
                "id": self.id,
                "title": self.title,
                "note": self.note,
                "status": self.status,
                "flagged": self.flagged,
                "estimated_duration": self.estimated_duration,
                "due_date": self.due_date,
                "defer_date": self.defer_date,
                "completed_at": self.completed_at,
                "dropped_at": self.dropped_at,
                "project_id": self.project_id,
                "parent_task_id": self.parent_task_id,
                "tentative_project_id": self.tentative_project_id,
                "tentative_parent_task_id": self.tentative_parent_task_id,
                "order": self.order,
                "created_at": self.created_at,
                "modified_at": self.modified_at,
            }
        )


@dataclass(frozen=True)
class Project:
    id: str
    title: str
    status: str = "active"
    type: str = "parallel"
    note: str | None = None
    flagged: bool = False
    due_date: datetime | None = None
    defer_date: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    folder_id: str | None = None
    review_interval: int | None = 7
    last_reviewed_at: datetime | None = None
    auto_complete: bool = True
    order: int = 0
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Project:
        interval = row["review_interval"]
        return cls(
            id=str(row["id"]),
            title=str(row["title"]),
            note=_opt_str(row, "note"),
            status=str(row["status"]),
            type=str(row["type"]),
            flagged=bool(row["flagged"]),
            due_date=_ms(row, "due_date"),
            defer_date=_ms(row, "defer_date"),
            completed_at=_ms(row, "completed_at"),
            dropped_at=_ms(row, "dropped_at"),
            folder_id=_opt_str(row, "folder_id"),
            review_interval=int(interval) if interval is not None else None,
            last_reviewed_at=_ms(row, "last_reviewed_at"),
            auto_complete=bool(row["auto_complete"]),
            order=int(row["sort_order"]),
            created_at=_ms(row, "created_at"),
            modified_at=_ms(row, "modified_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _dates_to_dict(
            {
                "id": self.id,
                "title": self.title,
                "note": self.note,
                "status": self.status,
                "type": self.type,
                "flagged": self.flagged,
                "due_date": self.due_date,
                "defer_date": self.defer_date,
                "completed_at": self.completed_at,
                "dropped_at": self.dropped_at,
                "folder_id": self.folder_id,
                "review_interval": self.review_interval,
                "last_reviewed_at": self.last_reviewed_at,
                "auto_complete": self.auto_complete,
                "order": self.order,
                "created_at": self.created_at,
                "modified_at": self.modified_at,
            }
        )


@dataclass(frozen=True)
class Folder:
    id: str
    name: str
    status: str = "active"
    parent_id: str | None = None
    order: int = 0
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Folder:
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            status=str(row["status"]),
            parent_id=_opt_str(row, "parent_id"),
            order=int(row["sort_order"]),
            created_at=_ms(row, "created_at"),
            modified_at=_ms(row, "modified_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _dates_to_dict(
            {
                "id": self.id,
                "name": self.name,
                "status": self.status,
                "parent_id": self.parent_id,
                "order": self.order,
                "created_at": self.created_at,
                "modified_at": self.modified_at,
            }
        )


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    radius: int | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius": self.radius,
            "name": self.name,
        }


@dataclass(frozen=True)
class Tag:
    id: str
    name: str
    status: str = "active"
    parent_id: str | None = None
    order: int = 0
    allows_next_action: bool = True
    children_mutually_exclusive: bool = False
    location: Location | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Tag:
        location = None
        if row["location_latitude"] is not None and row["location_longitude"] is not None:
            radius = row["location_radius"]
            location = Location(
                latitude=float(row["location_latitude"]),
                longitude=float(row["location_longitude"]),
                radius=int(radius) if radius is not None else None,
                name=_opt_str(row, "location_name"),
            )
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            status=str(row["status"]),
            parent_id=_opt_str(row, "parent_id"),
            order=int(row["sort_order"]),
            allows_next_action=bool(row["allows_next_action"]),
            children_mutually_exclusive=bool(row["children_mutually_exclusive"]),
            location=location,
            created_at=_ms(row, "created_at"),
            modified_at=_ms(row, "modified_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _dates_to_dict(
            {
                "id": self.id,
                "name": self.name,
                "status": self.status,
                "parent_id": self.parent_id,
                "order": self.order,
                "allows_next_action": self.allows_next_action,
                "children_mutually_exclusive": self.children_mutually_exclusive,
                "location": self.location.to_dict() if self.location else None,
                "created_at": self.created_at,
                "modified_at": self.modified_at,
            }
        )
