"""JSON API routes for the nextaction web interface."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from .. import __version__
from ..engine.hierarchy import ancestor_chain, validate_snapshot
from ..engine.views import evaluate, projects_due_for_review, run_view
from ..render import resolve_now, with_iso_timestamps

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _state(req: Request) -> Any:
    return req.app.state


def _now(raw: str | None) -> datetime:
    return resolve_now(raw)


def _strict(req: Request, strict: bool | None) -> bool:
    return bool(strict) or _state(req).config.strict_references


def _row(item: Any) -> dict[str, Any]:
    return with_iso_timestamps(item.to_dict())


def _rows(items: list[Any]) -> list[dict[str, Any]]:
    return [_row(item) for item in items]


_NOT_FOUND = {"error": "not found"}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    title: str
    note: str | None = None
    flagged: bool = False
    estimated_duration: int | None = None
    due_date: datetime | None = None
    defer_date: datetime | None = None
    project_id: str | None = None
    parent_task_id: str | None = None
    order: int = 0


class TaskUpdate(BaseModel):
    title: str | None = None
    note: str | None = None
    flagged: bool | None = None
    estimated_duration: int | None = None
    due_date: datetime | None = None
    defer_date: datetime | None = None
    project_id: str | None = None
    parent_task_id: str | None = None
    order: int | None = None


class ProjectCreate(BaseModel):
    title: str
    note: str | None = None
    type: str = "parallel"
    flagged: bool = False
    due_date: datetime | None = None
    defer_date: datetime | None = None
    folder_id: str | None = None
    review_interval: int | None = 7
    order: int = 0


class ProjectStatus(BaseModel):
    status: str
    drop_tasks: bool = False


class Tentative(BaseModel):
    project_id: str | None = None
    parent_task_id: str | None = None


class InboxProcess(BaseModel):
    project_id: str | None = None
    parent_task_id: str | None = None
    position: int | None = None


# ---------------------------------------------------------------------------
# Read API
# ---------------------------------------------------------------------------


@router.get("/status")
async def api_status(request: Request):
    snapshot = _state(request).db.snapshot()
    active = [t for t in snapshot.tasks.values() if t.is_active]
    return {
        "version": __version__,
        "tasks": len(snapshot.tasks),
        "active_tasks": len(active),
        "projects": len(snapshot.projects),
        "inbox": _state(request).inbox.count(),
    }


@router.get("/tasks")
async def api_tasks(
    request: Request,
    status: str | None = None,
    project_id: str | None = None,
    inbox: bool = False,
):
    filters: dict[str, Any] = {}
    if project_id:
        filters["project_id"] = project_id
    tasks = _state(request).tasks.list(status=status, inbox_only=inbox, **filters)
    return _rows(tasks)


@router.get("/tasks/{task_id}")
async def api_task(request: Request, task_id: str):
    task = _state(request).tasks.get(task_id)
    if task is None:
        return _NOT_FOUND
    return _row(task)


@router.get("/tasks/{task_id}/evaluation")
async def api_task_evaluation(
    request: Request,
    task_id: str,
    now: str | None = None,
    strict: bool | None = None,
):
    snapshot = _state(request).db.snapshot()
    evaluations = evaluate(snapshot, _now(now), strict=_strict(request, strict))
    ev = evaluations.get(task_id)
    if ev is None:
        return _NOT_FOUND
    payload = _row(ev)
    payload["parents"] = ancestor_chain(snapshot, task_id)
    return payload


@router.get("/projects")
async def api_projects(request: Request, status: str | None = None):
    return _rows(_state(request).projects.list(status=status))


@router.get("/projects/review")
async def api_projects_review(request: Request, now: str | None = None):
    projects = _state(request).projects.list()
    return _rows(projects_due_for_review(projects, _now(now)))


@router.get("/projects/{project_id}")
async def api_project(request: Request, project_id: str):
    project = _state(request).projects.get(project_id)
    if project is None:
        return _NOT_FOUND
    payload = _row(project)
    payload["tasks"] = _rows(_state(request).tasks.list(project_id=project_id))
    return payload


@router.get("/views/{name}")
async def api_view(
    request: Request,
    name: str,
    now: str | None = None,
    hours: float | None = None,
    strict: bool | None = None,
):
    config = _state(request).config
    rows = run_view(
        name,
        _state(request).db.snapshot(),
        _now(now),
        threshold_hours=hours if hours is not None else config.due_soon_hours,
        strict=_strict(request, strict),
    )
    return _rows(rows)


@router.get("/inbox")
async def api_inbox(request: Request, completed: bool = False, dropped: bool = False):
    items = _state(request).inbox.list(include_completed=completed, include_dropped=dropped)
    return _rows(items)


@router.get("/inbox/stats")
async def api_inbox_stats(request: Request, now: str | None = None):
    return _state(request).inbox.stats(_now(now))


@router.get("/validate")
async def api_validate(request: Request):
    return validate_snapshot(_state(request).db.snapshot())


# ---------------------------------------------------------------------------
# Actions API (JSON, mutating)
# ---------------------------------------------------------------------------


@router.post("/tasks")
async def api_create_task(request: Request, body: TaskCreate):
    task = _state(request).tasks.create(
        body.title,
        note=body.note,
        flagged=body.flagged,
        estimated_duration=body.estimated_duration,
        due_date=body.due_date,
        defer_date=body.defer_date,
        project_id=body.project_id,
        parent_task_id=body.parent_task_id,
        order=body.order,
    )
    return _row(task)


@router.patch("/tasks/{task_id}")
async def api_update_task(request: Request, task_id: str, body: TaskUpdate):
    changes = body.model_dump(exclude_unset=True)
    store = _state(request).tasks
    if not changes:
        task = store.get(task_id)
        return _row(task) if task else _NOT_FOUND
    return _row(store.update(task_id, **changes))


@router.post("/tasks/{task_id}/complete")
async def api_complete_task(request: Request, task_id: str):
    return _row(_state(request).tasks.complete(task_id))


@router.post("/tasks/{task_id}/drop")
async def api_drop_task(request: Request, task_id: str):
    return _row(_state(request).tasks.drop(task_id))


@router.post("/tasks/{task_id}/restore")
async def api_restore_task(request: Request, task_id: str):
    return _row(_state(request).tasks.restore(task_id))


@router.post("/projects")
async def api_create_project(request: Request, body: ProjectCreate):
    project = _state(request).projects.create(
        body.title,
        note=body.note,
        type=body.type,
        flagged=body.flagged,
        due_date=body.due_date,
        defer_date=body.defer_date,
        folder_id=body.folder_id,
        review_interval=body.review_interval,
        order=body.order,
    )
    return _row(project)


@router.post("/projects/{project_id}/status")
async def api_project_status(request: Request, project_id: str, body: ProjectStatus):
    store = _state(request).projects
    actions = {
        "active": store.activate,
        "on_hold": store.hold,
        "completed": store.complete,
    }
    if body.status == "dropped":
        return _row(store.drop(project_id, drop_tasks=body.drop_tasks))
    action = actions.get(body.status)
    if action is None:
        raise ValueError(f"invalid project status: {body.status}")
    return _row(action(project_id))


@router.post("/projects/{project_id}/reviewed")
async def api_project_reviewed(request: Request, project_id: str):
    return _row(_state(request).projects.mark_reviewed(project_id))


@router.post("/inbox/{task_id}/tentative")
async def api_inbox_tentative(request: Request, task_id: str, body: Tentative):
    task = _state(request).inbox.set_tentative(
        task_id, project_id=body.project_id, parent_task_id=body.parent_task_id
    )
    return _row(task)


@router.post("/inbox/{task_id}/process")
async def api_inbox_process(request: Request, task_id: str, body: InboxProcess):
    inbox = _state(request).inbox
    if body.project_id and body.parent_task_id:
        raise ValueError("choose a project or a parent task, not both")
    if body.parent_task_id:
        task = inbox.process_to_task(task_id, body.parent_task_id, position=body.position)
    elif body.project_id:
        task = inbox.process_to_project(task_id, body.project_id, position=body.position)
    else:
        raise ValueError("project_id or parent_task_id is required")
    return _row(task)


@router.post("/inbox/clean-up")
async def api_inbox_clean_up(request: Request):
    result = _state(request).inbox.clean_up()
    return {"processed": result["processed"], "updated": _rows(result["updated"])}
