"""nextaction web interface: FastAPI app factory."""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import load_config
from ..stores import Database, InboxStore, ProjectStore, TaskStore, resolve_state_dir


def create_app(state_dir: Path | None = None) -> FastAPI:
    root = state_dir if state_dir is not None else resolve_state_dir(Path.cwd())
    root.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="nextaction", version=__version__)

    app.state.root = root
    app.state.config = load_config(root)
    app.state.db = Database(root)
    app.state.tasks = TaskStore(root)
    app.state.projects = ProjectStore(root)
    app.state.inbox = InboxStore(root)

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    from .routes import router

    app.include_router(router)

    return app
