from __future__ import annotations

from .base import Database
from .folder import FolderStore
from .inbox import InboxStore
from .project import ProjectStore
from .state import now_ms, resolve_state_dir
from .tag import TagStore
from .task import TaskStore

__all__ = [
    "Database",
    "FolderStore",
    "InboxStore",
    "ProjectStore",
    "TagStore",
    "TaskStore",
    "now_ms",
    "resolve_state_dir",
]
