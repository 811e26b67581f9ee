from __future__ import annotations

import os
import time
from pathlib import Path


def now_ms() -> int:
    return int(time.time() * 1000)


def resolve_state_dir(cwd: Path | None = None, *, create: bool = True) -> Path:
    """Return the nextaction state directory, creating it if needed.

    Resolution order:
    1. NEXTACTION_STATE_DIR
    2. nearest existing .nextaction directory from cwd upward
    3. cwd/.nextaction
    """
    raw = os.environ.get("NEXTACTION_STATE_DIR", "").strip()
    if raw:
        state_dir = Path(raw).expanduser().resolve()
    else:
        start = (cwd or Path.cwd()).resolve()
        state_dir = start / ".nextaction"
        for base in (start, *start.parents):
            candidate = base / ".nextaction"
            if candidate.exists() and candidate.is_dir():
                state_dir = candidate
                break

    if create:
        state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir
