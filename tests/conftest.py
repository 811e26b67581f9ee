from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An isolated state directory that the CLI resolves from cwd."""
    root = tmp_path / ".nextaction"
    monkeypatch.delenv("NEXTACTION_STATE_DIR", raising=False)
    monkeypatch.setenv("NEXTACTION_OUTPUT", "plain")
    monkeypatch.chdir(tmp_path)
    return root
