from __future__ import annotations

import json
from pathlib import Path

import pytest

from nextaction import cli
from nextaction.config import DEFAULT_CAPTURE_COMMAND, load_config


def _write_config(state_dir: Path, body: str) -> None:
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "nextaction.toml").write_text(body.strip() + "\n", encoding="utf-8")


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)
    assert cfg.error is None
    assert cfg.due_soon_hours == 48.0
    assert cfg.strict_references is False
    assert cfg.capture_command == DEFAULT_CAPTURE_COMMAND
    assert cfg.capture_prompt == tmp_path / "capture.md"


def test_load_config_reads_all_tables(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
[views]
due_soon_hours = 24

[engine]
strict_references = true

[capture]
command = ["llm", "-m", "fast"]
prompt = "prompts/extract.md"
""",
    )

    cfg = load_config(tmp_path)
    assert cfg.error is None
    assert cfg.due_soon_hours == 24.0
    assert cfg.strict_references is True
    assert cfg.capture_command == ("llm", "-m", "fast")
    assert cfg.capture_prompt == tmp_path / "prompts" / "extract.md"


def test_command_may_be_a_string(tmp_path: Path) -> None:
    _write_config(tmp_path, '[capture]\ncommand = "ollama run llama3"')
    assert load_config(tmp_path).capture_command == ("ollama", "run", "llama3")


def test_invalid_toml_reports_error_and_keeps_defaults(tmp_path: Path) -> None:
    _write_config(tmp_path, "[views\ndue_soon_hours = 12")

    cfg = load_config(tmp_path)
    assert cfg.error is not None
    assert "invalid TOML" in cfg.error
    assert cfg.due_soon_hours == 48.0


def test_invalid_values_report_error(tmp_path: Path) -> None:
    _write_config(tmp_path, "[views]\ndue_soon_hours = -1")
    cfg = load_config(tmp_path)
    assert cfg.error is not None
    assert "due_soon_hours must be positive" in cfg.error

    _write_config(tmp_path, '[engine]\nstrict_references = "yes"')
    assert "strict_references" in (load_config(tmp_path).error or "")

    _write_config(tmp_path, "[capture]\ncommand = []")
    assert "cannot be empty" in (load_config(tmp_path).error or "")

    _write_config(tmp_path, 'views = "flat"')
    assert "[views] must be a table" in (load_config(tmp_path).error or "")


def test_config_window_drives_due_soon_view(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write_config(state_dir, "[views]\ndue_soon_hours = 2")

    cli.main(["task", "add", "Soon", "--due", "2025-01-10T13:00:00Z"])
    cli.main(["task", "add", "Later", "--due", "2025-01-10T18:00:00Z"])
    capsys.readouterr()

    cli.main(["view", "due-soon", "--now", "2025-01-10T12:00:00Z", "--json"])
    titles = [row["title"] for row in json.loads(capsys.readouterr().out)]
    assert titles == ["Soon"]
