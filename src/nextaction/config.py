from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from .engine.dates import DEFAULT_DUE_SOON_HOURS

CONFIG_FILENAME = "nextaction.toml"
DEFAULT_CAPTURE_COMMAND = ("claude", "-p")
DEFAULT_CAPTURE_PROMPT = "capture.md"


@dataclass(frozen=True)
class NextactionConfig:
    state_dir: Path
    path: Path
    due_soon_hours: float = DEFAULT_DUE_SOON_HOURS
    strict_references: bool = False
    capture_command: tuple[str, ...] = DEFAULT_CAPTURE_COMMAND
    capture_prompt: Path | None = None
    error: str | None = None


class ConfigValidationError(ValueError):
    pass


def _table(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"[{name}] must be a table")
    return value


def _parse_due_soon_hours(value: object) -> float:
    if value is None:
        return DEFAULT_DUE_SOON_HOURS
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError("[views].due_soon_hours must be a number")
    if value <= 0:
        raise ConfigValidationError("[views].due_soon_hours must be positive")
    return float(value)


def _parse_bool(value: object, *, field: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigValidationError(f"{field} must be true or false")
    return value


def _parse_command(value: object) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_CAPTURE_COMMAND
    if isinstance(value, str):
        parts = tuple(value.split())
    elif isinstance(value, list):
        parts = tuple(str(item).strip() for item in value)
        if not all(isinstance(item, str) for item in value) or not all(parts):
            raise ConfigValidationError(
                "[capture].command must be an array of non-empty strings"
            )
    else:
        raise ConfigValidationError("[capture].command must be a string or an array")
    if not parts:
        raise ConfigValidationError("[capture].command cannot be empty")
    return parts


def _parse(raw: dict[str, Any], *, state_dir: Path, path: Path) -> NextactionConfig:
    views = _table(raw, "views")
    engine = _table(raw, "engine")
    capture = _table(raw, "capture")

    prompt_raw = capture.get("prompt")
    if prompt_raw is not None and not (isinstance(prompt_raw, str) and prompt_raw.strip()):
        raise ConfigValidationError("[capture].prompt must be a non-empty string")
    prompt_name = prompt_raw.strip() if prompt_raw else DEFAULT_CAPTURE_PROMPT
    prompt_path = Path(prompt_name)
    if not prompt_path.is_absolute():
        prompt_path = state_dir / prompt_path

    return NextactionConfig(
        state_dir=state_dir,
        path=path,
        due_soon_hours=_parse_due_soon_hours(views.get("due_soon_hours")),
        strict_references=_parse_bool(
            engine.get("strict_references"),
            field="[engine].strict_references",
            default=False,
        ),
        capture_command=_parse_command(capture.get("command")),
        capture_prompt=prompt_path,
    )


def load_config(state_dir: Path) -> NextactionConfig:
    """Read ``nextaction.toml`` from the state directory.

    A missing file yields defaults. A malformed file yields defaults plus
    ``error``, so callers can report it without losing the session.
    """
    path = state_dir / CONFIG_FILENAME
    defaults = NextactionConfig(
        state_dir=state_dir,
        path=path,
        capture_prompt=state_dir / DEFAULT_CAPTURE_PROMPT,
    )
    if not path.exists():
        return defaults

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        return NextactionConfig(
            state_dir=state_dir,
            path=path,
            capture_prompt=defaults.capture_prompt,
            error=f"invalid TOML in {path}: {exc}",
        )

    try:
        return _parse(raw, state_dir=state_dir, path=path)
    except ConfigValidationError as exc:
        return NextactionConfig(
            state_dir=state_dir,
            path=path,
            capture_prompt=defaults.capture_prompt,
            error=f"{path}: {exc}",
        )
