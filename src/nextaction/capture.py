"""Natural-language capture through an external extraction command.

The command (``claude -p`` by default) receives a rendered markdown prompt on
stdin and must print a JSON object. The JSON is validated into the models
below; drafts built from it become ordinary tasks.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .model import MAX_TITLE_LENGTH, Task
from .stores.tag import TagStore
from .stores.task import TaskStore
from .util import CommandError, parse_datetime, run_capture

Confidence = Literal["HIGH", "MEDIUM", "LOW"]

_EXTRACT_TEMPLATE = """\
Extract actionable tasks from the text below.

Current time: {{NOW}}
Existing projects: {{PROJECTS}}
Existing tags: {{TAGS}}

Reply with a single JSON object and nothing else:
{"tasks": [{"title": str, "note": str?, "dueDate": {"value": iso8601,
"timeSpecified": bool, "confidence": "HIGH"|"MEDIUM"|"LOW",
"originalText": str}?, "deferDate": same?, "estimatedMinutes": int?,
"isWaitingFor": bool, "waitingForPerson": str?, "suggestedProjects":
[{"name": str, "confidence": ..., "reason": str?}], "suggestedTags": same,
"isUrgent": bool}], "needsClarification": bool,
"clarificationQuestion": str?, "alternativeInterpretations": [str]?}

Text:
{{INPUT}}
"""

_DUPLICATE_TEMPLATE = """\
Decide whether a new task duplicates one of the existing tasks.

New task: {{TITLE}}
Note: {{NOTE}}
Existing tasks:
{{EXISTING}}

Reply with a single JSON object and nothing else:
{"isDuplicate": bool, "matchType": "exact"|"similar"|"related"?,
"existingTaskTitle": str?, "confidence": "HIGH"|"MEDIUM"|"LOW",
"suggestion": "update_existing"|"create_new"|"skip"?}
"""


class CaptureError(ValueError):
    pass


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedDate(_Wire):
    value: str
    time_specified: bool = False
    confidence: Confidence = "MEDIUM"
    original_text: str = ""

    def to_datetime(self) -> datetime | None:
        try:
            return parse_datetime(self.value)
        except ValueError:
            return None


class ProjectSuggestion(_Wire):
    name: str
    confidence: Confidence = "MEDIUM"
    reason: str | None = None


class TagSuggestion(_Wire):
    name: str
    confidence: Confidence = "MEDIUM"
    reason: str | None = None


class ExtractedTask(_Wire):
    title: str = Field(min_length=1)
    note: str | None = None
    due_date: ExtractedDate | None = None
    defer_date: ExtractedDate | None = None
    estimated_minutes: int | None = None
    is_waiting_for: bool = False
    waiting_for_person: str | None = None
    suggested_projects: list[ProjectSuggestion] = Field(default_factory=list)
    suggested_tags: list[TagSuggestion] = Field(default_factory=list)
    is_urgent: bool = False


class TaskExtractionResult(_Wire):
    tasks: list[ExtractedTask] = Field(default_factory=list)
    needs_clarification: bool = False
    clarification_question: str | None = None
    alternative_interpretations: list[str] | None = None


class DuplicateCheckResult(_Wire):
    is_duplicate: bool
    match_type: Literal["exact", "similar", "related"] | None = None
    existing_task_title: str | None = None
    confidence: Confidence = "MEDIUM"
    suggestion: Literal["update_existing", "create_new", "skip"] | None = None


class CaptureDraft(_Wire):
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    note: str | None = None
    due_date: datetime | None = None
    defer_date: datetime | None = None
    estimated_minutes: int | None = Field(default=None, gt=0)
    flagged: bool = False
    project_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)


def _split_frontmatter(text: str) -> tuple[dict, str]:
    if not text.startswith("---"):
        return {}, text
    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}, text
    try:
        meta = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError:
        return {}, text
    if not isinstance(meta, dict):
        return {}, text
    return meta, parts[2].lstrip("\n")


def render_template(template: str, values: Mapping[str, str]) -> str:
    out = template
    for key, value in values.items():
        out = out.replace("{{" + key + "}}", value)
    return out


def _json_object(stdout: str) -> str:
    start = stdout.find("{")
    end = stdout.rfind("}")
    if start < 0 or end < start:
        raise CaptureError("extraction command did not print a JSON object")
    return stdout[start : end + 1]


def _names(values: Iterable[str]) -> str:
    joined = ", ".join(v for v in values if v)
    return joined or "(none)"


@dataclass
class CommandExtractor:
    """Runs an extraction command with a rendered prompt on stdin.

    A prompt file may carry YAML frontmatter; a ``command`` key there
    overrides the configured command for that prompt.
    """

    command: Sequence[str]
    prompt_path: Path | None = None
    cwd: Path | None = None

    def _extract_prompt(self) -> tuple[list[str], str]:
        argv = list(self.command)
        if self.prompt_path is None or not self.prompt_path.exists():
            return argv, _EXTRACT_TEMPLATE
        meta, body = _split_frontmatter(self.prompt_path.read_text(encoding="utf-8"))
        override = meta.get("command")
        if isinstance(override, str) and override.split():
            argv = override.split()
        elif isinstance(override, list) and override:
            argv = [str(part) for part in override]
        return argv, body

    def _run(self, argv: list[str], prompt: str) -> str:
        if not argv:
            raise CaptureError("no extraction command configured")
        try:
            return run_capture(argv, cwd=self.cwd, input_text=prompt)
        except CommandError as exc:
            detail = exc.stderr.strip() or f"exit {exc.returncode}"
            raise CaptureError(f"extraction command failed: {detail}") from exc
        except OSError as exc:
            raise CaptureError(f"cannot run {argv[0]}: {exc}") from exc

    def extract_tasks(
        self,
        text: str,
        *,
        now: datetime,
        project_names: Iterable[str] = (),
        tag_names: Iterable[str] = (),
    ) -> TaskExtractionResult:
        if not text.strip():
            raise CaptureError("nothing to capture")
        argv, template = self._extract_prompt()
        prompt = render_template(
            template,
            {
                "NOW": now.isoformat(),
                "PROJECTS": _names(project_names),
                "TAGS": _names(tag_names),
                "INPUT": text.strip(),
            },
        )
        stdout = self._run(argv, prompt)
        try:
            return TaskExtractionResult.model_validate_json(_json_object(stdout))
        except ValidationError as exc:
            raise CaptureError(f"invalid extraction result: {exc}") from exc

    def check_duplicate(
        self,
        title: str,
        note: str | None,
        existing_titles: Iterable[str],
    ) -> DuplicateCheckResult:
        lines = "\n".join(f"- {t}" for t in existing_titles) or "(none)"
        prompt = render_template(
            _DUPLICATE_TEMPLATE,
            {"TITLE": title, "NOTE": note or "(none)", "EXISTING": lines},
        )
        stdout = self._run(list(self.command), prompt)
        try:
            return DuplicateCheckResult.model_validate_json(_json_object(stdout))
        except ValidationError as exc:
            raise CaptureError(f"invalid duplicate check result: {exc}") from exc


def _match(
    names: Mapping[str, str],
    suggestions: Iterable[ProjectSuggestion | TagSuggestion],
) -> Iterator[str]:
    lowered = {name.casefold(): item_id for name, item_id in names.items()}
    for suggestion in suggestions:
        if suggestion.confidence == "LOW":
            continue
        item_id = lowered.get(suggestion.name.strip().casefold())
        if item_id is not None:
            yield item_id


def drafts_from_result(
    result: TaskExtractionResult,
    *,
    projects: Mapping[str, str] | None = None,
    tags: Mapping[str, str] | None = None,
) -> list[CaptureDraft]:
    """Turn extracted tasks into drafts.

    ``projects`` and ``tags`` map existing names to ids. Only suggestions that
    name an existing project or tag with better than LOW confidence are kept;
    unmatched items land in the inbox untagged.
    """
    drafts: list[CaptureDraft] = []
    for item in result.tasks:
        project_id = next(_match(projects or {}, item.suggested_projects), None)
        tag_ids = list(dict.fromkeys(_match(tags or {}, item.suggested_tags)))
        note = item.note
        if item.is_waiting_for and item.waiting_for_person:
            waiting = f"Waiting for {item.waiting_for_person}"
            note = f"{note}\n\n{waiting}" if note else waiting
        minutes = item.estimated_minutes
        drafts.append(
            CaptureDraft(
                title=item.title.strip()[:MAX_TITLE_LENGTH],
                note=note,
                due_date=item.due_date.to_datetime() if item.due_date else None,
                defer_date=item.defer_date.to_datetime() if item.defer_date else None,
                estimated_minutes=minutes if minutes and minutes > 0 else None,
                flagged=item.is_urgent,
                project_id=project_id,
                tag_ids=tag_ids,
            )
        )
    return drafts


def create_from_extraction(
    store: TaskStore,
    drafts: Iterable[CaptureDraft],
    *,
    tags: TagStore | None = None,
) -> list[Task]:
    created: list[Task] = []
    for draft in drafts:
        task = store.create(
            draft.title,
            note=draft.note,
            flagged=draft.flagged,
            estimated_duration=draft.estimated_minutes,
            due_date=draft.due_date,
            defer_date=draft.defer_date,
            project_id=draft.project_id,
        )
        if tags is not None:
            for tag_id in draft.tag_ids:
                tags.add_to_task(task.id, tag_id)
        created.append(task)
    return created
