from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

import pytest

from nextaction import cli
from nextaction.capture import (
    CaptureError,
    CommandExtractor,
    TaskExtractionResult,
    create_from_extraction,
    drafts_from_result,
    render_template,
)
from nextaction.stores.tag import TagStore
from nextaction.stores.task import TaskStore
from nextaction.util import CommandError

NOW = datetime(2025, 1, 10, 12, tzinfo=timezone.utc)

_RESULT = {
    "tasks": [
        {
            "title": "Send invoice",
            "dueDate": {
                "value": "2025-01-12T17:00:00Z",
                "timeSpecified": True,
                "confidence": "HIGH",
                "originalText": "Sunday 5pm",
            },
            "estimatedMinutes": 15,
            "suggestedProjects": [{"name": "work", "confidence": "HIGH"}],
            "suggestedTags": [
                {"name": "Email", "confidence": "MEDIUM"},
                {"name": "Errands", "confidence": "LOW"},
            ],
            "isUrgent": True,
        },
        {
            "title": "Hear back from Sam",
            "isWaitingFor": True,
            "waitingForPerson": "Sam",
            "suggestedProjects": [{"name": "Unknown", "confidence": "HIGH"}],
        },
    ],
    "needsClarification": False,
}


def test_render_template_replaces_placeholders() -> None:
    assert render_template("{{A}} and {{B}} {{C}}", {"A": "x", "B": "y"}) == "x and y {{C}}"


def test_extraction_result_accepts_camel_case() -> None:
    result = TaskExtractionResult.model_validate(_RESULT)
    first = result.tasks[0]
    assert first.due_date is not None
    assert first.due_date.time_specified is True
    assert first.due_date.to_datetime() == datetime(2025, 1, 12, 17, tzinfo=timezone.utc)
    assert result.tasks[1].is_waiting_for is True


def test_drafts_match_existing_names_and_skip_low_confidence() -> None:
    result = TaskExtractionResult.model_validate(_RESULT)
    drafts = drafts_from_result(
        result,
        projects={"Work": "project-1"},
        tags={"email": "tag-1", "errands": "tag-2"},
    )

    invoice, waiting = drafts
    assert invoice.project_id == "project-1"
    assert invoice.tag_ids == ["tag-1"]
    assert invoice.flagged is True
    assert invoice.estimated_minutes == 15

    assert waiting.project_id is None
    assert waiting.note == "Waiting for Sam"


def test_extractor_renders_prompt_and_parses_output(tmp_path: Path) -> None:
    stdout = "Here you go:\n" + json.dumps(_RESULT) + "\n"
    extractor = CommandExtractor(command=("extract", "--json"), cwd=tmp_path)
    with mock.patch("nextaction.capture.run_capture", return_value=stdout) as run:
        result = extractor.extract_tasks(
            "send invoice by sunday", now=NOW, project_names=["Work"], tag_names=[]
        )

    assert len(result.tasks) == 2
    argv = run.call_args.args[0]
    prompt = run.call_args.kwargs["input_text"]
    assert argv == ["extract", "--json"]
    assert "send invoice by sunday" in prompt
    assert "Existing projects: Work" in prompt
    assert "Existing tags: (none)" in prompt
    assert "2025-01-10T12:00:00+00:00" in prompt


def test_prompt_file_frontmatter_overrides_command(tmp_path: Path) -> None:
    prompt = tmp_path / "capture.md"
    prompt.write_text(
        "---\ncommand: [my-llm, run]\n---\nText: {{INPUT}}\n", encoding="utf-8"
    )
    extractor = CommandExtractor(command=("claude", "-p"), prompt_path=prompt)
    with mock.patch("nextaction.capture.run_capture", return_value='{"tasks": []}') as run:
        extractor.extract_tasks("hello", now=NOW)

    assert run.call_args.args[0] == ["my-llm", "run"]
    assert run.call_args.kwargs["input_text"] == "Text: hello\n"


def test_extractor_errors_become_capture_errors(tmp_path: Path) -> None:
    extractor = CommandExtractor(command=("extract",))

    with mock.patch("nextaction.capture.run_capture", return_value="no json here"):
        with pytest.raises(CaptureError, match="JSON object"):
            extractor.extract_tasks("x", now=NOW)

    with mock.patch("nextaction.capture.run_capture", return_value='{"tasks": [{"title": ""}]}'):
        with pytest.raises(CaptureError, match="invalid extraction result"):
            extractor.extract_tasks("x", now=NOW)

    failure = CommandError(["extract"], 3, "", "model unavailable")
    with mock.patch("nextaction.capture.run_capture", side_effect=failure):
        with pytest.raises(CaptureError, match="model unavailable"):
            extractor.extract_tasks("x", now=NOW)

    with pytest.raises(CaptureError, match="nothing to capture"):
        extractor.extract_tasks("   ", now=NOW)


def test_check_duplicate_parses_result() -> None:
    extractor = CommandExtractor(command=("extract",))
    reply = '{"isDuplicate": true, "matchType": "exact", "confidence": "HIGH", "suggestion": "skip"}'
    with mock.patch("nextaction.capture.run_capture", return_value=reply) as run:
        check = extractor.check_duplicate("Buy milk", None, ["Buy milk"])

    assert check.is_duplicate is True
    assert check.suggestion == "skip"
    assert "- Buy milk" in run.call_args.kwargs["input_text"]


def test_create_from_extraction_attaches_tags(tmp_path: Path) -> None:
    root = tmp_path / ".nextaction"
    tasks = TaskStore(root)
    tags = TagStore(root)
    tag = tags.create("Email")

    result = TaskExtractionResult.model_validate(_RESULT)
    drafts = drafts_from_result(result, tags={"Email": tag.id})
    created = create_from_extraction(tasks, drafts, tags=tags)

    assert [task.title for task in created] == ["Send invoice", "Hear back from Sam"]
    assert created[0].flagged is True
    assert created[0].estimated_duration == 15
    assert [t.id for t in tags.task_tags(created[0].id)] == [tag.id]
    assert tags.task_tags(created[1].id) == []


def test_capture_command_creates_inbox_tasks(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with mock.patch("nextaction.capture.run_capture", return_value=json.dumps(_RESULT)):
        cli.main(["capture", "send invoice and wait for Sam", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["count"] == 2
    assert all(task["project_id"] is None for task in payload["tasks"])

    cli.main(["inbox", "count"])
    assert capsys.readouterr().out.strip() == "2"


def test_capture_command_reports_clarification(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    reply = {
        "tasks": [],
        "needsClarification": True,
        "clarificationQuestion": "Which report?",
        "alternativeInterpretations": ["Q3 report", "Expense report"],
    }
    with mock.patch("nextaction.capture.run_capture", return_value=json.dumps(reply)):
        cli.main(["capture", "do the report", "--dry-run"])

    out = capsys.readouterr().out
    assert "clarification needed: Which report?" in out
    assert "  - Q3 report" in out
    assert not state_dir.exists()
