from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .capture import CommandExtractor, create_from_extraction, drafts_from_result
from .config import load_config
from .render import emit_json, fail, resolve_now
from .stores.project import ProjectStore
from .stores.tag import TagStore
from .stores.task import TaskStore
from .util import eprint


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nextaction capture",
        description="Turn free text into tasks with the configured extraction command.",
    )
    p.add_argument("text", nargs="*", help="Text to capture (reads stdin when omitted)")
    p.add_argument("--now", help="Reference instant for relative dates (ISO 8601)")
    p.add_argument("--dry-run", action="store_true", help="Show drafts without creating tasks")
    p.add_argument(
        "--skip-duplicates",
        action="store_true",
        help="Ask the command about duplicates and skip the ones it flags",
    )
    p.add_argument("--json", action="store_true", help="Output JSON")
    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(list(argv) if argv is not None else sys.argv[1:])
    text = " ".join(args.text).strip() or sys.stdin.read().strip()
    if not text:
        fail("nothing to capture")

    tasks = TaskStore.from_workdir(Path.cwd(), create=not args.dry_run)
    config = load_config(tasks.root)
    if config.error:
        eprint(f"warning: {config.error}")
    projects = ProjectStore(tasks.root, create_on_connect=tasks.create_on_connect)
    tags = TagStore(tasks.root, create_on_connect=tasks.create_on_connect)
    project_ids = {p.title: p.id for p in projects.list(status="active")}
    tag_ids = {t.name: t.id for t in tags.list(status="active")}

    extractor = CommandExtractor(
        command=config.capture_command,
        prompt_path=config.capture_prompt,
        cwd=Path.cwd(),
    )
    try:
        result = extractor.extract_tasks(
            text,
            now=resolve_now(args.now),
            project_names=project_ids,
            tag_names=tag_ids,
        )
        if result.needs_clarification:
            question = result.clarification_question or "the input is ambiguous"
            if args.json:
                emit_json(result.model_dump(mode="json", by_alias=True))
                return
            print(f"clarification needed: {question}")
            for alt in result.alternative_interpretations or []:
                print(f"  - {alt}")
            return

        drafts = drafts_from_result(result, projects=project_ids, tags=tag_ids)
        if args.skip_duplicates and drafts:
            existing = [t.title for t in tasks.list(status="active")]
            kept = []
            for draft in drafts:
                check = extractor.check_duplicate(draft.title, draft.note, existing)
                if check.is_duplicate and check.suggestion == "skip":
                    eprint(f"skipped duplicate: {draft.title}")
                    continue
                kept.append(draft)
            drafts = kept

        if args.dry_run:
            if args.json:
                emit_json([d.model_dump(mode="json") for d in drafts])
            else:
                for draft in drafts:
                    print(draft.title)
            return

        created = create_from_extraction(tasks, drafts, tags=tags)
    except ValueError as exc:
        fail(str(exc))

    if args.json:
        emit_json({"tasks": [t.to_dict() for t in created], "count": len(created)})
        return
    for task in created:
        print(f"{task.id}  {task.title}")


if __name__ == "__main__":
    main()
