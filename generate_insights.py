"""Generate an insight report from a JSON file of feedback items."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

try:
    sys.stdout.reconfigure(encoding="utf-8")
except Exception:
    pass

from backend.insights_app.config import configure_logging, load_settings
from backend.insights_app.errors import InsightGenerationError
from backend.insights_app.generator import InsightGenerator
from backend.insights_app.pipeline import render_insight_markdown
from backend.insights_app.schemas import FeedbackItem


def load_feedback_json(path: str | Path) -> list[FeedbackItem]:
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)

    if isinstance(payload, dict):
        payload = payload.get("feedback")
    if not isinstance(payload, list):
        raise ValueError("Feedback JSON must be a list of feedback objects or strings")

    items = []
    for entry in payload:
        if isinstance(entry, str):
            if entry.strip():
                items.append(FeedbackItem(content=entry.strip()))
        elif isinstance(entry, dict):
            items.append(FeedbackItem.model_validate(entry))
        else:
            raise ValueError(f"Unsupported feedback entry: {entry!r}")
    return items


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Summarize feedback into themes and recommendations.")
    parser.add_argument("--feedback", required=True, help="Path to JSON file with a list of feedback items.")
    parser.add_argument("--markdown", action="store_true", help="Print a markdown report instead of JSON.")
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    items = load_feedback_json(args.feedback)
    if not items:
        print("No feedback provided", file=sys.stderr)
        return 1

    try:
        result = InsightGenerator(settings).generate(items)
    except InsightGenerationError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if args.markdown:
        print(render_insight_markdown(result))
    else:
        print(json.dumps(result.model_dump(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
