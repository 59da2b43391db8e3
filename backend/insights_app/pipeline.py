from __future__ import annotations

from io import BytesIO
import logging
from typing import Any, Optional, Protocol, Sequence

import pandas as pd

from .schemas import Feedback, FeedbackItem, Insight, InsightResult
from .store import ANALYSIS_FEEDBACK_LIMIT, FeedbackStore

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"content"}
OPTIONAL_COLUMNS = ("category", "sentiment")


class NoFeedbackAvailable(ValueError):
    def __init__(self, message: str = "Add some feedback first to generate insights") -> None:
        super().__init__(message)


class SupportsGenerate(Protocol):
    def generate(self, feedback_items: Sequence[FeedbackItem]) -> InsightResult: ...


def generate_and_store_insight(store: FeedbackStore, user_id: str, generator: SupportsGenerate) -> Insight:
    rows = store.feedback_for_analysis(user_id, limit=ANALYSIS_FEEDBACK_LIMIT)
    if not rows:
        raise NoFeedbackAvailable()

    items = [FeedbackItem(content=row.content, category=row.category, sentiment=row.sentiment) for row in rows]
    result = generator.generate(items)
    insight = store.create_insight(user_id, result, feedback_count=len(items))
    logger.info("Stored insight %s built from %d feedback items", insight.id, len(items))
    return insight


def _optional_text(value: Any) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def load_feedback_csv(file_bytes: bytes) -> pd.DataFrame:
    df = pd.read_csv(BytesIO(file_bytes))
    df.columns = [str(column).strip().lower() for column in df.columns]
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(sorted(missing))}")
    df = df.dropna(subset=["content"]).copy()
    df["content"] = df["content"].astype(str).str.strip()
    df = df[df["content"] != ""]
    for column in OPTIONAL_COLUMNS:
        if column not in df.columns:
            df[column] = None
    return df[["content", *OPTIONAL_COLUMNS]].reset_index(drop=True)


def import_feedback_csv(
    store: FeedbackStore,
    user_id: str,
    file_bytes: bytes,
    source_id: Optional[str] = None,
) -> list[Feedback]:
    df = load_feedback_csv(file_bytes)
    if source_id:
        store.get_source(user_id, source_id)

    created = [
        store.create_feedback(
            user_id,
            content=row["content"],
            source_id=source_id,
            category=_optional_text(row["category"]),
            sentiment=_optional_text(row["sentiment"]),
        )
        for row in df.to_dict(orient="records")
    ]
    logger.info("Imported %d feedback rows for user %s", len(created), user_id)
    return created


def render_insight_markdown(insight: Insight | InsightResult) -> str:
    lines = [f"# {insight.title}", "", "## Summary", insight.summary, ""]
    if isinstance(insight, Insight):
        generated = insight.created_at.strftime("%Y-%m-%d %H:%M UTC")
        lines.extend([f"_Based on {insight.feedback_count} feedback items, generated {generated}_", ""])

    lines.append("## Key Themes")
    lines.extend([f"- {theme}" for theme in insight.key_themes] or ["- None identified"])
    lines.append("")
    lines.append("## Recommendations")
    lines.extend([f"{idx}. {rec}" for idx, rec in enumerate(insight.recommendations, start=1)] or ["- None"])
    lines.append("")
    return "\n".join(lines)
