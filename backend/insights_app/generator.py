"""Turn a batch of feedback into a structured insight report via a chat-completion gateway."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Sequence

from openai import OpenAI

from .config import Settings
from .errors import EmptyInput, MissingConfiguration
from .openai_client import complete_chat, get_openai_client
from .schemas import FeedbackItem, InsightResult

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
FALLBACK_SUMMARY_LIMIT = 500
FALLBACK_TITLE = "Feedback Analysis Summary"
FALLBACK_THEMES = ["User Experience", "Feature Requests", "General Feedback"]
FALLBACK_RECOMMENDATIONS = [
    "Review and prioritize user suggestions",
    "Address common pain points",
    "Gather more detailed feedback",
]

SYSTEM_PROMPT = """You are an expert product analyst. Analyze user feedback and provide actionable insights.

Your response MUST be valid JSON with this exact structure:
{
  "title": "Brief, descriptive title for the insight report",
  "summary": "2-3 sentence executive summary of the key findings",
  "key_themes": ["theme1", "theme2", "theme3"],
  "recommendations": ["actionable recommendation 1", "actionable recommendation 2", "actionable recommendation 3"]
}

Guidelines:
- Title should be specific and insightful (not generic like "Feedback Analysis")
- Summary should highlight the most important patterns and sentiments
- Key themes should be 3-5 concise phrases identifying main topics
- Recommendations should be specific, actionable items the product team can implement
- Focus on patterns, not individual pieces of feedback"""


def format_feedback_line(index: int, item: FeedbackItem) -> str:
    line = f"{index + 1}. {item.content}"
    if item.category:
        line += f" [Category: {item.category}]"
    if item.sentiment:
        line += f" [Sentiment: {item.sentiment}]"
    return line


def build_messages(items: Sequence[FeedbackItem]) -> list[dict[str, str]]:
    feedback_text = "\n".join(format_feedback_line(idx, item) for idx, item in enumerate(items))
    user_prompt = f"Analyze the following {len(items)} pieces of user feedback and provide insights:\n\n{feedback_text}"
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def strip_code_fences(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```") :]
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    return cleaned.strip()


def _text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else json.dumps(item) for item in value]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def fallback_result(content: str) -> InsightResult:
    return InsightResult(
        title=FALLBACK_TITLE,
        summary=content[:FALLBACK_SUMMARY_LIMIT],
        key_themes=list(FALLBACK_THEMES),
        recommendations=list(FALLBACK_RECOMMENDATIONS),
    )


def parse_insight(content: str) -> InsightResult:
    """Parse the model reply, degrading to the fixed fallback when it is not a JSON object."""
    try:
        payload = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse AI response, using fallback: %s", exc)
        return fallback_result(content)

    if not isinstance(payload, dict):
        logger.warning("AI response is %s, not an object, using fallback", type(payload).__name__)
        return fallback_result(content)

    return InsightResult(
        title=_text(payload.get("title")),
        summary=_text(payload.get("summary")),
        key_themes=_text_list(payload.get("key_themes")),
        recommendations=_text_list(payload.get("recommendations")),
    )


def _coerce_items(items: Iterable[FeedbackItem | dict[str, Any]]) -> list[FeedbackItem]:
    return [item if isinstance(item, FeedbackItem) else FeedbackItem.model_validate(item) for item in items]


class InsightGenerator:
    """Stateless wrapper around one chat-completion call per ``generate``.

    ``client_factory`` builds the gateway client from the settings at call
    time; tests pass one that plugs in a fake transport.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[Settings], OpenAI] = get_openai_client,
    ) -> None:
        self.settings = settings
        self.client_factory = client_factory

    def generate(self, feedback_items: Iterable[FeedbackItem | dict[str, Any]]) -> InsightResult:
        if not self.settings.api_key:
            raise MissingConfiguration("AI_GATEWAY_API_KEY is not configured")

        items = _coerce_items(feedback_items)
        if not items:
            raise EmptyInput()

        logger.info("Analyzing %d feedback items...", len(items))
        client = self.client_factory(self.settings)
        content = complete_chat(client, build_messages(items), model=self.settings.model, temperature=TEMPERATURE)
        logger.debug("AI response: %s", content)
        return parse_insight(content)
