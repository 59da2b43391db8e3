"""In-process persistence for profiles, sources, feedback and insights.

Every read and write is scoped to a user id: rows owned by someone else are
indistinguishable from rows that do not exist.
"""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Optional
import uuid

from .schemas import DashboardStats, Feedback, FeedbackSource, Insight, InsightResult, Profile

RECENT_FEEDBACK_LIMIT = 5
ANALYSIS_FEEDBACK_LIMIT = 100
PROFILE_REQUIRED_FIELDS = {"onboarded"}
SOURCE_REQUIRED_FIELDS = {"name", "source_type"}


class RecordNotFound(LookupError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _drop_nulls(changes: dict[str, Any], required: set[str]) -> dict[str, Any]:
    # A null on a nullable column clears it; a null on a required one means "leave as is".
    return {key: value for key, value in changes.items() if value is not None or key not in required}


class FeedbackStore:
    # Rows are kept in insertion order; listings reverse it to get newest first.

    def __init__(self) -> None:
        self._lock = Lock()
        self._profiles: dict[str, Profile] = {}
        self._sources: dict[str, FeedbackSource] = {}
        self._feedback: dict[str, Feedback] = {}
        self._insights: dict[str, Insight] = {}

    # profiles

    def create_profile(self, user_id: str, email: Optional[str] = None, full_name: str = "") -> Profile:
        now = _now()
        profile = Profile(user_id=user_id, email=email, full_name=full_name, created_at=now, updated_at=now)
        with self._lock:
            if user_id in self._profiles:
                raise ValueError(f"Profile already exists for user {user_id}")
            self._profiles[user_id] = profile
        return profile

    def get_profile(self, user_id: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(user_id)
        if profile is None:
            raise RecordNotFound("Profile not found")
        return profile

    def update_profile(self, user_id: str, **changes: Any) -> Profile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise RecordNotFound("Profile not found")
            updates = _drop_nulls(changes, PROFILE_REQUIRED_FIELDS)
            profile = profile.model_copy(update={**updates, "updated_at": _now()})
            self._profiles[user_id] = profile
        return profile

    # sources

    def create_source(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        source_type: str = "product",
    ) -> FeedbackSource:
        if not name.strip():
            raise ValueError("Source name is required")
        now = _now()
        source = FeedbackSource(
            id=_new_id(),
            user_id=user_id,
            name=name.strip(),
            description=description,
            source_type=source_type or "product",
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._sources[source.id] = source
        return source

    def _owned_source(self, user_id: str, source_id: str) -> FeedbackSource:
        source = self._sources.get(source_id)
        if source is None or source.user_id != user_id:
            raise RecordNotFound("Source not found")
        return source

    def _source_feedback_count(self, source_id: str) -> int:
        return sum(1 for item in self._feedback.values() if item.source_id == source_id)

    def get_source(self, user_id: str, source_id: str) -> FeedbackSource:
        with self._lock:
            source = self._owned_source(user_id, source_id)
            return source.model_copy(update={"feedback_count": self._source_feedback_count(source_id)})

    def list_sources(self, user_id: str) -> list[FeedbackSource]:
        with self._lock:
            owned = [source for source in self._sources.values() if source.user_id == user_id]
            counted = [
                source.model_copy(update={"feedback_count": self._source_feedback_count(source.id)})
                for source in owned
            ]
        return counted[::-1]

    def update_source(self, user_id: str, source_id: str, **changes: Any) -> FeedbackSource:
        updates = _drop_nulls(changes, SOURCE_REQUIRED_FIELDS)
        if "name" in updates:
            if not updates["name"].strip():
                raise ValueError("Source name is required")
            updates["name"] = updates["name"].strip()
        with self._lock:
            source = self._owned_source(user_id, source_id)
            source = source.model_copy(update={**updates, "updated_at": _now()})
            self._sources[source_id] = source
            return source.model_copy(update={"feedback_count": self._source_feedback_count(source_id)})

    def delete_source(self, user_id: str, source_id: str) -> None:
        with self._lock:
            self._owned_source(user_id, source_id)
            del self._sources[source_id]
            for feedback_id, item in list(self._feedback.items()):
                if item.source_id == source_id:
                    self._feedback[feedback_id] = item.model_copy(update={"source_id": None})

    # feedback

    def create_feedback(
        self,
        user_id: str,
        content: str,
        source_id: Optional[str] = None,
        category: Optional[str] = None,
        sentiment: Optional[str] = None,
    ) -> Feedback:
        if not content.strip():
            raise ValueError("Feedback content is required")
        with self._lock:
            if source_id:
                self._owned_source(user_id, source_id)
            item = Feedback(
                id=_new_id(),
                user_id=user_id,
                source_id=source_id or None,
                content=content,
                category=category or None,
                sentiment=sentiment or None,
                created_at=_now(),
            )
            self._feedback[item.id] = item
        return item

    def _with_source_name(self, item: Feedback) -> Feedback:
        source = self._sources.get(item.source_id) if item.source_id else None
        return item.model_copy(update={"source_name": source.name if source else None})

    def list_feedback(
        self,
        user_id: str,
        source_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Feedback]:
        needle = (search or "").strip().lower()
        with self._lock:
            rows = [
                self._with_source_name(item)
                for item in self._feedback.values()
                if item.user_id == user_id
                and (source_id is None or item.source_id == source_id)
                and (not needle or needle in item.content.lower())
            ]
        rows.reverse()
        return rows[:limit] if limit is not None else rows

    def get_feedback(self, user_id: str, feedback_id: str) -> Feedback:
        with self._lock:
            item = self._feedback.get(feedback_id)
            if item is None or item.user_id != user_id:
                raise RecordNotFound("Feedback not found")
            return self._with_source_name(item)

    def delete_feedback(self, user_id: str, feedback_id: str) -> None:
        with self._lock:
            item = self._feedback.get(feedback_id)
            if item is None or item.user_id != user_id:
                raise RecordNotFound("Feedback not found")
            del self._feedback[feedback_id]

    def count_feedback(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for item in self._feedback.values() if item.user_id == user_id)

    def feedback_for_analysis(self, user_id: str, limit: int = ANALYSIS_FEEDBACK_LIMIT) -> list[Feedback]:
        return self.list_feedback(user_id, limit=limit)

    # insights

    def create_insight(self, user_id: str, result: InsightResult, feedback_count: int) -> Insight:
        insight = Insight(
            id=_new_id(),
            user_id=user_id,
            title=result.title,
            summary=result.summary,
            key_themes=list(result.key_themes),
            recommendations=list(result.recommendations),
            feedback_count=feedback_count,
            created_at=_now(),
        )
        with self._lock:
            self._insights[insight.id] = insight
        return insight

    def list_insights(self, user_id: str) -> list[Insight]:
        with self._lock:
            rows = [insight for insight in self._insights.values() if insight.user_id == user_id]
        return rows[::-1]

    def get_insight(self, user_id: str, insight_id: str) -> Insight:
        with self._lock:
            insight = self._insights.get(insight_id)
        if insight is None or insight.user_id != user_id:
            raise RecordNotFound("Insight not found")
        return insight

    def delete_insight(self, user_id: str, insight_id: str) -> None:
        with self._lock:
            insight = self._insights.get(insight_id)
            if insight is None or insight.user_id != user_id:
                raise RecordNotFound("Insight not found")
            del self._insights[insight_id]

    def dashboard(self, user_id: str) -> DashboardStats:
        recent = self.list_feedback(user_id, limit=RECENT_FEEDBACK_LIMIT)
        with self._lock:
            total_sources = sum(1 for source in self._sources.values() if source.user_id == user_id)
            total_insights = sum(1 for insight in self._insights.values() if insight.user_id == user_id)
        return DashboardStats(
            total_feedback=self.count_feedback(user_id),
            total_sources=total_sources,
            total_insights=total_insights,
            recent_feedback=recent,
        )
