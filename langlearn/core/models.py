"""
Core Domain Records.

Plain dataclasses shared by the offline store, sync engine and the
adaptive components. Remote rows arrive as loosely typed dictionaries;
the ``from_row`` constructors are the only place that tolerates that.

Records:
- MutationRecord: queued local write awaiting remote confirmation
- CachedContent: last-write-wins lesson content cache entry
- ProgressRecord: per (user, lesson) completion snapshot
- QuizResponse: immutable graded quiz attempt
- CatalogModule: recommendable lesson module
- PerformanceProfile: derived learner summary
- Recommendation: module suggestion with a confidence score
- QuizConfig: per-learner quiz difficulty settings
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from langlearn.core.content import ContentPayload


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo, so everything stays naive)."""
    return datetime.now(UTC).replace(tzinfo=None)


def clamp_unit(value: Any) -> float:
    """
    Clamp a number into [0, 1].

    Non-numeric and non-finite input collapses to 0.0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return max(0.0, min(1.0, number))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp (``Z`` suffix allowed) into naive UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _answers(value: Any) -> Any:
    """Answers are stored as JSON; anything other than an object is kept as-is."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    return value


@dataclass
class MutationRecord:
    """A queued local write. ``synced`` only ever moves False -> True."""

    id: str
    collection: str
    payload: dict[str, Any]
    created_at: datetime
    synced: bool = False
    synced_at: datetime | None = None
    attempts: int = 0
    last_error: str | None = None
    last_attempt_at: datetime | None = None


@dataclass
class CachedContent:
    """Cached lesson content; overwritten on refresh."""

    lesson_id: str
    content: list[ContentPayload]
    cached_at: datetime


@dataclass
class ProgressRecord:
    """Lesson progress, unique per (user_id, lesson_id)."""

    user_id: str
    lesson_id: str
    completed: bool = False
    score: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    synced: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.lesson_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProgressRecord:
        created = parse_timestamp(row.get("created_at")) or utcnow()
        return cls(
            user_id=str(row["user_id"]),
            lesson_id=str(row["lesson_id"]),
            completed=bool(row.get("completed", False)),
            score=float(row.get("score") or 0),
            created_at=created,
            updated_at=parse_timestamp(row.get("updated_at")) or created,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "completed": self.completed,
            "score": self.score,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class QuizResponse:
    """A graded quiz attempt. ``score`` is normalized to [0, 1]."""

    id: str
    user_id: str
    content_id: str
    answers: Any
    score: float
    created_at: datetime
    topic: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> QuizResponse:
        """
        Build from a remote ``quiz_responses`` row.

        The topic tag may live at the top level, in ``metadata`` or in the
        embedded ``content`` object, depending on which client wrote it.
        """
        topic = row.get("topic")
        for nested in ("metadata", "content"):
            if topic:
                break
            container = row.get(nested)
            if isinstance(container, dict):
                topic = container.get("topic")

        return cls(
            id=str(row.get("id", "")),
            user_id=str(row.get("user_id", "")),
            content_id=str(row.get("content_id", "")),
            answers=_answers(row.get("answers")),
            score=clamp_unit(row.get("score")),
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            topic=str(topic) if topic else None,
        )

    def to_payload(self, topic_column: str | None = "metadata") -> dict[str, Any]:
        """
        Row for the remote ``quiz_responses`` table.

        The topic goes to ``topic_column``: nested as ``{"topic": ...}`` for
        the ``metadata`` jsonb column, as a plain value for any other column,
        and left out entirely when ``topic_column`` is None.
        """
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "content_id": self.content_id,
            "answers": self.answers,
            "score": self.score,
            "created_at": self.created_at.isoformat(),
        }
        if self.topic and topic_column:
            if topic_column == "metadata":
                payload["metadata"] = {"topic": self.topic}
            else:
                payload[topic_column] = self.topic
        return payload


@dataclass(frozen=True)
class CatalogModule:
    """A recommendable lesson module."""

    id: str
    title: str
    difficulty: float
    order_index: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CatalogModule:
        """
        Raises:
            KeyError: if id, title or difficulty is missing
            ValueError: if difficulty is not numeric
        """
        if row.get("difficulty") is None:
            raise KeyError("difficulty")
        return cls(
            id=str(row["id"]),
            title=str(row["title"]),
            difficulty=clamp_unit(float(row["difficulty"])),
            order_index=int(row.get("order_index") or 0),
        )


@dataclass
class PerformanceProfile:
    """Derived learner summary. Not persisted."""

    average_score: float = 0.0
    weak_areas: set[str] = field(default_factory=set)
    progress_velocity: float = 0.0
    topic_accuracy: dict[str, float] = field(default_factory=dict)
    responses_analyzed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_score": round(self.average_score, 4),
            "weak_areas": sorted(self.weak_areas),
            "progress_velocity": round(self.progress_velocity, 4),
            "topic_accuracy": {k: round(v, 4) for k, v in self.topic_accuracy.items()},
            "responses_analyzed": self.responses_analyzed,
        }


@dataclass
class Recommendation:
    """A recommended module. ``confidence`` is always within [0, 1]."""

    module_id: str
    confidence: float
    reason: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence = clamp_unit(self.confidence)

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "module_id": self.module_id,
            "confidence_score": self.confidence,
            "reason": self.reason,
        }


@dataclass
class QuizConfig:
    """Per-learner quiz settings."""

    difficulty_level: float = 0.5
    focus_areas: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.difficulty_level = clamp_unit(self.difficulty_level)
        self.focus_areas = set(self.focus_areas)

    @classmethod
    def from_row(cls, row: dict[str, Any] | None, default_difficulty: float = 0.5) -> QuizConfig:
        if not row:
            return cls(difficulty_level=default_difficulty)
        difficulty = row.get("difficulty_level")
        areas = row.get("focus_areas") or []
        if isinstance(areas, str):
            areas = [areas]
        return cls(
            difficulty_level=default_difficulty if difficulty is None else difficulty,
            focus_areas={str(area) for area in areas},
        )
