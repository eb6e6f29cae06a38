"""
Offline Store Models.

SQLAlchemy models for the local durable store:
- PendingMutation: queued writes awaiting remote confirmation
- ProgressSnapshot: latest progress per (user, lesson)
- CachedLessonContent: last fetched content per lesson
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from langlearn.core.models import MutationRecord, ProgressRecord, utcnow

from .base import Base


class PendingMutation(Base):
    """
    A queued local write.

    ``seq`` is the monotonically increasing insertion counter that defines
    FIFO order within a collection; ``id`` is the public identifier.
    """

    __tablename__ = "pending_mutations"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    collection: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    # Sync state
    synced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    synced_at: Mapped[datetime | None] = mapped_column()
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    last_attempt_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_pending_mutations_queue", "collection", "synced", "seq"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<PendingMutation {self.id} collection={self.collection} synced={self.synced}>"

    def to_record(self) -> MutationRecord:
        return MutationRecord(
            id=self.id,
            collection=self.collection,
            payload=dict(self.payload or {}),
            created_at=self.created_at,
            synced=bool(self.synced),
            synced_at=self.synced_at,
            attempts=self.attempts or 0,
            last_error=self.last_error,
            last_attempt_at=self.last_attempt_at,
        )


class ProgressSnapshot(Base):
    """Latest local progress per (user, lesson); upserted, never appended."""

    __tablename__ = "progress_snapshots"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    lesson_id: Mapped[str] = mapped_column(Text, primary_key=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow)
    synced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<ProgressSnapshot user={self.user_id} lesson={self.lesson_id} completed={self.completed}>"

    def to_record(self) -> ProgressRecord:
        return ProgressRecord(
            user_id=self.user_id,
            lesson_id=self.lesson_id,
            completed=bool(self.completed),
            score=self.score,
            created_at=self.created_at,
            updated_at=self.updated_at,
            synced=bool(self.synced),
        )


class CachedLessonContent(Base):
    """Cached lesson content keyed by lesson id. No eviction."""

    __tablename__ = "cached_content"

    lesson_id: Mapped[str] = mapped_column(Text, primary_key=True)
    content: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<CachedLessonContent lesson={self.lesson_id} items={len(self.content or [])}>"
