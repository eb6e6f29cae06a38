"""
Local Durable Store.

Provides crash-safe persistence, independent of connectivity, for:
- Pending mutations (queued writes awaiting remote confirmation)
- Progress snapshots (latest progress per user and lesson)
- Cached lesson content (last-write-wins, no staleness check)

Storage failures never escape this class: they are logged and reported
to the caller as ``False`` / ``None``.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from langlearn.core.content import ContentValidationError, dump_content, parse_content
from langlearn.core.models import CachedContent, MutationRecord, ProgressRecord, utcnow
from langlearn.db.database import LocalDatabase
from langlearn.db.models import CachedLessonContent, PendingMutation, ProgressSnapshot

# Natural-key fields every payload of a known collection must carry
COLLECTION_KEYS: dict[str, tuple[str, ...]] = {
    "quiz_responses": ("user_id", "content_id"),
    "user_progress": ("user_id", "lesson_id"),
}

MAX_ERROR_LENGTH = 500


class LocalStore:
    """
    SQLite-backed offline store.

    Handles:
    - FIFO mutation queue per collection with idempotent ``mark_synced``
    - Progress snapshot upserts keyed by (user_id, lesson_id)
    - Lesson content cache keyed by lesson_id
    """

    def __init__(self, database: LocalDatabase):
        """
        Initialize the store.

        Args:
            database: Persistence context; opened here if it is not already
        """
        self.database = database
        if not database.is_open:
            database.open()

    # =========================================================================
    # Mutation Queue
    # =========================================================================

    def enqueue_mutation(
        self, collection: str, payload: Mapping[str, Any]
    ) -> MutationRecord | None:
        """
        Queue a local write for the sync engine.

        The record is committed before this returns.

        Args:
            collection: Logical collection (e.g. "quiz_responses")
            payload: JSON-serializable object

        Returns:
            The new MutationRecord (synced=False), or None if the payload was
            rejected or the write failed
        """
        if not collection:
            logger.warning("Rejected mutation without a collection")
            return None

        problem = self._validate_payload(collection, payload)
        if problem:
            logger.warning(f"Rejected mutation for {collection}: {problem}")
            return None

        row = PendingMutation(
            id=str(uuid.uuid4()),
            collection=collection,
            payload=dict(payload),
            created_at=utcnow(),
            synced=False,
            attempts=0,
        )
        try:
            with self.database.session_scope() as session:
                session.add(row)
                session.flush()
                record = row.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Failed to enqueue mutation for {collection}: {e}")
            return None

        logger.debug(f"Enqueued mutation {record.id} for {collection}")
        return record

    def list_unsynced_mutations(self, collection: str) -> list[MutationRecord]:
        """
        Unsynced mutations for a collection, oldest first.

        Returns an empty list if the store cannot be read.
        """
        try:
            with self.database.session_scope() as session:
                rows = session.scalars(
                    select(PendingMutation)
                    .where(
                        PendingMutation.collection == collection,
                        PendingMutation.synced.is_(False),
                    )
                    .order_by(PendingMutation.seq.asc())
                ).all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list unsynced mutations for {collection}: {e}")
            return []

    def get_mutation(self, mutation_id: str) -> MutationRecord | None:
        """Fetch a single mutation by id."""
        try:
            with self.database.session_scope() as session:
                row = session.scalar(
                    select(PendingMutation).where(PendingMutation.id == mutation_id)
                )
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read mutation {mutation_id}: {e}")
            return None

    def mark_synced(self, mutation_id: str) -> bool:
        """
        Mark a mutation as synced.

        Idempotent: an already-synced record is left untouched (its original
        ``synced_at`` is kept) and the call still reports success.

        Returns:
            True if the record exists and is synced, False otherwise
        """
        try:
            with self.database.session_scope() as session:
                session.execute(
                    update(PendingMutation)
                    .where(
                        PendingMutation.id == mutation_id,
                        PendingMutation.synced.is_(False),
                    )
                    .values(synced=True, synced_at=utcnow(), last_error=None)
                )
                synced = session.scalar(
                    select(PendingMutation.synced).where(PendingMutation.id == mutation_id)
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark mutation {mutation_id} synced: {e}")
            return False

        if synced is None:
            logger.warning(f"Cannot mark unknown mutation {mutation_id} synced")
            return False
        return bool(synced)

    def record_sync_failure(self, mutation_id: str, error: str) -> bool:
        """
        Note a failed remote apply. The record stays unsynced.

        Synced records are never touched.
        """
        try:
            with self.database.session_scope() as session:
                result = session.execute(
                    update(PendingMutation)
                    .where(
                        PendingMutation.id == mutation_id,
                        PendingMutation.synced.is_(False),
                    )
                    .values(
                        attempts=PendingMutation.attempts + 1,
                        last_error=error[:MAX_ERROR_LENGTH],
                        last_attempt_at=utcnow(),
                    )
                )
                return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Failed to record sync failure for {mutation_id}: {e}")
            return False

    def count_unsynced(self, collection: str | None = None) -> int:
        """Count pending mutations, optionally for one collection."""
        query = select(func.count()).select_from(PendingMutation).where(
            PendingMutation.synced.is_(False)
        )
        if collection is not None:
            query = query.where(PendingMutation.collection == collection)
        try:
            with self.database.session_scope() as session:
                return session.scalar(query) or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count unsynced mutations: {e}")
            return 0

    def pending_collections(self) -> list[str]:
        """Collections that currently have unsynced mutations."""
        try:
            with self.database.session_scope() as session:
                rows = session.scalars(
                    select(PendingMutation.collection)
                    .where(PendingMutation.synced.is_(False))
                    .group_by(PendingMutation.collection)
                    .order_by(func.min(PendingMutation.seq))
                ).all()
                return list(rows)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list pending collections: {e}")
            return []

    # =========================================================================
    # Progress Snapshots
    # =========================================================================

    def save_progress_snapshot(self, record: ProgressRecord) -> bool:
        """
        Upsert progress for (user_id, lesson_id).

        A second save for the same key replaces the fields, keeps the
        original ``created_at`` and marks the snapshot unsynced again.
        """
        try:
            with self.database.session_scope() as session:
                existing = session.get(ProgressSnapshot, (record.user_id, record.lesson_id))
                if existing:
                    existing.completed = record.completed
                    existing.score = record.score
                    existing.updated_at = record.updated_at
                    existing.synced = False
                else:
                    session.add(
                        ProgressSnapshot(
                            user_id=record.user_id,
                            lesson_id=record.lesson_id,
                            completed=record.completed,
                            score=record.score,
                            created_at=record.created_at,
                            updated_at=record.updated_at,
                            synced=False,
                        )
                    )
            return True
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to save progress for {record.user_id}/{record.lesson_id}: {e}"
            )
            return False

    def get_progress_snapshot(self, user_id: str, lesson_id: str) -> ProgressRecord | None:
        try:
            with self.database.session_scope() as session:
                row = session.get(ProgressSnapshot, (user_id, lesson_id))
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read progress for {user_id}/{lesson_id}: {e}")
            return None

    def list_unsynced_progress(self) -> list[ProgressRecord]:
        try:
            with self.database.session_scope() as session:
                rows = session.scalars(
                    select(ProgressSnapshot)
                    .where(ProgressSnapshot.synced.is_(False))
                    .order_by(ProgressSnapshot.updated_at.asc())
                ).all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list unsynced progress: {e}")
            return []

    def mark_progress_synced(
        self, user_id: str, lesson_id: str, updated_at: datetime | None = None
    ) -> bool:
        """
        Flag a snapshot as synced.

        With ``updated_at`` the flag is only set if the snapshot has not been
        overwritten since that version was queued.
        """
        try:
            with self.database.session_scope() as session:
                row = session.get(ProgressSnapshot, (user_id, lesson_id))
                if row is None:
                    return False
                if updated_at is not None and row.updated_at != updated_at:
                    return False
                row.synced = True
                return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark progress {user_id}/{lesson_id} synced: {e}")
            return False

    # =========================================================================
    # Content Cache
    # =========================================================================

    def cache_content(self, lesson_id: str, content: Sequence[Any]) -> bool:
        """
        Cache lesson content, replacing any previous entry.

        Args:
            lesson_id: Lesson the content belongs to
            content: Content payloads (models or raw dicts); each is validated

        Returns:
            True if cached, False if a payload was malformed or the write failed
        """
        try:
            items = [dump_content(parse_content(item)) for item in content]
        except ContentValidationError as e:
            logger.warning(f"Refusing to cache malformed content for lesson {lesson_id}: {e}")
            return False

        try:
            with self.database.session_scope() as session:
                session.merge(
                    CachedLessonContent(lesson_id=lesson_id, content=items, cached_at=utcnow())
                )
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to cache content for lesson {lesson_id}: {e}")
            return False

    def get_cached_content(self, lesson_id: str) -> CachedContent | None:
        """Cached content for a lesson, or None if never cached."""
        try:
            with self.database.session_scope() as session:
                row = session.get(CachedLessonContent, lesson_id)
                if row is None:
                    return None
                raw_items = list(row.content or [])
                cached_at = row.cached_at
        except SQLAlchemyError as e:
            logger.error(f"Failed to read cached content for lesson {lesson_id}: {e}")
            return None

        return CachedContent(
            lesson_id=lesson_id,
            content=[parse_content(item) for item in raw_items],
            cached_at=cached_at,
        )

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """
        Aggregate store statistics.

        Returns:
            Dictionary with pending counts per collection and table sizes
        """
        try:
            with self.database.session_scope() as session:
                pending_rows = session.execute(
                    select(PendingMutation.collection, func.count())
                    .where(PendingMutation.synced.is_(False))
                    .group_by(PendingMutation.collection)
                ).all()
                total_mutations = session.scalar(
                    select(func.count()).select_from(PendingMutation)
                )
                progress_unsynced = session.scalar(
                    select(func.count())
                    .select_from(ProgressSnapshot)
                    .where(ProgressSnapshot.synced.is_(False))
                )
                cached_lessons = session.scalar(
                    select(func.count()).select_from(CachedLessonContent)
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to collect store stats: {e}")
            return {}

        pending = {collection: count for collection, count in pending_rows}
        return {
            "pending_by_collection": pending,
            "pending_total": sum(pending.values()),
            "mutations_total": total_mutations or 0,
            "progress_unsynced": progress_unsynced or 0,
            "cached_lessons": cached_lessons or 0,
        }

    # =========================================================================
    # Internal
    # =========================================================================

    @staticmethod
    def _validate_payload(collection: str, payload: Any) -> str | None:
        """Return a description of what is wrong with the payload, or None."""
        if not isinstance(payload, Mapping):
            return f"payload must be an object, got {type(payload).__name__}"
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            return f"payload is not JSON-serializable ({e})"
        missing = [key for key in COLLECTION_KEYS.get(collection, ()) if not payload.get(key)]
        if missing:
            return f"missing key fields {missing}"
        return None
