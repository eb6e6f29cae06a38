from datetime import timedelta

import pytest

from sqlalchemy.exc import OperationalError

from langlearn.core.content import QuizContent, TextContent
from langlearn.core.models import ProgressRecord
from langlearn.db import LocalDatabase
from langlearn.offline import LocalStore


def _quiz_payload(user="learner-1", content="quiz-1", score=0.5):
    return {"user_id": user, "content_id": content, "answers": {"q1": 0}, "score": score}


class TestMutationQueue:
    def test_enqueue_returns_unsynced_record(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())

        assert record is not None
        assert record.synced is False
        assert record.collection == "quiz_responses"
        assert record.payload["content_id"] == "quiz-1"
        assert store.count_unsynced("quiz_responses") == 1

    def test_ids_are_unique(self, store):
        first = store.enqueue_mutation("quiz_responses", _quiz_payload())
        second = store.enqueue_mutation("quiz_responses", _quiz_payload())

        assert first.id != second.id

    def test_list_unsynced_is_fifo(self, store):
        ids = [
            store.enqueue_mutation("quiz_responses", _quiz_payload(content=f"quiz-{i}")).id
            for i in range(5)
        ]

        listed = [r.id for r in store.list_unsynced_mutations("quiz_responses")]

        assert listed == ids

    def test_list_is_scoped_to_collection(self, store):
        store.enqueue_mutation("quiz_responses", _quiz_payload())
        store.enqueue_mutation(
            "user_progress", {"user_id": "learner-1", "lesson_id": "lesson-1", "completed": True}
        )

        assert len(store.list_unsynced_mutations("quiz_responses")) == 1
        assert len(store.list_unsynced_mutations("user_progress")) == 1
        assert store.list_unsynced_mutations("nothing_here") == []

    @pytest.mark.parametrize(
        "payload",
        [
            "not an object",
            {"user_id": "learner-1"},
            {"user_id": "learner-1", "content_id": "quiz-1", "blob": object()},
        ],
    )
    def test_malformed_payload_is_rejected(self, store, payload):
        assert store.enqueue_mutation("quiz_responses", payload) is None
        assert store.count_unsynced() == 0

    def test_unknown_collection_accepts_any_object(self, store):
        record = store.enqueue_mutation("writing_samples", {"text": "hola"})

        assert record is not None
        assert store.pending_collections() == ["writing_samples"]

    def test_mark_synced_removes_from_queue(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())

        assert store.mark_synced(record.id) is True
        assert store.list_unsynced_mutations("quiz_responses") == []

        stored = store.get_mutation(record.id)
        assert stored.synced is True
        assert stored.synced_at is not None

    def test_mark_synced_is_idempotent(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())
        store.mark_synced(record.id)
        first_synced_at = store.get_mutation(record.id).synced_at

        assert store.mark_synced(record.id) is True
        assert store.get_mutation(record.id).synced_at == first_synced_at

    def test_mark_synced_unknown_id(self, store):
        assert store.mark_synced("does-not-exist") is False

    def test_record_sync_failure_keeps_record_queued(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())

        assert store.record_sync_failure(record.id, "HTTP 503") is True
        assert store.record_sync_failure(record.id, "HTTP 503 again") is True

        stored = store.get_mutation(record.id)
        assert stored.synced is False
        assert stored.attempts == 2
        assert stored.last_error == "HTTP 503 again"
        assert stored.last_attempt_at is not None

    def test_record_sync_failure_ignores_synced_records(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())
        store.mark_synced(record.id)

        assert store.record_sync_failure(record.id, "late error") is False
        assert store.get_mutation(record.id).attempts == 0

    def test_record_sync_failure_truncates_error(self, store):
        record = store.enqueue_mutation("quiz_responses", _quiz_payload())

        store.record_sync_failure(record.id, "x" * 2000)

        assert len(store.get_mutation(record.id).last_error) == 500

    def test_queue_survives_reopen(self, tmp_path):
        path = tmp_path / "offline.db"
        with LocalDatabase(path) as db:
            record = LocalStore(db).enqueue_mutation("quiz_responses", _quiz_payload())

        with LocalDatabase(path) as db:
            pending = LocalStore(db).list_unsynced_mutations("quiz_responses")

        assert [r.id for r in pending] == [record.id]


class TestProgressSnapshots:
    def test_save_and_read(self, store, base_time):
        record = ProgressRecord(
            "learner-1", "lesson-1", completed=True, score=0.8,
            created_at=base_time, updated_at=base_time,
        )

        assert store.save_progress_snapshot(record) is True

        stored = store.get_progress_snapshot("learner-1", "lesson-1")
        assert stored.completed is True
        assert stored.score == 0.8
        assert stored.synced is False

    def test_second_save_overwrites_and_keeps_created_at(self, store, base_time):
        later = base_time + timedelta(hours=1)
        store.save_progress_snapshot(
            ProgressRecord("learner-1", "lesson-1", False, 0.2, base_time, base_time)
        )
        store.save_progress_snapshot(
            ProgressRecord("learner-1", "lesson-1", True, 0.9, later, later)
        )

        stored = store.get_progress_snapshot("learner-1", "lesson-1")
        assert stored.completed is True
        assert stored.score == 0.9
        assert stored.created_at == base_time
        assert stored.updated_at == later
        assert len(store.list_unsynced_progress()) == 1

    def test_mark_progress_synced_checks_version(self, store, base_time):
        later = base_time + timedelta(minutes=5)
        store.save_progress_snapshot(
            ProgressRecord("learner-1", "lesson-1", True, 1.0, base_time, later)
        )

        assert store.mark_progress_synced("learner-1", "lesson-1", updated_at=base_time) is False
        assert store.get_progress_snapshot("learner-1", "lesson-1").synced is False

        assert store.mark_progress_synced("learner-1", "lesson-1", updated_at=later) is True
        assert store.list_unsynced_progress() == []

    def test_mark_progress_synced_unknown(self, store):
        assert store.mark_progress_synced("nobody", "nothing") is False


class TestContentCache:
    def test_cache_and_read_back(self, store, sample_quiz_payload):
        content = [{"kind": "text", "text": "Hola"}, sample_quiz_payload]

        assert store.cache_content("lesson-1", content) is True

        cached = store.get_cached_content("lesson-1")
        assert cached.lesson_id == "lesson-1"
        assert isinstance(cached.content[0], TextContent)
        assert isinstance(cached.content[1], QuizContent)
        assert len(cached.content[1].questions) == 2

    def test_cache_overwrites(self, store):
        store.cache_content("lesson-1", [{"kind": "text", "text": "old"}])
        store.cache_content("lesson-1", [{"kind": "text", "text": "new"}])

        cached = store.get_cached_content("lesson-1")
        assert [c.text for c in cached.content] == ["new"]
        assert store.get_stats()["cached_lessons"] == 1

    def test_malformed_content_is_refused(self, store):
        store.cache_content("lesson-1", [{"kind": "text", "text": "kept"}])

        assert store.cache_content("lesson-1", [{"kind": "hologram"}]) is False
        assert store.get_cached_content("lesson-1").content[0].text == "kept"

    def test_missing_lesson(self, store):
        assert store.get_cached_content("never-cached") is None


def test_stats(store):
    first = store.enqueue_mutation("quiz_responses", _quiz_payload())
    store.enqueue_mutation("quiz_responses", _quiz_payload(content="quiz-2"))
    store.enqueue_mutation(
        "user_progress", {"user_id": "learner-1", "lesson_id": "lesson-1", "completed": True}
    )
    store.mark_synced(first.id)

    stats = store.get_stats()

    assert stats["pending_by_collection"] == {"quiz_responses": 1, "user_progress": 1}
    assert stats["pending_total"] == 2
    assert stats["mutations_total"] == 3


class TestStorageFailures:
    """Storage errors are logged and reported, never raised."""

    @pytest.fixture
    def failing_store(self, store, monkeypatch):
        def broken_session():
            raise OperationalError("INSERT INTO pending_mutations", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store.database, "session_scope", broken_session)
        return store

    def test_enqueue_returns_none(self, failing_store):
        assert failing_store.enqueue_mutation("quiz_responses", _quiz_payload()) is None

    def test_reads_return_empty(self, failing_store):
        assert failing_store.list_unsynced_mutations("quiz_responses") == []
        assert failing_store.get_mutation("any-id") is None
        assert failing_store.count_unsynced() == 0
        assert failing_store.pending_collections() == []
        assert failing_store.list_unsynced_progress() == []
        assert failing_store.get_progress_snapshot("learner-1", "lesson-1") is None
        assert failing_store.get_cached_content("lesson-1") is None
        assert failing_store.get_stats() == {}

    def test_writes_return_false(self, failing_store, base_time):
        record = ProgressRecord("learner-1", "lesson-1", created_at=base_time, updated_at=base_time)

        assert failing_store.mark_synced("any-id") is False
        assert failing_store.record_sync_failure("any-id", "boom") is False
        assert failing_store.save_progress_snapshot(record) is False
        assert failing_store.mark_progress_synced("learner-1", "lesson-1", base_time) is False
        assert failing_store.cache_content("lesson-1", [{"kind": "text", "text": "Hola"}]) is False

    def test_store_recovers_after_failure(self, store, monkeypatch):
        queued = store.enqueue_mutation("quiz_responses", _quiz_payload())

        def broken_session():
            raise OperationalError("UPDATE pending_mutations", {}, Exception("database is locked"))

        with monkeypatch.context() as m:
            m.setattr(store.database, "session_scope", broken_session)
            assert store.mark_synced(queued.id) is False

        assert [r.id for r in store.list_unsynced_mutations("quiz_responses")] == [queued.id]
        assert store.mark_synced(queued.id) is True
