import pytest

from langlearn.core.content import parse_content
from langlearn.offline import QUIZ_RESPONSES, USER_PROGRESS, OfflineRecorder, score_quiz


def test_score_quiz(sample_quiz_payload):
    quiz = parse_content(sample_quiz_payload)

    assert score_quiz(quiz, {"q1": 0, "q2": 1}) == 1.0
    assert score_quiz(quiz, {"q1": 0, "q2": 0}) == 0.5
    assert score_quiz(quiz, {}) == 0.0


def test_score_empty_quiz():
    assert score_quiz(parse_content({"kind": "quiz"}), {"q1": 0}) == 0.0


def test_record_quiz_response_queues_mutation(store):
    recorder = OfflineRecorder(store)

    record = recorder.record_quiz_response(
        "learner-1", "quiz-1", {"q1": 0}, score=1.4, topic="grammar"
    )

    assert record.collection == QUIZ_RESPONSES
    assert record.payload["score"] == 1.0
    assert record.payload["metadata"] == {"topic": "grammar"}
    assert store.count_unsynced(QUIZ_RESPONSES) == 1


def test_quiz_response_payload_columns(store):
    record = OfflineRecorder(store).record_quiz_response("learner-1", "quiz-1", {"q1": 0}, 0.5)

    assert set(record.payload) == {"id", "user_id", "content_id", "answers", "score", "created_at"}


@pytest.mark.parametrize(
    "topic_column, expected",
    [
        ("metadata", {"metadata": {"topic": "grammar"}}),
        ("topic", {"topic": "grammar"}),
        (None, {}),
    ],
)
def test_topic_column_is_configurable(store, topic_column, expected):
    recorder = OfflineRecorder(store, topic_column=topic_column)

    record = recorder.record_quiz_response("learner-1", "quiz-1", {"q1": 0}, 0.5, topic="grammar")

    base = {"id", "user_id", "content_id", "answers", "score", "created_at"}
    extra = {k: v for k, v in record.payload.items() if k not in base}
    assert extra == expected


def test_record_quiz_response_rejected(store):
    recorder = OfflineRecorder(store)

    assert recorder.record_quiz_response("", "quiz-1", {}, score=0.5) is None
    assert store.count_unsynced() == 0


def test_record_lesson_progress(store):
    recorder = OfflineRecorder(store)

    first = recorder.record_lesson_progress("learner-1", "lesson-1", completed=False, score=0.3)
    second = recorder.record_lesson_progress("learner-1", "lesson-1", completed=True, score=0.9)

    snapshot = store.get_progress_snapshot("learner-1", "lesson-1")
    assert snapshot.completed is True
    assert snapshot.score == 0.9
    assert second.payload["created_at"] == first.payload["created_at"]
    assert second.collection == USER_PROGRESS
    assert store.count_unsynced(USER_PROGRESS) == 2
