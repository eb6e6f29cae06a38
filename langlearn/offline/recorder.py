"""
Offline Recorder.

Producer side of the mutation queue: turns learner actions (quiz
submissions, lesson completion) into queued writes so they survive
until the sync engine can push them.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from loguru import logger

from langlearn.core.content import QuizContent
from langlearn.core.models import MutationRecord, ProgressRecord, QuizResponse, clamp_unit, utcnow
from langlearn.offline.store import LocalStore

QUIZ_RESPONSES = "quiz_responses"
USER_PROGRESS = "user_progress"


def score_quiz(quiz: QuizContent, answers: Mapping[str, Any]) -> float:
    """
    Fraction of questions answered with the correct option index.

    Questions without a declared correct answer count as incorrect.
    An empty quiz scores 0.
    """
    if not quiz.questions:
        return 0.0
    correct = sum(
        1
        for q in quiz.questions
        if q.correct_answer is not None and answers.get(q.id) == q.correct_answer
    )
    return correct / len(quiz.questions)


class OfflineRecorder:
    """
    Records learner activity into the local store.

    ``topic_column`` names the remote quiz_responses column that carries the
    topic tag (None keeps the topic local).
    """

    def __init__(self, store: LocalStore, topic_column: str | None = "metadata"):
        self.store = store
        self.topic_column = topic_column

    def record_quiz_response(
        self,
        user_id: str,
        content_id: str,
        answers: Mapping[str, Any],
        score: float,
        topic: str | None = None,
    ) -> MutationRecord | None:
        """
        Queue a graded quiz attempt.

        Args:
            user_id: Learner id
            content_id: Quiz content id
            answers: Question id -> chosen option index
            score: Normalized score (clamped to [0, 1])
            topic: Optional topic tag used for weak-area analysis

        Returns:
            The queued MutationRecord, or None if it could not be stored
        """
        response = QuizResponse(
            id=str(uuid.uuid4()),
            user_id=user_id,
            content_id=content_id,
            answers=dict(answers),
            score=clamp_unit(score),
            created_at=utcnow(),
            topic=topic,
        )
        record = self.store.enqueue_mutation(QUIZ_RESPONSES, response.to_payload(self.topic_column))
        if record is None:
            logger.warning(f"Quiz response for {user_id}/{content_id} was not queued")
        return record

    def record_lesson_progress(
        self,
        user_id: str,
        lesson_id: str,
        completed: bool,
        score: float = 0.0,
    ) -> MutationRecord | None:
        """
        Save a progress snapshot and queue it for the remote store.

        An existing snapshot for the same lesson keeps its ``created_at``.
        """
        now = utcnow()
        existing = self.store.get_progress_snapshot(user_id, lesson_id)
        record = ProgressRecord(
            user_id=user_id,
            lesson_id=lesson_id,
            completed=completed,
            score=score,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        if not self.store.save_progress_snapshot(record):
            return None
        return self.store.enqueue_mutation(USER_PROGRESS, record.to_payload())
