"""
Performance Analyzer.

Turns recent quiz responses and progress history into a PerformanceProfile:

- average_score: mean of the most recent response scores (0 when there are none)
- weak_areas: topics whose accuracy (summed score / attempts) is below 0.7
- progress_velocity: completed lessons per elapsed day between the earliest
  and latest progress record (0 with fewer than two records or no elapsed time)

Every computation is guarded: empty input and zero time spans produce 0,
never an exception.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence

from loguru import logger

from langlearn.core.models import PerformanceProfile, ProgressRecord, QuizResponse, clamp_unit

SECONDS_PER_DAY = 86_400.0


class PerformanceAnalyzer:
    """Builds performance profiles from point-in-time history snapshots."""

    def __init__(self, recent_limit: int = 10, weak_area_threshold: float = 0.7):
        self.recent_limit = recent_limit
        self.weak_area_threshold = weak_area_threshold

    def analyze(
        self,
        responses: Sequence[QuizResponse],
        progress: Sequence[ProgressRecord],
    ) -> PerformanceProfile:
        """
        Build a profile.

        Args:
            responses: Quiz responses in any order; only the most recent
                ``recent_limit`` are used
            progress: Full progress history for the learner

        Returns:
            PerformanceProfile
        """
        recent = self.most_recent(responses)
        accuracy = self.topic_accuracy(recent)

        profile = PerformanceProfile(
            average_score=self.average_score(recent),
            weak_areas={
                topic for topic, value in accuracy.items() if value < self.weak_area_threshold
            },
            progress_velocity=self.progress_velocity(progress),
            topic_accuracy=accuracy,
            responses_analyzed=len(recent),
        )
        logger.debug(
            f"Profile: avg={profile.average_score:.2f} weak={sorted(profile.weak_areas)} "
            f"velocity={profile.progress_velocity:.2f}/day from {len(recent)} responses"
        )
        return profile

    def most_recent(self, responses: Sequence[QuizResponse]) -> list[QuizResponse]:
        """Newest first, truncated to ``recent_limit``."""
        ordered = sorted(responses, key=lambda r: r.created_at, reverse=True)
        return ordered[: self.recent_limit]

    @staticmethod
    def average_score(responses: Sequence[QuizResponse]) -> float:
        """Arithmetic mean of scores; 0.0 for no responses."""
        if not responses:
            return 0.0
        return clamp_unit(sum(clamp_unit(r.score) for r in responses) / len(responses))

    @staticmethod
    def topic_accuracy(responses: Sequence[QuizResponse]) -> dict[str, float]:
        """
        Accuracy per topic tag.

        Responses without a topic are not evaluated.
        """
        totals: dict[str, int] = defaultdict(int)
        correct: dict[str, float] = defaultdict(float)
        for response in responses:
            if not response.topic:
                continue
            totals[response.topic] += 1
            correct[response.topic] += clamp_unit(response.score)
        return {topic: correct[topic] / totals[topic] for topic in totals}

    def identify_weak_areas(self, responses: Sequence[QuizResponse]) -> set[str]:
        return {
            topic
            for topic, value in self.topic_accuracy(responses).items()
            if value < self.weak_area_threshold
        }

    @staticmethod
    def progress_velocity(progress: Sequence[ProgressRecord]) -> float:
        """
        Completed lessons per day across the progress history.

        The elapsed time is fractional, so same-day activity still yields a
        (large) finite rate. Identical timestamps give 0.
        """
        if len(progress) < 2:
            return 0.0

        timestamps = [p.created_at for p in progress]
        elapsed_days = (max(timestamps) - min(timestamps)).total_seconds() / SECONDS_PER_DAY
        if elapsed_days <= 0:
            return 0.0

        completed = sum(1 for p in progress if p.completed)
        velocity = completed / elapsed_days
        if not math.isfinite(velocity) or velocity < 0:
            return 0.0
        return velocity
