"""
Adaptive Learning Engine.

Orchestration layer over the remote store:

    quiz_responses + user_progress  ->  PerformanceAnalyzer  ->  profile
    profile + lesson_modules        ->  RecommendationGenerator  ->  content_recommendations
    dynamic_quiz_configs + quiz templates  ->  AdaptiveQuizComposer  ->  quiz

Reads are point-in-time snapshots. Malformed remote rows are skipped one
by one; recommendation writes are isolated per row.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from langlearn.adaptive.performance_analyzer import PerformanceAnalyzer
from langlearn.adaptive.recommendation_generator import (
    RecommendationGenerator,
    RecommendationPersistence,
)
from langlearn.core.content import ContentValidationError, QuizContent, QuizQuestion, parse_content
from langlearn.core.models import (
    CatalogModule,
    PerformanceProfile,
    ProgressRecord,
    QuizConfig,
    QuizResponse,
    Recommendation,
)
from langlearn.quiz.quiz_composer import AdaptiveQuizComposer, ComposedQuiz
from langlearn.sync.remote_client import RemoteStoreClient, RemoteStoreError

# Remote tables
QUIZ_RESPONSES_TABLE = "quiz_responses"
USER_PROGRESS_TABLE = "user_progress"
CATALOG_TABLE = "lesson_modules"
RECOMMENDATIONS_TABLE = "content_recommendations"
QUIZ_CONFIG_TABLE = "dynamic_quiz_configs"
CONTENT_TABLE = "module_contents"


class AdaptiveLearningEngine:
    """
    Builds profiles, recommendations and quizzes for a learner.

    Components are injectable; defaults use the standard thresholds.
    """

    def __init__(
        self,
        remote: RemoteStoreClient,
        analyzer: PerformanceAnalyzer | None = None,
        recommender: RecommendationGenerator | None = None,
        composer: AdaptiveQuizComposer | None = None,
        persistence: RecommendationPersistence = RecommendationPersistence.APPEND,
        default_difficulty: float = 0.5,
    ):
        self.remote = remote
        self.analyzer = analyzer or PerformanceAnalyzer()
        self.recommender = recommender or RecommendationGenerator()
        self.composer = composer or AdaptiveQuizComposer()
        self.persistence = RecommendationPersistence(persistence)
        self.default_difficulty = default_difficulty

    # =========================================================================
    # Performance
    # =========================================================================

    async def build_profile(self, user_id: str) -> PerformanceProfile:
        """Read the learner's recent history and analyze it."""
        response_rows = await self.remote.select(
            QUIZ_RESPONSES_TABLE,
            {"user_id": user_id},
            order_by="created_at",
            descending=True,
            limit=self.analyzer.recent_limit,
        )
        progress_rows = await self.remote.select(USER_PROGRESS_TABLE, {"user_id": user_id})

        responses = _parse_rows(response_rows, QuizResponse.from_row, QUIZ_RESPONSES_TABLE)
        progress = _parse_rows(progress_rows, ProgressRecord.from_row, USER_PROGRESS_TABLE)
        return self.analyzer.analyze(responses, progress)

    # =========================================================================
    # Recommendations
    # =========================================================================

    async def fetch_catalog(self) -> list[CatalogModule]:
        """Catalog modules ordered by their sequence index."""
        rows = await self.remote.select(CATALOG_TABLE, order_by="order_index")
        return _parse_rows(rows, CatalogModule.from_row, CATALOG_TABLE)

    async def recommend(self, user_id: str) -> list[Recommendation]:
        """
        Generate and persist recommendations for a learner.

        Returns:
            The generated recommendations, whether or not every write succeeded
        """
        profile = await self.build_profile(user_id)
        catalog = await self.fetch_catalog()
        recommendations = self.recommender.generate(profile, catalog)

        if recommendations:
            await self.persist_recommendations(user_id, recommendations)
        logger.info(
            f"Generated {len(recommendations)} recommendations for {user_id} "
            f"(weak areas: {sorted(profile.weak_areas)})"
        )
        return recommendations

    async def persist_recommendations(
        self, user_id: str, recommendations: list[Recommendation]
    ) -> int:
        """
        Write recommendations one row at a time.

        Returns:
            Number of rows written
        """
        written = 0
        for rec in recommendations:
            row = rec.to_row(user_id)
            try:
                if self.persistence is RecommendationPersistence.UPSERT:
                    await self.remote.upsert(
                        RECOMMENDATIONS_TABLE, [row], on_conflict=("user_id", "module_id")
                    )
                else:
                    await self.remote.insert(RECOMMENDATIONS_TABLE, [row])
                written += 1
            except RemoteStoreError as e:
                logger.warning(f"Failed to store recommendation {rec.module_id} for {user_id}: {e}")
        return written

    # =========================================================================
    # Quizzes
    # =========================================================================

    async def fetch_quiz_config(self, user_id: str) -> QuizConfig:
        row = await self.remote.select_one(QUIZ_CONFIG_TABLE, {"user_id": user_id})
        return QuizConfig.from_row(row, default_difficulty=self.default_difficulty)

    async def fetch_quiz_templates(self) -> list[QuizQuestion]:
        """Quiz templates from module contents, newest first."""
        rows = await self.remote.select(
            CONTENT_TABLE, {"type": "quiz"}, order_by="created_at", descending=True
        )
        templates: list[QuizQuestion] = []
        for row in rows:
            try:
                payload = parse_content(row)
            except ContentValidationError as e:
                logger.warning(f"Skipping malformed quiz content {row.get('id')}: {e}")
                continue
            if isinstance(payload, QuizContent):
                templates.extend(payload.templates())
        return templates

    async def compose_quiz(self, user_id: str) -> ComposedQuiz:
        config = await self.fetch_quiz_config(user_id)
        templates = await self.fetch_quiz_templates()
        return self.composer.compose(config, templates)


def _parse_rows(rows: list[dict[str, Any]], parse: Any, table: str) -> list[Any]:
    parsed = []
    for row in rows:
        try:
            parsed.append(parse(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {table} row {row.get('id')}: {e!r}")
    return parsed
