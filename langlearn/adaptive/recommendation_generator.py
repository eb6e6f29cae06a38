"""
Recommendation Generator.

Maps a PerformanceProfile and the module catalog to a short ranked list
of recommended modules.

A module is a candidate when its title mentions at least one weak area
(case-insensitive) and its difficulty is under the ceiling for the
learner's average score (0.5 below a 0.7 average, 0.8 otherwise).

Confidence = (relevance + difficulty_match) / 2, where relevance is 0.3
per weak area found in the title (capped at 1) and difficulty_match is
1 - |difficulty - average_score| (floored at 0).
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from loguru import logger

from langlearn.core.models import CatalogModule, PerformanceProfile, Recommendation, clamp_unit


class RecommendationPersistence(str, Enum):
    """How emitted recommendations are written to the remote sink."""

    APPEND = "append"  # every emission adds rows
    UPSERT = "upsert"  # one row per (user, module)


class RecommendationGenerator:
    """Scores and ranks catalog modules against a performance profile."""

    def __init__(
        self,
        max_results: int = 3,
        keyword_weight: float = 0.3,
        low_score_threshold: float = 0.7,
        low_ceiling: float = 0.5,
        high_ceiling: float = 0.8,
    ):
        self.max_results = max_results
        self.keyword_weight = keyword_weight
        self.low_score_threshold = low_score_threshold
        self.low_ceiling = low_ceiling
        self.high_ceiling = high_ceiling

    def generate(
        self,
        profile: PerformanceProfile,
        catalog: Sequence[CatalogModule],
    ) -> list[Recommendation]:
        """
        Rank candidate modules.

        Args:
            profile: Learner performance profile
            catalog: Modules in catalog order (ties keep this order)

        Returns:
            At most ``max_results`` recommendations, highest confidence first
        """
        ceiling = self.difficulty_ceiling(profile.average_score)
        recommendations: list[Recommendation] = []

        for module in catalog:
            matched = self.matched_keywords(module, profile.weak_areas)
            if not matched or module.difficulty > ceiling:
                continue
            recommendations.append(
                Recommendation(
                    module_id=module.id,
                    confidence=self.confidence(module, profile, len(matched)),
                    reason={
                        "weak_areas": sorted(profile.weak_areas),
                        "matched_keywords": matched,
                        "performance": round(profile.average_score, 4),
                        "velocity": round(profile.progress_velocity, 4),
                    },
                )
            )

        # sorted() is stable, so equal confidences keep catalog order
        ranked = sorted(recommendations, key=lambda r: r.confidence, reverse=True)
        top = ranked[: self.max_results]
        logger.debug(
            f"{len(recommendations)} candidates under ceiling {ceiling}; returning {len(top)}"
        )
        return top

    def difficulty_ceiling(self, average_score: float) -> float:
        if average_score < self.low_score_threshold:
            return self.low_ceiling
        return self.high_ceiling

    @staticmethod
    def matched_keywords(module: CatalogModule, weak_areas: set[str]) -> list[str]:
        """Weak areas contained in the module title, sorted."""
        title = module.title.lower()
        return sorted(area for area in weak_areas if area and area.lower() in title)

    def is_candidate(self, module: CatalogModule, profile: PerformanceProfile) -> bool:
        return bool(self.matched_keywords(module, profile.weak_areas)) and (
            module.difficulty <= self.difficulty_ceiling(profile.average_score)
        )

    def confidence(
        self, module: CatalogModule, profile: PerformanceProfile, matches: int | None = None
    ) -> float:
        if matches is None:
            matches = len(self.matched_keywords(module, profile.weak_areas))
        relevance = min(1.0, self.keyword_weight * matches)
        difficulty_match = max(0.0, 1.0 - abs(module.difficulty - profile.average_score))
        return clamp_unit((relevance + difficulty_match) / 2)
