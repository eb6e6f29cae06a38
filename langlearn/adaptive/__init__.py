"""
Adaptive Module - Learner modelling and personalization.

Components:
- performance_analyzer: Recent-score, weak-area and velocity profile
- recommendation_generator: Ranks catalog modules against a profile
- learning_engine: Wires the above to the remote store
"""

from langlearn.adaptive.learning_engine import AdaptiveLearningEngine
from langlearn.adaptive.performance_analyzer import PerformanceAnalyzer
from langlearn.adaptive.recommendation_generator import (
    RecommendationGenerator,
    RecommendationPersistence,
)

__all__ = [
    "AdaptiveLearningEngine",
    "PerformanceAnalyzer",
    "RecommendationGenerator",
    "RecommendationPersistence",
]
