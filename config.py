"""
Configuration settings for the langlearn engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Local Durable Store
    # ========================================
    database_path: Path = Field(
        default=Path.home() / ".langlearn" / "offline.db",
        description="SQLite file holding pending mutations, progress snapshots and cached content",
    )
    log_level: str = Field(
        default="INFO",
        description="Loguru level for the CLI stderr sink",
    )

    # ========================================
    # Remote Authoritative Store
    # ========================================
    remote_base_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the authoritative store (REST + functions)",
    )
    remote_api_key: str | None = Field(
        default=None,
        description="API key sent as apikey / bearer token",
    )
    remote_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout for remote calls",
    )
    remote_health_endpoint: str = Field(
        default="/rest/v1/",
        description="Endpoint probed to decide whether the remote store is reachable",
    )

    # ========================================
    # Sync Engine
    # ========================================
    sync_collections: str = Field(
        default="quiz_responses,user_progress",
        description="Comma-separated mutation collections drained by a sync pass",
    )
    sync_retry_base_delay_seconds: float = Field(
        default=0.0,
        description="Delay before a failed mutation is retried (0 = next trigger)",
    )
    sync_retry_backoff_multiplier: float = Field(
        default=2.0,
        description="Multiplier applied to the retry delay per failed attempt",
    )
    sync_retry_max_delay_seconds: float = Field(
        default=300.0,
        description="Upper bound for the retry delay",
    )
    connectivity_poll_interval_seconds: float = Field(
        default=15.0,
        description="Seconds between reachability probes in watch mode",
    )

    # ========================================
    # Performance Analyzer
    # ========================================
    analyzer_recent_response_limit: int = Field(
        default=10,
        description="Number of most recent quiz responses analyzed",
    )
    analyzer_weak_area_threshold: float = Field(
        default=0.7,
        description="Topics with accuracy below this are weak areas",
    )

    # ========================================
    # Recommendation Generator
    # ========================================
    recommender_max_results: int = Field(
        default=3,
        description="Maximum recommendations emitted per request",
    )
    recommender_keyword_weight: float = Field(
        default=0.3,
        description="Relevance contributed by each weak-area keyword found in a title",
    )
    recommender_low_score_threshold: float = Field(
        default=0.7,
        description="Average score below which the low difficulty ceiling applies",
    )
    recommender_low_ceiling: float = Field(
        default=0.5,
        description="Difficulty ceiling for struggling learners",
    )
    recommender_high_ceiling: float = Field(
        default=0.8,
        description="Difficulty ceiling for everyone else",
    )
    recommendation_persistence: Literal["append", "upsert"] = Field(
        default="append",
        description="append keeps every emitted row; upsert keeps one row per (user, module)",
    )

    # ========================================
    # Adaptive Quiz Composer
    # ========================================
    quiz_difficulty_tolerance: float = Field(
        default=0.2,
        description="Templates must be strictly closer than this to the target difficulty",
    )
    quiz_max_questions: int = Field(
        default=5,
        description="Maximum questions in a composed quiz",
    )
    quiz_easy_threshold: float = Field(
        default=0.3,
        description="Targets below this get fewer options and a hint",
    )
    quiz_hard_threshold: float = Field(
        default=0.7,
        description="Targets above this get an extra distractor and no hint",
    )
    quiz_easy_option_limit: int = Field(
        default=3,
        description="Options kept for easy questions",
    )
    quiz_default_difficulty: float = Field(
        default=0.5,
        description="Difficulty used when a learner has no quiz config",
    )
    quiz_prioritize_focus_areas: bool = Field(
        default=False,
        description="Order focus-area templates ahead of the rest before truncation",
    )

    def get_collections(self) -> list[str]:
        """Configured sync collections, in declaration order."""
        return [c.strip() for c in self.sync_collections.split(",") if c.strip()]

    def get_remote_config(self) -> dict[str, Any]:
        """Get remote store configuration as a dictionary."""
        return {
            "base_url": self.remote_base_url,
            "api_key": self.remote_api_key,
            "timeout_seconds": self.remote_timeout_seconds,
            "health_endpoint": self.remote_health_endpoint,
        }

    def get_sync_config(self) -> dict[str, Any]:
        """Get sync engine configuration as a dictionary."""
        return {
            "collections": self.get_collections(),
            "retry": {
                "base_delay_seconds": self.sync_retry_base_delay_seconds,
                "multiplier": self.sync_retry_backoff_multiplier,
                "max_delay_seconds": self.sync_retry_max_delay_seconds,
            },
            "poll_interval_seconds": self.connectivity_poll_interval_seconds,
        }

    def get_analyzer_config(self) -> dict[str, Any]:
        """Get performance analyzer configuration as a dictionary."""
        return {
            "recent_limit": self.analyzer_recent_response_limit,
            "weak_area_threshold": self.analyzer_weak_area_threshold,
        }

    def get_recommender_config(self) -> dict[str, Any]:
        """Get recommendation generator configuration as a dictionary."""
        return {
            "max_results": self.recommender_max_results,
            "keyword_weight": self.recommender_keyword_weight,
            "low_score_threshold": self.recommender_low_score_threshold,
            "low_ceiling": self.recommender_low_ceiling,
            "high_ceiling": self.recommender_high_ceiling,
        }

    def get_quiz_config(self) -> dict[str, Any]:
        """Get quiz composer configuration as a dictionary."""
        return {
            "tolerance": self.quiz_difficulty_tolerance,
            "max_questions": self.quiz_max_questions,
            "easy_threshold": self.quiz_easy_threshold,
            "hard_threshold": self.quiz_hard_threshold,
            "easy_option_limit": self.quiz_easy_option_limit,
            "prioritize_focus_areas": self.quiz_prioritize_focus_areas,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
