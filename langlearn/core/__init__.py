"""
Core Module - Shared domain records and content payloads.

Components:
- models: Dataclass records (mutations, progress, quiz responses, profiles)
- content: Tagged lesson content payloads validated at the boundary

Design Principle:
The offline, sync, adaptive and quiz packages import from langlearn.core
rather than redefining shared records.
"""

from langlearn.core.content import (
    AudioContent,
    ContentValidationError,
    ImageContent,
    QuestionType,
    QuizContent,
    QuizQuestion,
    TextContent,
    VideoContent,
    dump_content,
    parse_content,
)
from langlearn.core.models import (
    CachedContent,
    CatalogModule,
    MutationRecord,
    PerformanceProfile,
    ProgressRecord,
    QuizConfig,
    QuizResponse,
    Recommendation,
    clamp_unit,
    parse_timestamp,
    utcnow,
)

__all__ = [
    # Records
    "MutationRecord",
    "CachedContent",
    "ProgressRecord",
    "QuizResponse",
    "CatalogModule",
    "PerformanceProfile",
    "Recommendation",
    "QuizConfig",
    # Content
    "ContentValidationError",
    "QuestionType",
    "QuizQuestion",
    "TextContent",
    "ImageContent",
    "VideoContent",
    "AudioContent",
    "QuizContent",
    "parse_content",
    "dump_content",
    # Helpers
    "clamp_unit",
    "parse_timestamp",
    "utcnow",
]
