# SQLAlchemy models
from .base import Base
from .offline import (
    CachedLessonContent,
    PendingMutation,
    ProgressSnapshot,
)

__all__ = [
    # Base
    "Base",
    # Offline store
    "PendingMutation",
    "ProgressSnapshot",
    "CachedLessonContent",
]
