"""
Offline Module - Local durable storage for disconnected use.

Components:
- store: LocalStore (mutation queue, progress snapshots, content cache)
- recorder: OfflineRecorder (turns learner actions into queued writes)
"""

from langlearn.offline.recorder import QUIZ_RESPONSES, USER_PROGRESS, OfflineRecorder, score_quiz
from langlearn.offline.store import COLLECTION_KEYS, LocalStore

__all__ = [
    "LocalStore",
    "OfflineRecorder",
    "score_quiz",
    "COLLECTION_KEYS",
    "QUIZ_RESPONSES",
    "USER_PROGRESS",
]
