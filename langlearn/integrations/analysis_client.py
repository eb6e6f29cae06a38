"""
Analysis Service Client.

Thin wrapper over the remote writing and pronunciation assessment
functions. Their internals are opaque; only the score is interpreted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from langlearn.core.models import clamp_unit
from langlearn.sync.remote_client import RemoteStoreClient

WRITING_ANALYZER = "writing-analyzer"
PRONUNCIATION_ANALYZER = "pronunciation-analyzer"


@dataclass
class AnalysisResult:
    """Assessment outcome. ``score`` is None when the service returns none."""

    score: float | None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AnalysisResult:
        raw = payload.get("score")
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return cls(score=None, payload=payload)
        return cls(score=clamp_unit(raw), payload=payload)


class AnalysisServiceClient:
    """
    Calls assessment functions on the remote store.

    Errors from the remote client (RemoteStoreError) propagate unchanged.
    """

    def __init__(self, remote: RemoteStoreClient):
        self.remote = remote

    async def assess_writing(self, user_id: str, text: str) -> AnalysisResult:
        data = await self.remote.invoke_function(
            WRITING_ANALYZER, {"user_id": user_id, "text": text}
        )
        result = AnalysisResult.from_payload(data)
        logger.debug(f"Writing assessment for {user_id}: score={result.score}")
        return result

    async def assess_pronunciation(
        self, user_id: str, audio_url: str, transcript: str
    ) -> AnalysisResult:
        data = await self.remote.invoke_function(
            PRONUNCIATION_ANALYZER,
            {"user_id": user_id, "audio_url": audio_url, "transcript": transcript},
        )
        result = AnalysisResult.from_payload(data)
        logger.debug(f"Pronunciation assessment for {user_id}: score={result.score}")
        return result
