# src/pipeline/state.py — v1
"""Mutable session state owned by the orchestrator.

Accumulates what each stage produced: upload outcome, remote asset status,
transcript, record id and speakers.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field

from vidpipe.core.models import (
    ContentMetadata,
    RemoteAssetStatus,
    Speaker,
    TranscriptData,
    UploadOutcome,
    UploadResult,
)

SessionState = Literal["idle", "running", "finished"]


class UploadSession(BaseModel):
    """Everything one upload session has learned so far."""

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = "idle"
    started_at: float | None = None
    content: ContentMetadata | None = None

    upload: UploadOutcome | None = None
    asset: RemoteAssetStatus | None = None
    transcript: TranscriptData | None = None
    record_id: str | None = None

    awaiting_speakers: bool = False
    stalled: bool = False
    speakers: list[Speaker] = Field(default_factory=list)

    result: UploadResult | None = None
    error: str | None = None

    @property
    def speaker_count(self) -> int:
        return self.transcript.speaker_count if self.transcript else 1

    @property
    def captions_delivered(self) -> bool:
        return self.asset is not None and self.asset.captions is not None
