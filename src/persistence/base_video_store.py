# src/persistence/base_video_store.py — v1
"""Abstract video record store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from vidpipe.core.models import VideoRecordFields


class BaseVideoStore(ABC):
    """Persists the video record and the speaker labels attached to it."""

    @abstractmethod
    async def create_video_record(self, fields: VideoRecordFields) -> str:
        """Store a new video record and return its id.

        Raises:
            PersistenceError: If the record could not be stored.
        """

    @abstractmethod
    async def save_speaker_identifications(
        self, record_id: str, speakers: list[dict[str, Any]]
    ) -> None:
        """Attach named speakers to an existing record.

        Raises:
            PersistenceError: If the speakers could not be stored.
        """
