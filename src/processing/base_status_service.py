# src/processing/base_status_service.py — v1
"""Abstract remote-processing status source."""

from __future__ import annotations

from abc import ABC, abstractmethod

from vidpipe.core.models import RemoteAssetStatus


class BaseStatusService(ABC):
    """Answers "how far along is this job?" for the remote processor."""

    @abstractmethod
    async def get_asset_status(self, job_id: str) -> RemoteAssetStatus:
        """Return the current status of a processing job.

        Raises:
            RemoteStatusError: If the status could not be obtained.
        """
