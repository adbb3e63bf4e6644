# src/captions/base_caption_store.py — v1
"""Abstract caption document source."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseCaptionStore(ABC):
    """Retrieves caption documents by reference."""

    @abstractmethod
    async def fetch_caption_document(self, url: str) -> str:
        """Return the raw caption document text.

        Raises:
            CaptionFetchError: If the document cannot be retrieved.
        """
