# src/captions/http_caption_store.py — v1
"""Fetch caption documents over HTTP(S)."""

from __future__ import annotations

import logging

import httpx

from vidpipe.captions.base_caption_store import BaseCaptionStore
from vidpipe.core.errors import CaptionFetchError

logger = logging.getLogger(__name__)


class HttpCaptionStore(BaseCaptionStore):
    """Download WebVTT/SRT documents from the media CDN."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def fetch_caption_document(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise CaptionFetchError(f"Failed to fetch captions from {url}: {e}") from e

        logger.debug("Fetched caption document %s (%d chars)", url, len(response.text))
        return response.text
