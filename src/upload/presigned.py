# src/upload/presigned.py — v1
"""PUT a payload to a presigned URL, reporting byte progress."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from vidpipe.upload.base_storage_service import ByteProgressCallback

logger = logging.getLogger(__name__)

PROGRESS_CHUNK_SIZE = 1024 * 1024


def clean_etag(value: str | None) -> str | None:
    """Strip the quotes S3-style storage wraps around ETags."""
    if value is None:
        return None
    cleaned = value.replace('"', "").strip()
    return cleaned or None


async def _iter_payload(
    payload: bytes, chunk_size: int, on_progress: ByteProgressCallback | None
) -> AsyncIterator[bytes]:
    total = len(payload)
    sent = 0
    for start in range(0, total, chunk_size):
        chunk = payload[start : start + chunk_size]
        yield chunk
        sent += len(chunk)
        if on_progress is not None:
            on_progress(sent, total)


async def put_presigned(
    url: str,
    payload: bytes,
    content_type: str,
    on_progress: ByteProgressCallback | None = None,
    timeout: float = 300.0,
    transport: httpx.AsyncBaseTransport | None = None,
    chunk_size: int = PROGRESS_CHUNK_SIZE,
) -> str | None:
    """Upload ``payload`` with a single PUT.

    Returns:
        The ETag header with quotes removed, or None when storage sent none.

    Raises:
        httpx.HTTPError: Network failure or non-2xx answer.
    """
    headers = {"Content-Type": content_type, "Content-Length": str(len(payload))}
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.put(
            url,
            content=_iter_payload(payload, chunk_size, on_progress),
            headers=headers,
        )
        response.raise_for_status()

    etag = clean_etag(response.headers.get("ETag"))
    logger.debug("PUT %d bytes (etag=%s)", len(payload), etag)
    return etag
