# src/persistence/http_video_store.py — v1
"""Video record store backed by the application's REST API.

Endpoints:
    POST /api/videos/upload-mux          create the record, returns video.id
    PUT  /api/videos/<id>/speakers       store speaker identifications
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vidpipe.core.errors import PersistenceError
from vidpipe.core.models import VideoRecordFields
from vidpipe.persistence.base_video_store import BaseVideoStore

logger = logging.getLogger(__name__)


def record_payload(fields: VideoRecordFields) -> dict[str, Any]:
    """Map record fields to the camelCase body the backend expects."""
    return {
        "title": fields.title,
        "description": fields.description,
        "category": fields.category,
        "tags": fields.tags,
        "visibility": fields.visibility,
        "status": fields.status,
        "uploadId": fields.upload_id,
        "assetId": fields.asset_id,
        "playbackId": fields.playback_id,
        "thumbnails": fields.thumbnails.model_dump() if fields.thumbnails else None,
        "subtitles": fields.captions.model_dump() if fields.captions else None,
        "speakerCount": fields.speaker_count,
        "uploadMethod": fields.upload_method,
    }


class HttpVideoStore(BaseVideoStore):
    """Create video records through the backend.

    Args:
        base_url: Backend root URL.
        headers: Extra headers (authorization).
        timeout: Per-request timeout.
        transport: Optional httpx transport (tests inject MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    async def _send(self, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise PersistenceError(_describe(e.response)) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(str(e)) from e
        return data if isinstance(data, dict) else {}

    async def create_video_record(self, fields: VideoRecordFields) -> str:
        try:
            data = await self._send("POST", "/api/videos/upload-mux", record_payload(fields))
        except PersistenceError as e:
            raise PersistenceError(f"Database storage failed: {e}") from e

        video = data.get("video") or {}
        record_id = video.get("id") or data.get("id")
        if not record_id:
            raise PersistenceError("Database storage failed: no video id in response")

        logger.info("Video record %s created (status=%s)", record_id, fields.status)
        return str(record_id)

    async def save_speaker_identifications(
        self, record_id: str, speakers: list[dict[str, Any]]
    ) -> None:
        try:
            await self._send("PUT", f"/api/videos/{record_id}/speakers", {"speakers": speakers})
        except PersistenceError as e:
            raise PersistenceError(f"Saving speaker identifications failed: {e}") from e
        logger.info("Saved %d speakers for video %s", len(speakers), record_id)


def _describe(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and (body.get("error") or body.get("message")):
        return str(body.get("error") or body.get("message"))
    return f"HTTP {response.status_code}"
