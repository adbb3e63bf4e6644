# src/processing/mux_status_service.py — v1
"""Status service for Mux-processed uploads, via the backend API.

Endpoints:
    GET /api/mux/upload-status/<upload_id>     status, ids, thumbnail URLs
    GET /api/mux/subtitle-status/<asset_id>    generated subtitle tracks

When the backend returns no thumbnail URLs for a ready asset, public Mux
image URLs are built from the playback id. Caption references point at the
first ready subtitle track on the Mux stream host.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vidpipe.core.errors import RemoteStatusError
from vidpipe.core.models import (
    AssetState,
    CaptionRefs,
    RemoteAssetStatus,
    ThumbnailSet,
    ThumbnailVariant,
)
from vidpipe.processing.base_status_service import BaseStatusService

logger = logging.getLogger(__name__)

_STATE_MAP: dict[str, AssetState] = {
    "waiting": "uploading",
    "waiting_for_upload": "uploading",
    "asset_created": "processing",
    "preparing": "processing",
    "processing": "processing",
    "ready": "ready",
    "errored": "errored",
    "error": "errored",
    "cancelled": "errored",
    "timed_out": "errored",
}

THUMBNAIL_SIZES = {"small": (320, 180), "medium": (640, 360), "large": (1280, 720)}
THUMBNAIL_TIME_S = 10
VARIANT_TIMES_S = (5, 15, 30)


def map_remote_state(raw: str | None) -> AssetState:
    """Collapse Mux upload/asset states into the pipeline's four states."""
    return _STATE_MAP.get((raw or "").lower(), "processing")


class MuxStatusService(BaseStatusService):
    """Poll the backend for Mux upload and asset state.

    Args:
        base_url: Backend root URL.
        headers: Extra headers (authorization) for backend calls.
        timeout: Per-request timeout.
        stream_base_url: Mux stream host used for caption URLs.
        image_base_url: Mux image host used for fallback thumbnail URLs.
        transport: Optional httpx transport (tests inject MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        stream_base_url: str = "https://stream.mux.com",
        image_base_url: str = "https://image.mux.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._stream_base_url = stream_base_url.rstrip("/")
        self._image_base_url = image_base_url.rstrip("/")
        self._transport = transport

    async def _get_json(self, path: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(path)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteStatusError(f"GET {path} failed: {e}") from e

        if not isinstance(data, dict) or data.get("success") is False:
            error = data.get("error") if isinstance(data, dict) else None
            raise RemoteStatusError(f"GET {path} rejected: {error or 'unknown error'}")
        return data

    async def get_asset_status(self, job_id: str) -> RemoteAssetStatus:
        data = await self._get_json(f"/api/mux/upload-status/{job_id}")
        raw = data.get("status") or {}
        if isinstance(raw, str):
            raw = {"status": raw}

        state = map_remote_state(raw.get("status"))
        asset_id = raw.get("assetId")
        playback_id = raw.get("playbackId")

        status = RemoteAssetStatus(
            job_id=job_id,
            status=state,
            asset_id=asset_id,
            playback_id=playback_id,
            error=_error_message(raw.get("error")) if state == "errored" else None,
        )
        if not status.is_ready:
            return status

        thumbnails = _parse_thumbnails((data.get("urls") or {}).get("thumbnails"))
        if thumbnails is None:
            thumbnails = self.public_thumbnails(playback_id)

        return status.model_copy(
            update={
                "thumbnails": thumbnails,
                "captions": await self._caption_refs(asset_id, playback_id),
            }
        )

    def public_thumbnails(self, playback_id: str) -> ThumbnailSet:
        """Public (unsigned) Mux thumbnail URLs for a playback id."""
        base = f"{self._image_base_url}/{playback_id}/thumbnail.jpg"
        sized = {
            name: f"{base}?time={THUMBNAIL_TIME_S}&width={w}&height={h}"
            for name, (w, h) in THUMBNAIL_SIZES.items()
        }
        large_w, large_h = THUMBNAIL_SIZES["large"]
        return ThumbnailSet(
            **sized,
            variants=[
                ThumbnailVariant(time=t, url=f"{base}?time={t}&width={large_w}&height={large_h}")
                for t in VARIANT_TIMES_S
            ],
        )

    def caption_urls(self, playback_id: str, track_id: str) -> CaptionRefs:
        base = f"{self._stream_base_url}/{playback_id}/text/{track_id}"
        return CaptionRefs(vtt_url=f"{base}.vtt", srt_url=f"{base}.srt")

    async def _caption_refs(self, asset_id: str, playback_id: str) -> CaptionRefs | None:
        """Caption URLs of the first ready subtitle track; None when the lookup fails."""
        try:
            data = await self._get_json(f"/api/mux/subtitle-status/{asset_id}")
        except RemoteStatusError as e:
            logger.warning("Subtitle lookup failed for asset %s: %s", asset_id, e)
            return None

        if not data.get("hasSubtitles"):
            return None
        for track in data.get("subtitleTracks") or []:
            track_id = track.get("id")
            if track_id and track.get("status", "ready") == "ready":
                return self.caption_urls(playback_id, track_id)
        return None


def _parse_thumbnails(raw: Any) -> ThumbnailSet | None:
    if not isinstance(raw, dict) or not any(raw.get(k) for k in THUMBNAIL_SIZES):
        return None
    return ThumbnailSet(
        small=raw.get("small"),
        medium=raw.get("medium"),
        large=raw.get("large"),
        variants=[
            ThumbnailVariant(time=v["time"], url=v["url"])
            for v in raw.get("variants") or []
            if isinstance(v, dict) and "time" in v and "url" in v
        ],
    )


def _error_message(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("message") or raw.get("type") or "Video processing failed")
    return str(raw) if raw else "Video processing failed"
