# src/api/facade.py — v1
"""Public API facade — single entry point for uploading a video.

Usage:
    from vidpipe.api.facade import upload_video
    result = await upload_video(video, content)
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable

from vidpipe.api.models import VideoInput
from vidpipe.captions.base_caption_store import BaseCaptionStore
from vidpipe.captions.http_caption_store import HttpCaptionStore
from vidpipe.config.settings import Settings
from vidpipe.core.errors import PipelineError
from vidpipe.core.models import ContentMetadata, UploadResult
from vidpipe.persistence.base_video_store import BaseVideoStore
from vidpipe.persistence.http_video_store import HttpVideoStore
from vidpipe.pipeline.orchestrator import PipelineOrchestrator, ProgressObserver
from vidpipe.processing.base_status_service import BaseStatusService
from vidpipe.processing.mux_status_service import MuxStatusService
from vidpipe.speakers.registry import SpeakerRegistry
from vidpipe.upload.base_storage_service import BaseStorageService
from vidpipe.upload.service_factory import create_storage_service

logger = logging.getLogger(__name__)

# Returns True to save the (possibly renamed) speakers, False to skip.
SpeakerHandler = Callable[[SpeakerRegistry], Awaitable[bool] | bool]


async def upload_video(
    video: VideoInput,
    content: ContentMetadata,
    settings: Settings | None = None,
    storage: BaseStorageService | None = None,
    status_service: BaseStatusService | None = None,
    caption_store: BaseCaptionStore | None = None,
    video_store: BaseVideoStore | None = None,
    speaker_handler: SpeakerHandler | None = None,
    on_progress: ProgressObserver | None = None,
) -> UploadResult:
    """Run one upload session end-to-end and return its result.

    Services not supplied are built from settings. When several speakers
    are detected, ``speaker_handler`` gets the registry to rename speakers
    and capture screenshots; without a handler identification is skipped.

    Args:
        video: File path or bytes to upload.
        content: Title, description, category, tags and visibility.
        settings: Global settings. Loaded from .env if None.
        storage: Upload destination backend.
        status_service: Remote processing status source.
        caption_store: Caption document source.
        video_store: Video record persistence.
        speaker_handler: Human-in-the-loop speaker labeling.
        on_progress: Observer receiving step snapshots.

    Returns:
        UploadResult of the finished session.

    Raises:
        PipelineError: The typed failure of the session (TransportError,
            RemoteProcessingError, PollTimeoutError, ...); its message is
            the step error.
    """
    settings = settings or Settings()
    orchestrator = PipelineOrchestrator(
        settings=settings,
        storage=storage or create_storage_service(settings),
        status_service=status_service or _default_status_service(settings),
        caption_store=caption_store or HttpCaptionStore(timeout=settings.http_timeout_s),
        video_store=video_store or _default_video_store(settings),
        on_progress=on_progress,
    )

    await orchestrator.start(video.to_source(), content)
    session = await orchestrator.wait()

    if session.awaiting_speakers:
        if await _resolve_speakers(speaker_handler, orchestrator.registry):
            await orchestrator.confirm_speakers()
        else:
            await orchestrator.skip_speaker_identification()
        session = await orchestrator.wait()

    orchestrator.close()
    if orchestrator.failure is not None:
        raise orchestrator.failure
    if session.result is None:
        raise PipelineError(f"Session {session.session_id} ended without a result")
    return session.result


async def _resolve_speakers(
    handler: SpeakerHandler | None, registry: SpeakerRegistry
) -> bool:
    if handler is None:
        logger.info("No speaker handler, skipping identification")
        return False
    decision = handler(registry)
    if inspect.isawaitable(decision):
        decision = await decision
    return bool(decision)


def _default_status_service(settings: Settings) -> MuxStatusService:
    return MuxStatusService(
        base_url=settings.api_base_url,
        headers=settings.auth_headers,
        timeout=settings.http_timeout_s,
        stream_base_url=settings.mux_stream_base_url,
        image_base_url=settings.mux_image_base_url,
    )


def _default_video_store(settings: Settings) -> HttpVideoStore:
    return HttpVideoStore(
        base_url=settings.api_base_url,
        headers=settings.auth_headers,
        timeout=settings.http_timeout_s,
    )
