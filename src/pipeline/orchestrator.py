# src/pipeline/orchestrator.py — v1
"""Pipeline orchestrator — drives one video upload session.

Step sequence:
  1. upload                  chunked transport to storage
  2. processing              remote transcoding, observed by the poller
  3. subtitles               caption fetch + parse (failures tolerated)
  4. database                video record persisted
  5. speaker_identification  human labeling when more than one speaker
  6. completion              fixed delay, elapsed duration, result callback

Steps 2 onwards run inside the poller's task once processing is ready.
When the speaker branch is taken the session pauses until
confirm_speakers() or skip_speaker_identification() is called.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable

from vidpipe.captions.base_caption_store import BaseCaptionStore
from vidpipe.captions.parser import build_transcript
from vidpipe.config.settings import Settings
from vidpipe.core.errors import (
    CaptionFetchError,
    PipelineError,
    PollTimeoutError,
    RemoteProcessingError,
    TransportError,
)
from vidpipe.core.models import (
    ContentMetadata,
    ProcessingStep,
    RemoteAssetStatus,
    Speaker,
    StepKey,
    UploadResult,
    VideoRecordFields,
)
from vidpipe.logging.context import (
    set_session_context,
    set_step_context,
    set_upload_context,
)
from vidpipe.persistence.base_video_store import BaseVideoStore
from vidpipe.pipeline.state import SessionState, UploadSession
from vidpipe.pipeline.steps import StepStateMachine, round_half_up
from vidpipe.processing.base_status_service import BaseStatusService
from vidpipe.processing.poller import RemoteProcessingPoller
from vidpipe.speakers.registry import SpeakerRegistry
from vidpipe.upload.base_storage_service import BaseStorageService
from vidpipe.upload.source import UploadSource
from vidpipe.upload.transport import ChunkedUploadTransport

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[list[ProcessingStep]], None]
CompleteCallback = Callable[[UploadResult], Awaitable[None] | None]
ErrorCallback = Callable[[str], Awaitable[None] | None]
SpeakersCallback = Callable[[list[Speaker]], Awaitable[None] | None]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class PipelineOrchestrator:
    """Sequence the upload pipeline for one session at a time.

    Args:
        settings: Application settings (threshold, polling, delays).
        storage: Storage service used by the upload transport.
        status_service: Remote processing status source.
        caption_store: Caption document source.
        video_store: Video record persistence.
        registry: Speaker registry; a fresh one is created if omitted.
        on_progress: Called with a step snapshot after every step change.
        on_upload_complete: Called once with the UploadResult.
        on_upload_error: Called once with the failure message.
        on_speaker_identification: Called when human labeling is needed.
    """

    def __init__(
        self,
        settings: Settings,
        storage: BaseStorageService,
        status_service: BaseStatusService,
        caption_store: BaseCaptionStore,
        video_store: BaseVideoStore,
        registry: SpeakerRegistry | None = None,
        on_progress: ProgressObserver | None = None,
        on_upload_complete: CompleteCallback | None = None,
        on_upload_error: ErrorCallback | None = None,
        on_speaker_identification: SpeakersCallback | None = None,
    ) -> None:
        self._settings = settings
        self._transport = ChunkedUploadTransport(storage)
        self._poller = RemoteProcessingPoller(
            status_service,
            interval_s=settings.poll_interval_s,
            timeout_s=settings.poll_timeout_s,
            timeout_behavior=settings.poll_timeout_behavior,
        )
        self._caption_store = caption_store
        self._video_store = video_store
        self._registry = registry or SpeakerRegistry(settings.speaker_default_confidence)

        self._on_progress = on_progress
        self._on_upload_complete = on_upload_complete
        self._on_upload_error = on_upload_error
        self._on_speaker_identification = on_speaker_identification

        self._steps = StepStateMachine()
        self._session = UploadSession()
        self._settled = asyncio.Event()
        self._failure: PipelineError | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def session(self) -> UploadSession:
        return self._session.model_copy()

    @property
    def registry(self) -> SpeakerRegistry:
        return self._registry

    @property
    def awaiting_speakers(self) -> bool:
        return self._session.awaiting_speakers

    @property
    def failure(self) -> PipelineError | None:
        """Why the current session ended without a result, if it did."""
        return self._failure

    def steps(self) -> list[ProcessingStep]:
        return self._steps.snapshot()

    def overall_progress(self) -> int:
        return self._steps.overall_progress()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def open(self) -> bool:
        """Reset for a new session. Idempotent; refused while running."""
        if self._session.state == "running":
            logger.warning("Cannot reset session %s while running", self._session.session_id)
            return False
        self._poller.stop()
        self._steps.reset()
        self._registry.clear()
        self._session = UploadSession()
        self._settled = asyncio.Event()
        self._failure = None
        self._notify()
        return True

    def close(self) -> bool:
        """Release the session. Refused while running."""
        if self._session.state == "running":
            logger.warning("Cannot close session %s while running", self._session.session_id)
            return False
        self._poller.stop()
        return True

    async def wait(self) -> UploadSession:
        """Block until the session finishes or pauses for speaker confirmation."""
        await self._settled.wait()
        return self.session

    async def start(self, source: UploadSource, content: ContentMetadata) -> None:
        """Upload ``source`` and hand over to the processing poller.

        Returns once the upload step is settled; later steps run in the
        background. Use wait() to follow them.

        Raises:
            PipelineError: If the session was already started.
        """
        if self._session.state != "idle":
            raise PipelineError(
                f"Session {self._session.session_id} already {self._session.state}; call open() first"
            )

        session = self._session
        session.state = "running"
        session.started_at = time.monotonic()
        session.content = content
        set_session_context(session.session_id)
        logger.info("Session %s: uploading %s (%d bytes)", session.session_id, source.filename, source.size)

        self._begin("upload", "Starting upload...")
        try:
            outcome = await self._transport.upload(
                source,
                self._settings.multipart_threshold_bytes,
                on_progress=self._on_upload_progress,
                title=content.title,
                description=content.description,
            )
        except TransportError as e:
            await self._fail("upload", str(e), e)
            return

        session.upload = outcome
        set_upload_context(outcome.upload_id)
        self._complete("upload", "Upload completed successfully!")

        self._begin("processing", "Processing video and generating assets...")
        self._poller.poll_until_terminal(
            outcome.job_id,
            on_ready=self._on_processing_ready,
            on_error=self._on_processing_error,
            on_status=self._on_processing_status,
            on_timeout=self._on_processing_timeout,
            on_stall=self._on_processing_stall,
        )

    # ------------------------------------------------------------------
    # Speaker confirmation
    # ------------------------------------------------------------------

    async def confirm_speakers(self) -> None:
        """Persist the registry's speakers and finish the session."""
        self._leave_speaker_pause()
        record_id = self._session.record_id or ""
        try:
            await self._video_store.save_speaker_identifications(
                record_id, self._registry.as_payload()
            )
        except PipelineError as e:
            await self._fail("speaker_identification", str(e), e)
            return

        self._session.speakers = self._registry.speakers()
        self._complete("speaker_identification", "Speaker identification completed!")
        await self._run_guarded(self._finalize)

    async def skip_speaker_identification(self) -> None:
        """Finish the session without naming speakers."""
        self._leave_speaker_pause()
        self._complete(
            "speaker_identification", "Speaker identification skipped", skipped=True
        )
        await self._run_guarded(self._finalize)

    def _leave_speaker_pause(self) -> None:
        if not self._session.awaiting_speakers:
            raise PipelineError("No speaker identification is pending")
        self._session.awaiting_speakers = False
        self._settled.clear()

    # ------------------------------------------------------------------
    # Poller callbacks
    # ------------------------------------------------------------------

    def _on_upload_progress(self, percent: int) -> None:
        self._steps.update("upload", progress=percent, detail=f"Uploading... {percent}%")
        self._notify()

    def _on_processing_status(self, status: RemoteAssetStatus) -> None:
        if status.is_ready or status.is_errored:
            return
        self._steps.update("processing", detail=f"Remote status: {status.status}")
        self._notify()

    async def _on_processing_error(self, message: str) -> None:
        job_id = self._session.upload.job_id if self._session.upload else ""
        error = RemoteProcessingError(job_id, message)
        await self._fail("processing", str(error), error)

    async def _on_processing_timeout(self, error: PollTimeoutError) -> None:
        await self._fail("processing", str(error), error)

    def _on_processing_stall(self, error: PollTimeoutError) -> None:
        # No error callback: the step keeps its status, the session ends.
        session = self._session
        self._steps.update("processing", detail="Stopped waiting for video processing")
        session.stalled = True
        session.state = "finished"
        self._failure = error
        set_step_context(None)
        logger.warning("Session %s finished without processing result", session.session_id)
        self._notify()
        self._settled.set()

    async def _on_processing_ready(self, status: RemoteAssetStatus) -> None:
        self._session.asset = status
        self._complete("processing", "Video processing completed with thumbnails!")
        await self._run_guarded(self._after_processing)

    async def _after_processing(self) -> None:
        await self._run_subtitles()
        await self._run_database()
        await self._run_speaker_branch()

    # ------------------------------------------------------------------
    # Steps 3-6
    # ------------------------------------------------------------------

    async def _run_subtitles(self) -> None:
        self._begin("subtitles", "Checking subtitle generation...")
        captions = self._session.asset.captions if self._session.asset else None
        if captions is None:
            self._complete("subtitles", "No captions available")
            return

        self._steps.update("subtitles", progress=50, detail="Fetching transcript data...")
        self._notify()
        try:
            document = await self._caption_store.fetch_caption_document(captions.vtt_url)
        except CaptionFetchError as e:
            logger.warning("Continuing without transcript: %s", e)
            self._complete("subtitles", "Captions could not be fetched, continuing without transcript")
            return

        transcript = build_transcript(document, captions.vtt_url)
        self._session.transcript = transcript
        if transcript.speaker_count > 1:
            detail = f"Subtitles ready! Found {transcript.speaker_count} speakers"
        else:
            detail = "Subtitles ready! Single speaker detected"
        self._complete("subtitles", detail)

    async def _run_database(self) -> None:
        self._begin("database", "Creating video record...")
        session = self._session
        if session.upload is None or session.asset is None:
            raise PipelineError("Cannot create the video record before upload and processing")
        content = session.content or ContentMetadata(title=session.upload.upload_id)

        fields = VideoRecordFields(
            title=content.title,
            description=content.description,
            category=content.category or self._settings.default_category,
            tags=",".join(content.tags),
            visibility=content.visibility or self._settings.default_visibility,
            status="published" if session.captions_delivered else "processing",
            upload_id=session.upload.upload_id,
            asset_id=session.asset.asset_id,
            playback_id=session.asset.playback_id,
            thumbnails=session.asset.thumbnails,
            captions=session.asset.captions,
            speaker_count=session.speaker_count,
            upload_method=session.upload.method,
        )
        session.record_id = await self._video_store.create_video_record(fields)
        self._complete("database", "Video record created successfully!")

    async def _run_speaker_branch(self) -> None:
        if self._session.speaker_count <= 1:
            self._complete(
                "speaker_identification",
                "Single speaker - no identification needed",
                skipped=True,
            )
            await self._finalize()
            return

        self._begin("speaker_identification", "Multiple speakers detected...")
        transcript = self._session.transcript
        if transcript is None:
            raise PipelineError("Speaker identification needs a transcript")
        speakers = self._registry.derive_speakers("\n".join(transcript.cue_lines))
        self._session.awaiting_speakers = True
        logger.info("Waiting for speaker confirmation (%d labels)", len(speakers))
        self._settled.set()
        if self._on_speaker_identification is not None:
            await _maybe_await(self._on_speaker_identification(speakers))

    async def _finalize(self) -> None:
        self._begin("completion", "Finalizing upload...")
        await asyncio.sleep(self._settings.completion_delay_s)

        session = self._session
        if session.upload is None or session.started_at is None:
            raise PipelineError(f"Session {session.session_id} has no upload to finalize")
        duration = round_half_up(time.monotonic() - session.started_at)
        self._complete("completion", f"Upload completed in {duration}s!")

        asset = session.asset
        result = UploadResult(
            record_id=session.record_id or "",
            upload_id=session.upload.upload_id,
            asset_id=asset.asset_id if asset else None,
            playback_id=asset.playback_id if asset else None,
            thumbnails=asset.thumbnails if asset else None,
            captions=asset.captions if asset else None,
            transcript=session.transcript,
            speakers=session.speakers,
            duration_s=duration,
        )
        session.result = result
        session.state = "finished"
        set_step_context(None)
        logger.info("Session %s finished in %ds", session.session_id, duration)
        self._settled.set()
        if self._on_upload_complete is not None:
            await _maybe_await(self._on_upload_complete(result))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run_guarded(self, stage: Callable[[], Awaitable[None]]) -> None:
        """Run a stage, turning any failure into an error on the current step."""
        try:
            await stage()
        except PipelineError as e:
            await self._fail(self._current_key(), str(e), e)
        except Exception as e:
            logger.exception("Unexpected failure in session %s", self._session.session_id)
            await self._fail(self._current_key(), str(e) or e.__class__.__name__)

    def _current_key(self) -> StepKey:
        step = self._steps.current_step()
        return step.key if step is not None else "completion"

    def _begin(self, key: StepKey, detail: str) -> None:
        set_step_context(key)
        self._steps.start(key, detail)
        logger.info("%s", detail)
        self._notify()

    def _complete(self, key: StepKey, detail: str, skipped: bool = False) -> None:
        self._steps.complete(key, detail, skipped=skipped)
        logger.info("%s", detail)
        self._notify()

    async def _fail(
        self, key: StepKey, message: str, error: PipelineError | None = None
    ) -> None:
        step = self._steps.get(key)
        if step.status not in ("completed", "error"):
            self._steps.fail(key, message)
        session = self._session
        session.error = message
        session.state = "finished"
        self._failure = error or PipelineError(message)
        session.awaiting_speakers = False
        logger.error("Step %s failed: %s", key, message)
        self._notify()
        self._settled.set()
        if self._on_upload_error is not None:
            await _maybe_await(self._on_upload_error(message))

    def _notify(self) -> None:
        if self._on_progress is not None:
            self._on_progress(self._steps.snapshot())
