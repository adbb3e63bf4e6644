# tests/unit/pipeline/test_unit_orchestrator.py — v1
"""Tests for pipeline/orchestrator.py — step sequencing against in-memory services."""

from __future__ import annotations

import asyncio

import pytest

from fakes import (
    MULTI_SPEAKER_VTT,
    FakeCaptionStore,
    FakeStatusService,
    FakeStorageService,
    FakeVideoStore,
    ready_status,
)
from vidpipe.core.errors import PipelineError, PollTimeoutError, RemoteProcessingError
from vidpipe.core.models import ContentMetadata, RemoteAssetStatus
from vidpipe.pipeline.orchestrator import PipelineOrchestrator
from vidpipe.upload.source import BytesUploadSource

CONTENT = ContentMetadata(title="Lecture 1", tags=["physics", "intro"])


class Events:
    def __init__(self) -> None:
        self.snapshots: list[list] = []
        self.results: list = []
        self.errors: list[str] = []
        self.speaker_prompts: list[list] = []

    def on_progress(self, steps) -> None:
        self.snapshots.append(steps)

    def on_complete(self, result) -> None:
        self.results.append(result)

    async def on_error(self, message: str) -> None:
        self.errors.append(message)

    def on_speakers(self, speakers) -> None:
        self.speaker_prompts.append(speakers)


def _make(
    settings,
    statuses=None,
    storage=None,
    captions=None,
    videos=None,
):
    events = Events()
    status_service = FakeStatusService(statuses or [ready_status()])
    orch = PipelineOrchestrator(
        settings=settings,
        storage=storage or FakeStorageService(),
        status_service=status_service,
        caption_store=captions or FakeCaptionStore(),
        video_store=videos or FakeVideoStore(),
        on_progress=events.on_progress,
        on_upload_complete=events.on_complete,
        on_upload_error=events.on_error,
        on_speaker_identification=events.on_speakers,
    )
    return orch, events, status_service


def _source(size: int = 10) -> BytesUploadSource:
    return BytesUploadSource(b"v" * size, "lecture.mp4")


def _status_of(orch: PipelineOrchestrator) -> dict[str, str]:
    return {s.key: s.status for s in orch.steps()}


class TestSingleSpeakerPath:
    @pytest.mark.asyncio
    async def test_runs_to_completion(self, settings, fake_video_store):
        orch, events, _ = _make(settings, videos=fake_video_store)

        await orch.start(_source(), CONTENT)
        session = await orch.wait()

        assert session.state == "finished"
        assert session.error is None
        assert orch.overall_progress() == 100
        assert all(s.status == "completed" for s in orch.steps())

        speaker_step = next(s for s in orch.steps() if s.key == "speaker_identification")
        assert speaker_step.skipped is True
        assert speaker_step.detail == "Single speaker - no identification needed"

        assert len(events.results) == 1
        result = events.results[0]
        assert result.record_id == "video-1"
        assert result.playback_id == "play-1"
        assert result.transcript.text == "Hello world. This is a short clip."
        assert result.speakers == []
        assert events.errors == []
        assert events.speaker_prompts == []

    @pytest.mark.asyncio
    async def test_speaker_step_never_enters_processing(self, settings):
        orch, events, _ = _make(settings)
        await orch.start(_source(), CONTENT)
        await orch.wait()

        speaker_states = [
            next(s for s in snap if s.key == "speaker_identification").status
            for snap in events.snapshots
        ]
        assert "processing" not in speaker_states
        assert speaker_states[-1] == "completed"

    @pytest.mark.asyncio
    async def test_remote_status_shown_while_polling(self, settings):
        preparing = RemoteAssetStatus(job_id="j", status="processing")
        orch, events, _ = _make(settings, statuses=[preparing, preparing, ready_status()])
        await orch.start(_source(), CONTENT)
        await orch.wait()

        details = [
            next(s for s in snap if s.key == "processing").detail for snap in events.snapshots
        ]
        assert details.count("Remote status: processing") == 2
        assert details[-1] == "Video processing completed with thumbnails!"

    @pytest.mark.asyncio
    async def test_record_fields(self, settings, fake_video_store):
        orch, _, _ = _make(settings, videos=fake_video_store)
        await orch.start(_source(), CONTENT)
        await orch.wait()

        record = fake_video_store.records[0]
        assert record.title == "Lecture 1"
        assert record.tags == "physics,intro"
        assert record.status == "published"
        assert record.visibility == "private"
        assert record.upload_id == "up-1"
        assert record.speaker_count == 1
        assert record.upload_method == "single"

    @pytest.mark.asyncio
    async def test_step_details(self, settings):
        orch, _, _ = _make(settings)
        await orch.start(_source(), CONTENT)
        await orch.wait()

        details = {s.key: s.detail for s in orch.steps()}
        assert details["upload"] == "Upload completed successfully!"
        assert details["subtitles"] == "Subtitles ready! Single speaker detected"
        assert details["database"] == "Video record created successfully!"
        assert details["completion"].startswith("Upload completed in ")

    @pytest.mark.asyncio
    async def test_overall_progress_never_decreases(self, settings):
        orch, events, _ = _make(settings)
        await orch.start(_source(), CONTENT)
        await orch.wait()

        completed = [sum(s.status == "completed" for s in snap) for snap in events.snapshots]
        assert completed == sorted(completed)
        assert completed[-1] == 6

    @pytest.mark.asyncio
    async def test_multipart_upload_method_recorded(self, settings, fake_video_store):
        orch, _, _ = _make(settings, videos=fake_video_store)
        await orch.start(_source(size=250), CONTENT)
        await orch.wait()
        assert fake_video_store.records[0].upload_method == "multipart"


class TestCaptions:
    @pytest.mark.asyncio
    async def test_no_captions_record_is_processing(self, settings, fake_video_store):
        orch, events, _ = _make(
            settings, statuses=[ready_status(with_captions=False)], videos=fake_video_store
        )
        await orch.start(_source(), CONTENT)
        await orch.wait()

        assert fake_video_store.records[0].status == "processing"
        subtitles = next(s for s in orch.steps() if s.key == "subtitles")
        assert subtitles.status == "completed"
        assert subtitles.detail == "No captions available"
        assert events.results[0].transcript is None

    @pytest.mark.asyncio
    async def test_caption_fetch_failure_is_tolerated(self, settings, fake_video_store):
        orch, events, _ = _make(
            settings, captions=FakeCaptionStore(document=None), videos=fake_video_store
        )
        await orch.start(_source(), CONTENT)
        session = await orch.wait()

        assert session.error is None
        assert events.errors == []
        assert fake_video_store.records[0].status == "published"
        assert orch.overall_progress() == 100


class TestSpeakerBranch:
    @pytest.mark.asyncio
    async def test_pauses_for_confirmation(self, settings):
        orch, events, _ = _make(settings, captions=FakeCaptionStore(MULTI_SPEAKER_VTT))
        await orch.start(_source(), CONTENT)
        await orch.wait()

        assert orch.awaiting_speakers is True
        assert orch.state == "running"
        assert _status_of(orch)["speaker_identification"] == "processing"
        assert _status_of(orch)["completion"] == "pending"
        assert [s.original_label for s in events.speaker_prompts[0]] == ["Alice", "Bob"]
        assert events.results == []

    @pytest.mark.asyncio
    async def test_confirm_saves_renamed_speakers(self, settings, fake_video_store):
        orch, events, _ = _make(
            settings, captions=FakeCaptionStore(MULTI_SPEAKER_VTT), videos=fake_video_store
        )
        await orch.start(_source(), CONTENT)
        await orch.wait()

        orch.registry.rename("speaker-0", "Dr. Alice")
        await orch.confirm_speakers()
        session = await orch.wait()

        assert session.state == "finished"
        saved = fake_video_store.speakers["video-1"]
        assert [s["name"] for s in saved] == ["Dr. Alice", "Bob"]
        assert saved[0]["originalLabel"] == "Alice"
        assert [s.name for s in events.results[0].speakers] == ["Dr. Alice", "Bob"]
        assert fake_video_store.records[0].speaker_count == 2
        speaker_step = next(s for s in orch.steps() if s.key == "speaker_identification")
        assert speaker_step.detail == "Speaker identification completed!"

    @pytest.mark.asyncio
    async def test_skip(self, settings, fake_video_store):
        orch, events, _ = _make(
            settings, captions=FakeCaptionStore(MULTI_SPEAKER_VTT), videos=fake_video_store
        )
        await orch.start(_source(), CONTENT)
        await orch.wait()
        await orch.skip_speaker_identification()
        await orch.wait()

        assert fake_video_store.speakers == {}
        assert orch.overall_progress() == 100
        assert next(s for s in orch.steps() if s.key == "speaker_identification").skipped
        assert len(events.results) == 1

    @pytest.mark.asyncio
    async def test_confirm_without_pause_is_rejected(self, settings):
        orch, _, _ = _make(settings)
        with pytest.raises(PipelineError, match="No speaker identification"):
            await orch.confirm_speakers()

    @pytest.mark.asyncio
    async def test_speaker_save_failure(self, settings):
        orch, events, _ = _make(
            settings,
            captions=FakeCaptionStore(MULTI_SPEAKER_VTT),
            videos=FakeVideoStore(fail_speakers=True),
        )
        await orch.start(_source(), CONTENT)
        await orch.wait()
        await orch.confirm_speakers()
        session = await orch.wait()

        assert _status_of(orch)["speaker_identification"] == "error"
        assert session.error.startswith("Saving speaker identifications failed")
        assert events.results == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_upload_error_halts(self, settings):
        orch, events, status_service = _make(settings, storage=FakeStorageService(fail_part=2))
        await orch.start(_source(size=150), CONTENT)
        session = await orch.wait()

        statuses = _status_of(orch)
        assert statuses["upload"] == "error"
        assert all(statuses[k] == "pending" for k in ("processing", "subtitles", "database"))
        assert "part 2" in session.error
        assert events.errors == [session.error]
        assert status_service.requests == 0

    @pytest.mark.asyncio
    async def test_processing_error(self, settings, fake_video_store):
        errored = RemoteAssetStatus(job_id="j", status="errored", error="Invalid video codec")
        orch, events, _ = _make(settings, statuses=[errored], videos=fake_video_store)
        await orch.start(_source(), CONTENT)
        await orch.wait()

        assert _status_of(orch)["processing"] == "error"
        assert events.errors == ["Invalid video codec"]
        assert fake_video_store.records == []
        assert isinstance(orch.failure, RemoteProcessingError)
        assert orch.failure.job_id == "up-1"

    @pytest.mark.asyncio
    async def test_status_service_crash_fails_processing(self, settings):
        orch, events, status_service = _make(settings, statuses=[RuntimeError("bad payload")])
        await orch.start(_source(), CONTENT)
        session = await asyncio.wait_for(orch.wait(), timeout=1.0)

        assert session.state == "finished"
        assert _status_of(orch)["processing"] == "error"
        assert events.errors == ["bad payload"]
        assert status_service.requests == 1
        assert orch.open() is True

    @pytest.mark.asyncio
    async def test_processing_timeout(self, settings):
        fast = settings.model_copy(update={"poll_timeout_s": 0.05})
        still = RemoteAssetStatus(job_id="j", status="processing")
        orch, events, _ = _make(fast, statuses=[still])
        await orch.start(_source(), CONTENT)
        await orch.wait()

        assert _status_of(orch)["processing"] == "error"
        assert "did not finish" in events.errors[0]
        assert isinstance(orch.failure, PollTimeoutError)

    @pytest.mark.asyncio
    async def test_processing_stall_finishes_without_error(self, settings):
        stalling = settings.model_copy(
            update={"poll_timeout_s": 0.05, "poll_timeout_behavior": "stall"}
        )
        still = RemoteAssetStatus(job_id="j", status="processing")
        orch, events, _ = _make(stalling, statuses=[still])
        await orch.start(_source(), CONTENT)
        session = await asyncio.wait_for(orch.wait(), timeout=1.0)

        assert session.state == "finished"
        assert session.stalled is True
        assert session.error is None
        assert events.errors == []
        assert events.results == []
        processing = next(s for s in orch.steps() if s.key == "processing")
        assert processing.status == "processing"
        assert processing.detail == "Stopped waiting for video processing"
        assert isinstance(orch.failure, PollTimeoutError)
        assert orch.close() is True
        assert orch.open() is True
        assert orch.state == "idle"
        assert orch.failure is None

    @pytest.mark.asyncio
    async def test_transient_status_errors_recover(self, settings, transient_status_error):
        orch, events, status_service = _make(
            settings, statuses=[transient_status_error, ready_status()]
        )
        await orch.start(_source(), CONTENT)
        await orch.wait()
        assert status_service.requests == 2
        assert len(events.results) == 1

    @pytest.mark.asyncio
    async def test_database_error(self, settings):
        orch, events, _ = _make(settings, videos=FakeVideoStore(fail_create=True))
        await orch.start(_source(), CONTENT)
        session = await orch.wait()

        statuses = _status_of(orch)
        assert statuses["subtitles"] == "completed"
        assert statuses["database"] == "error"
        assert statuses["speaker_identification"] == "pending"
        assert session.error.startswith("Database storage failed")
        assert events.results == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_fails_current_step(self, settings):
        class BrokenStore(FakeVideoStore):
            async def create_video_record(self, fields):
                raise RuntimeError("socket closed")

        orch, events, _ = _make(settings, videos=BrokenStore())
        await orch.start(_source(), CONTENT)
        await orch.wait()
        assert _status_of(orch)["database"] == "error"
        assert events.errors == ["socket closed"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_second_start_rejected(self, settings):
        orch, _, _ = _make(settings)
        await orch.start(_source(), CONTENT)
        with pytest.raises(PipelineError, match="call open"):
            await orch.start(_source(), CONTENT)
        await orch.wait()

    @pytest.mark.asyncio
    async def test_open_and_close_refused_while_running(self, settings):
        orch, _, _ = _make(settings, captions=FakeCaptionStore(MULTI_SPEAKER_VTT))
        await orch.start(_source(), CONTENT)
        await orch.wait()

        assert orch.open() is False
        assert orch.close() is False
        assert orch.awaiting_speakers is True

        await orch.skip_speaker_identification()
        await orch.wait()
        assert orch.close() is True

    @pytest.mark.asyncio
    async def test_open_resets_finished_session(self, settings):
        orch, _, _ = _make(settings)
        await orch.start(_source(), CONTENT)
        first = await orch.wait()

        assert orch.open() is True
        assert orch.open() is True
        assert orch.state == "idle"
        assert orch.overall_progress() == 0
        assert orch.session.session_id != first.session_id

        await orch.start(_source(), CONTENT)
        second = await orch.wait()
        assert second.state == "finished"
