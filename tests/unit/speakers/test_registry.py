# tests/unit/speakers/test_registry.py — v1
"""Tests for speakers/registry.py — derivation, renaming and screenshots."""

from __future__ import annotations

import base64

import pytest

from vidpipe.speakers.frame_source import FrameCaptureError
from vidpipe.speakers.registry import SPEAKER_COLORS, SpeakerRegistry

TRANSCRIPT = "\n".join([
    "Speaker 1: Welcome to the lecture.",
    "Speaker 2: Thanks for having me.",
    "Speaker 1: Let's begin.",
    "",
    "no label on this line",
    "Moderator: Questions at the end.",
])


class StubFrameSource:
    def __init__(self, frame: bytes = b"\xff\xd8jpeg", position_s: float = 12.5, fail: bool = False):
        self._frame = frame
        self._position_s = position_s
        self._fail = fail
        self.calls = 0

    @property
    def position_s(self) -> float:
        return self._position_s

    async def capture_frame(self) -> bytes:
        self.calls += 1
        if self._fail:
            raise FrameCaptureError("no frame")
        return self._frame


class TestDeriveSpeakers:
    def test_first_seen_order_and_segments(self):
        speakers = SpeakerRegistry().derive_speakers(TRANSCRIPT)
        assert [s.original_label for s in speakers] == ["Speaker 1", "Speaker 2", "Moderator"]
        assert [s.segments for s in speakers] == [2, 1, 1]
        assert [s.id for s in speakers] == ["speaker-0", "speaker-1", "speaker-2"]

    def test_defaults(self):
        speaker = SpeakerRegistry().derive_speakers(TRANSCRIPT)[0]
        assert speaker.name == speaker.original_label
        assert speaker.confidence == 0.9
        assert speaker.color == SPEAKER_COLORS[0]
        assert speaker.screenshot is None

    def test_custom_confidence(self):
        speaker = SpeakerRegistry(default_confidence=0.5).derive_speakers(TRANSCRIPT)[0]
        assert speaker.confidence == 0.5

    def test_palette_cycles(self):
        text = "\n".join(f"Person {i}: hello" for i in range(10))
        speakers = SpeakerRegistry().derive_speakers(text)
        assert speakers[8].color == SPEAKER_COLORS[0]
        assert speakers[9].color == SPEAKER_COLORS[1]

    def test_no_labels(self):
        registry = SpeakerRegistry()
        assert registry.derive_speakers("just words here") == []
        assert len(registry) == 0

    def test_label_requires_text_after_colon(self):
        assert SpeakerRegistry().derive_speakers("Speaker 1:") == []

    def test_rederive_replaces(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        registry.derive_speakers("Host: hi")
        assert [s.original_label for s in registry.speakers()] == ["Host"]


class TestRename:
    def test_rename_trims(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        assert registry.rename("speaker-0", "  Prof. Ada  ") is True
        speaker = registry.get("speaker-0")
        assert speaker.name == "Prof. Ada"
        assert speaker.original_label == "Speaker 1"

    @pytest.mark.parametrize("blank", ["", "   ", "\t"])
    def test_blank_name_ignored(self, blank):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        assert registry.rename("speaker-1", blank) is False
        assert registry.get("speaker-1").name == "Speaker 2"

    def test_unknown_speaker(self):
        with pytest.raises(KeyError, match="speaker-9"):
            SpeakerRegistry().rename("speaker-9", "X")

    def test_speakers_returns_copies(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        registry.speakers()[0].name = "mutated"
        assert registry.get("speaker-0").name == "Speaker 1"


class TestCaptureScreenshot:
    @pytest.mark.asyncio
    async def test_stores_data_url_on_one_speaker(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        payload = await registry.capture_screenshot("speaker-1", StubFrameSource())

        expected = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8jpeg").decode()
        assert payload == expected
        assert registry.get("speaker-1").screenshot == expected
        assert registry.get("speaker-0").screenshot is None
        assert registry.get("speaker-2").screenshot is None

    @pytest.mark.asyncio
    async def test_failure_leaves_speaker_unchanged(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        with pytest.raises(FrameCaptureError):
            await registry.capture_screenshot("speaker-0", StubFrameSource(fail=True))
        assert registry.get("speaker-0").screenshot is None

    @pytest.mark.asyncio
    async def test_unknown_speaker_does_not_capture(self):
        source = StubFrameSource()
        with pytest.raises(KeyError):
            await SpeakerRegistry().capture_screenshot("speaker-0", source)
        assert source.calls == 0


class TestPayload:
    def test_as_payload_camel_case(self):
        registry = SpeakerRegistry()
        registry.derive_speakers("Host: hi")
        registry.rename("speaker-0", "Dana")
        assert registry.as_payload() == [{
            "id": "speaker-0",
            "originalLabel": "Host",
            "name": "Dana",
            "color": "blue",
            "segments": 1,
            "confidence": 0.9,
            "screenshot": None,
        }]

    def test_clear(self):
        registry = SpeakerRegistry()
        registry.derive_speakers(TRANSCRIPT)
        registry.clear()
        assert registry.speakers() == []
