# src/speakers/registry.py — v1
"""Speaker registry — labels derived from a transcript, renamed by a human.

Transcript lines of the form ``<label>: <text>`` define speakers in
first-seen order. Each speaker keeps its original label forever; only the
display name and the screenshot change afterwards.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any

from vidpipe.core.models import Speaker
from vidpipe.speakers.frame_source import FrameSource

logger = logging.getLogger(__name__)

SPEAKER_COLORS: tuple[str, ...] = (
    "blue",
    "green",
    "purple",
    "orange",
    "pink",
    "indigo",
    "yellow",
    "red",
)

_LABEL_RE = re.compile(r"^(Speaker \d+|[^:]+):\s*(.+)$")


class SpeakerRegistry:
    """Holds the speakers of one session.

    Args:
        default_confidence: Confidence assigned to every derived speaker.
    """

    def __init__(self, default_confidence: float = 0.9) -> None:
        self._default_confidence = default_confidence
        self._speakers: dict[str, Speaker] = {}

    def __len__(self) -> int:
        return len(self._speakers)

    def derive_speakers(self, text: str) -> list[Speaker]:
        """Replace the registry content with speakers parsed from ``text``."""
        segments: dict[str, int] = {}
        for line in (text or "").split("\n"):
            if not line.strip():
                continue
            match = _LABEL_RE.match(line)
            if not match:
                continue
            label = match.group(1)
            segments[label] = segments.get(label, 0) + 1

        self._speakers = {}
        for index, (label, count) in enumerate(segments.items()):
            speaker = Speaker(
                id=f"speaker-{index}",
                original_label=label,
                name=label,
                color=SPEAKER_COLORS[index % len(SPEAKER_COLORS)],
                segments=count,
                confidence=self._default_confidence,
            )
            self._speakers[speaker.id] = speaker

        logger.info("Derived %d speakers from transcript", len(self._speakers))
        return self.speakers()

    def speakers(self) -> list[Speaker]:
        """Copies of all speakers in first-seen order."""
        return [s.model_copy() for s in self._speakers.values()]

    def get(self, speaker_id: str) -> Speaker:
        return self._require(speaker_id).model_copy()

    def rename(self, speaker_id: str, name: str) -> bool:
        """Set a display name. Blank names are ignored; returns whether it changed."""
        speaker = self._require(speaker_id)
        new_name = (name or "").strip()
        if not new_name:
            return False
        speaker.name = new_name
        return True

    async def capture_screenshot(self, speaker_id: str, frame_source: FrameSource) -> str:
        """Attach the frame at the source's current position to one speaker.

        Returns:
            The stored ``data:image/jpeg;base64,...`` payload.

        Raises:
            KeyError: Unknown speaker id.
            FrameCaptureError: The frame source could not produce an image.
        """
        speaker = self._require(speaker_id)
        jpeg = await frame_source.capture_frame()
        payload = "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")
        speaker.screenshot = payload
        logger.info(
            "Screenshot captured for %s at %.1fs", speaker_id, frame_source.position_s
        )
        return payload

    def as_payload(self) -> list[dict[str, Any]]:
        """Serialize speakers for the persistence API."""
        return [
            {
                "id": s.id,
                "originalLabel": s.original_label,
                "name": s.name,
                "color": s.color,
                "segments": s.segments,
                "confidence": s.confidence,
                "screenshot": s.screenshot,
            }
            for s in self._speakers.values()
        ]

    def clear(self) -> None:
        self._speakers = {}

    def _require(self, speaker_id: str) -> Speaker:
        try:
            return self._speakers[speaker_id]
        except KeyError:
            raise KeyError(f"Unknown speaker: {speaker_id!r}") from None
