# src/captions/parser.py — v1
"""WebVTT caption parsing and speaker-count heuristic.

Pure functions, no I/O. ``parse_caption_document`` strips cue timing and
headers and returns the spoken text as a single line;
``estimate_speaker_count`` guesses how many voices a transcript holds from
its sentence count.
"""

from __future__ import annotations

import logging
import math
import re

from vidpipe.core.models import TranscriptData

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(r"^\d{2}:\d{2}:\d{2}\.\d{3}")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def _is_cue_text(line: str) -> bool:
    """True for lines that carry spoken text rather than VTT structure."""
    if not line:
        return False
    if line.startswith("WEBVTT"):
        return False
    if _TIMESTAMP_RE.match(line):
        return False
    return "-->" not in line


def extract_cue_lines(document: str) -> list[str]:
    """Return trimmed cue text lines in document order."""
    return [
        stripped
        for stripped in (raw.strip() for raw in document.splitlines())
        if _is_cue_text(stripped)
    ]


def parse_caption_document(document: str) -> str:
    """Reduce a WebVTT document to plain transcript text.

    Header lines, timestamp lines, cue arrows and blank lines are dropped;
    the remaining lines are joined with single spaces. Input that cannot be
    processed is returned unchanged.
    """
    try:
        return " ".join(extract_cue_lines(document)).strip()
    except (AttributeError, TypeError):
        logger.warning("Caption document is not text, returning it unchanged")
        return document


def estimate_speaker_count(text: str) -> int:
    """Estimate the number of speakers from sentence count.

    Fewer than 3 sentences → 1; 3 to 9 → min(2, ceil(n/5));
    10 or more → min(3, ceil(n/15)). Never below 1.
    """
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text or "") if s.strip()]
    n = len(sentences)
    if n < 3:
        return 1
    if n < 10:
        return max(1, min(2, math.ceil(n / 5)))
    return max(1, min(3, math.ceil(n / 15)))


def build_transcript(document: str, caption_url: str | None = None) -> TranscriptData:
    """Parse a caption document into TranscriptData with a speaker estimate."""
    text = parse_caption_document(document)
    if not isinstance(text, str):
        text = ""
    cue_lines = extract_cue_lines(document) if isinstance(document, str) else []
    return TranscriptData(
        text=text,
        speaker_count=estimate_speaker_count(text),
        caption_url=caption_url,
        cue_lines=tuple(cue_lines),
    )
