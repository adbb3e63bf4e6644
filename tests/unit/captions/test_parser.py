# tests/unit/captions/test_parser.py — v1
"""Tests for captions/parser.py — VTT reduction and speaker heuristic."""

from __future__ import annotations

import pytest

from fakes import MULTI_SPEAKER_VTT, SINGLE_SPEAKER_VTT
from vidpipe.captions.parser import (
    build_transcript,
    estimate_speaker_count,
    extract_cue_lines,
    parse_caption_document,
)


class TestParseCaptionDocument:
    def test_single_cue(self):
        doc = "WEBVTT\n\n00:00:00.000 --> 00:00:02.000\nHello world\n"
        assert parse_caption_document(doc) == "Hello world"

    def test_multiple_cues_joined_with_spaces(self):
        assert parse_caption_document(SINGLE_SPEAKER_VTT) == "Hello world. This is a short clip."

    def test_header_with_metadata_dropped(self):
        doc = "WEBVTT - generated\nKind: captions\n\n00:00:01.000 --> 00:00:02.000\nHi"
        assert parse_caption_document(doc) == "Kind: captions Hi"

    def test_timestamp_prefixed_lines_dropped(self):
        doc = "WEBVTT\n00:00:01.500 align:start position:0%\nkept"
        assert parse_caption_document(doc) == "kept"

    def test_arrow_lines_dropped_even_without_timestamp(self):
        doc = "WEBVTT\n\n01:02.000 --> 01:03.000\ntext"
        assert parse_caption_document(doc) == "text"

    def test_lines_trimmed(self):
        doc = "WEBVTT\n\n00:00:00.000 --> 00:00:01.000\n   spaced out   \n\t\n"
        assert parse_caption_document(doc) == "spaced out"

    def test_empty_document(self):
        assert parse_caption_document("") == ""

    def test_only_structure(self):
        assert parse_caption_document("WEBVTT\n\n00:00:00.000 --> 00:00:01.000\n\n") == ""

    def test_windows_line_endings(self):
        doc = "WEBVTT\r\n\r\n00:00:00.000 --> 00:00:01.000\r\nHello\r\n"
        assert parse_caption_document(doc) == "Hello"

    def test_non_text_returned_unchanged(self):
        sentinel = object()
        assert parse_caption_document(sentinel) is sentinel  # type: ignore[arg-type]

    def test_none_returned_unchanged(self):
        assert parse_caption_document(None) is None  # type: ignore[arg-type]


class TestExtractCueLines:
    def test_keeps_order_and_labels(self):
        lines = extract_cue_lines(MULTI_SPEAKER_VTT)
        assert len(lines) == 20
        assert lines[0] == "Alice: Sentence number 0."
        assert lines[1] == "Bob: Sentence number 1."


class TestEstimateSpeakerCount:
    @pytest.mark.parametrize("text,expected", [
        ("", 1),
        ("Hello. How are you?", 1),
        ("One. Two. Three.", 1),
        ("One. Two. Three. Four. Five. Six.", 2),
        ("A. B. C. D. E. F. G. H. I.", 2),
    ])
    def test_tiers(self, text, expected):
        assert estimate_speaker_count(text) == expected

    def test_twelve_sentences_is_one(self):
        text = " ".join(f"Sentence {i}." for i in range(12))
        assert estimate_speaker_count(text) == 1

    def test_sixteen_sentences_is_two(self):
        text = " ".join(f"Sentence {i}." for i in range(16))
        assert estimate_speaker_count(text) == 2

    def test_capped_at_three(self):
        text = " ".join(f"Sentence {i}!" for i in range(200))
        assert estimate_speaker_count(text) == 3

    def test_runs_of_punctuation_count_once(self):
        assert estimate_speaker_count("Wait...!? What?! Really??") == 1

    def test_whitespace_fragments_ignored(self):
        assert estimate_speaker_count(" . . . ") == 1

    def test_none_is_one(self):
        assert estimate_speaker_count(None) == 1  # type: ignore[arg-type]


class TestBuildTranscript:
    def test_single_speaker(self):
        transcript = build_transcript(SINGLE_SPEAKER_VTT, "https://cdn/t.vtt")
        assert transcript.text == "Hello world. This is a short clip."
        assert transcript.speaker_count == 1
        assert transcript.caption_url == "https://cdn/t.vtt"
        assert transcript.cue_lines == ("Hello world.", "This is a short clip.")

    def test_multi_speaker(self):
        transcript = build_transcript(MULTI_SPEAKER_VTT)
        # 20 sentences → min(3, ceil(20/15)) = 2
        assert transcript.speaker_count == 2
