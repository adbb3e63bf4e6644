# tests/unit/logging/test_unit_handlers.py — v1
"""Tests for logging/handlers.py — session log rotation."""

from __future__ import annotations

import logging

import pytest

from vidpipe.logging.handlers import create_rotating_handler, parse_size


@pytest.mark.parametrize("raw,expected", [
    ("10MB", 10 * 1024**2),
    ("512KB", 512 * 1024),
    ("2GB", 2 * 1024**3),
    (" 5 mb ", 5 * 1024**2),
])
def test_parse_size(raw, expected):
    assert parse_size(raw) == expected


@pytest.mark.parametrize("raw", ["", "10", "10TB", "MB", "ten MB"])
def test_parse_size_rejects(raw):
    with pytest.raises(ValueError, match="Invalid size"):
        parse_size(raw)


def test_handler_limits(tmp_path):
    handler = create_rotating_handler(str(tmp_path / "session.log"), rotation="1MB", retention=3)
    try:
        assert handler.maxBytes == 1024**2
        assert handler.backupCount == 3
    finally:
        handler.close()


def test_handler_writes_into_new_directory(tmp_path):
    log_file = tmp_path / "nested" / "session.log"
    handler = create_rotating_handler(str(log_file))
    handler.setFormatter(logging.Formatter("%(message)s"))
    try:
        handler.emit(logging.LogRecord("vidpipe", logging.INFO, "", 0, "upload started", (), None))
    finally:
        handler.close()
    assert log_file.read_text(encoding="utf-8").strip() == "upload started"
