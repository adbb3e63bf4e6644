# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides settings tuned for fast polling and instances of the in-memory
service fakes from fakes.py. No network access.
"""

from __future__ import annotations

import pytest

from fakes import FakeCaptionStore, FakeStorageService, FakeVideoStore
from vidpipe.config.settings import Settings
from vidpipe.core.errors import RemoteStatusError
from vidpipe.logging.context import clear_context


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def settings() -> Settings:
    """Settings with fast polling and no completion delay."""
    return Settings(
        _env_file=None,
        poll_interval_s=0.01,
        poll_timeout_s=2.0,
        completion_delay_s=0.0,
        multipart_threshold_bytes=100,
    )


@pytest.fixture
def fake_storage() -> FakeStorageService:
    return FakeStorageService()


@pytest.fixture
def fake_caption_store() -> FakeCaptionStore:
    return FakeCaptionStore()


@pytest.fixture
def fake_video_store() -> FakeVideoStore:
    return FakeVideoStore()


@pytest.fixture
def transient_status_error() -> RemoteStatusError:
    return RemoteStatusError("GET /api/mux/upload-status/job-1 failed: 502")
