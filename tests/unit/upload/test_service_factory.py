# tests/unit/upload/test_service_factory.py — v1
"""Tests for upload/service_factory.py."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from vidpipe.upload.http_storage_service import HttpStorageService
from vidpipe.upload.service_factory import (
    UnsupportedStorageBackendError,
    create_storage_service,
)


def test_http_backend_is_default(settings):
    assert isinstance(create_storage_service(settings), HttpStorageService)


def test_s3_backend(settings):
    s3_settings = settings.model_copy(update={"upload_backend": "s3", "s3_bucket": "media"})
    with patch("vidpipe.upload.s3_storage_service.boto3.client"):
        service = create_storage_service(s3_settings)
    assert type(service).__name__ == "S3StorageService"


def test_s3_without_bucket(settings):
    s3_settings = settings.model_copy(update={"upload_backend": "s3", "s3_bucket": ""})
    with pytest.raises(ValueError, match="S3_BUCKET"):
        create_storage_service(s3_settings)


def test_unknown_backend(settings):
    bad = settings.model_copy(update={"upload_backend": "ftp"})
    with pytest.raises(UnsupportedStorageBackendError, match="ftp"):
        create_storage_service(bad)
