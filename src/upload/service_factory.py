# src/upload/service_factory.py — v1
"""Factory: instantiate the storage service from configuration."""

from __future__ import annotations

from vidpipe.config.settings import Settings
from vidpipe.upload.base_storage_service import BaseStorageService
from vidpipe.upload.http_storage_service import HttpStorageService


class UnsupportedStorageBackendError(ValueError):
    """Raised when UPLOAD_BACKEND names an unknown backend."""


def create_storage_service(settings: Settings) -> BaseStorageService:
    """Create the storage service selected by UPLOAD_BACKEND.

    Raises:
        UnsupportedStorageBackendError: If the backend is not supported.
        ValueError: If UPLOAD_BACKEND=s3 without S3_BUCKET.
    """
    if settings.upload_backend == "http":
        return HttpStorageService(
            base_url=settings.api_base_url,
            headers=settings.auth_headers,
            timeout=settings.http_timeout_s,
        )

    if settings.upload_backend == "s3":
        from vidpipe.upload.s3_storage_service import S3StorageService

        if not settings.s3_bucket:
            raise ValueError("S3_BUCKET must be set when UPLOAD_BACKEND=s3")
        return S3StorageService(
            bucket=settings.s3_bucket,
            prefix=settings.s3_key_prefix,
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
            url_expiry_s=settings.presigned_url_expiry_s,
        )

    raise UnsupportedStorageBackendError(
        f"Unsupported upload backend: {settings.upload_backend!r}"
    )
