# src/upload/base_storage_service.py — v1
"""Abstract storage service used by the chunked upload transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from vidpipe.core.models import (
    FileMetadata,
    FinalizeResult,
    MultipartUploadPlan,
    UploadDestination,
    UploadMethod,
)

# (bytes_sent, bytes_total)
ByteProgressCallback = Callable[[int, int], None]


class BaseStorageService(ABC):
    """Unified interface for upload destinations (backend API or S3 directly).

    Every method raises TransportError tagged with its stage on failure.
    """

    @abstractmethod
    async def request_upload_destination(
        self, file: FileMetadata, method: UploadMethod
    ) -> UploadDestination:
        """Ask for somewhere to put the file. The answer's method is authoritative."""

    @abstractmethod
    async def request_part_destination(
        self, plan: MultipartUploadPlan, part_number: int, content_type: str
    ) -> str:
        """Return a signed URL for one part."""

    @abstractmethod
    async def upload_bytes(
        self,
        url: str,
        payload: bytes,
        content_type: str,
        on_progress: ByteProgressCallback | None = None,
    ) -> str | None:
        """PUT ``payload`` to ``url`` and return the part identifier (ETag), if any."""

    @abstractmethod
    async def finalize_multipart(
        self, plan: MultipartUploadPlan, file: FileMetadata
    ) -> FinalizeResult:
        """Stitch the ordered parts into one object."""

    @abstractmethod
    async def abort_multipart(self, plan: MultipartUploadPlan) -> None:
        """Discard an unfinished multipart upload."""
