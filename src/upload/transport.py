# src/upload/transport.py — v1
"""Chunked upload transport.

Moves a local payload to remote storage either in one request or as a
strictly sequential multipart sequence:

  1. begin_upload: pick single vs multipart and obtain a destination
  2. execute: upload the bytes, collect part identifiers, finalize once

A failed multipart sequence is aborted server-side on a best-effort basis
and reported as a TransportError; nothing partial is handed back, the
caller restarts from begin_upload.
"""

from __future__ import annotations

import logging
from typing import Callable

from vidpipe.core.errors import TransportError
from vidpipe.core.models import (
    FileMetadata,
    MultipartUploadPlan,
    UploadOutcome,
    UploadPlanDescriptor,
    expected_part_count,
)
from vidpipe.upload.base_storage_service import BaseStorageService
from vidpipe.upload.source import UploadSource

logger = logging.getLogger(__name__)

# Receives an integer percentage in [0, 100].
ProgressCallback = Callable[[int], None]


class _PercentReporter:
    """Turns byte counts into monotonically non-decreasing floor percentages."""

    def __init__(self, total: int, callback: ProgressCallback | None) -> None:
        self._total = total
        self._callback = callback
        self._last = 0

    def report(self, loaded: int) -> None:
        if self._callback is None or self._total <= 0:
            return
        percent = min(100, max(0, loaded) * 100 // self._total)
        self._last = max(self._last, percent)
        self._callback(self._last)


class ChunkedUploadTransport:
    """Upload a source through a storage service.

    Args:
        storage: Destination provider (backend API or S3).
    """

    def __init__(self, storage: BaseStorageService) -> None:
        self._storage = storage

    async def begin_upload(
        self,
        source: UploadSource,
        size_threshold: int,
        title: str = "",
        description: str = "",
    ) -> UploadPlanDescriptor:
        """Choose the upload method and request a destination.

        Files strictly larger than ``size_threshold`` are requested as
        multipart; the storage answer has the final word on the method.
        """
        requested = "multipart" if source.size > size_threshold else "single"
        file = FileMetadata(
            filename=source.filename,
            size=source.size,
            content_type=source.content_type,
            title=title,
            description=description,
        )

        destination = await self._storage.request_upload_destination(file, requested)

        if destination.method == "multipart" and destination.multipart is None:
            raise TransportError("destination", "multipart destination without a part plan")
        if destination.method == "single" and not destination.url:
            raise TransportError("destination", "single destination without a URL")
        if destination.method != requested:
            logger.info(
                "Storage chose %s upload for %s (requested %s)",
                destination.method, source.filename, requested,
            )

        logger.info(
            "Upload destination %s ready (%s, %d bytes)",
            destination.upload_id, destination.method, source.size,
        )
        return UploadPlanDescriptor(
            method=destination.method, file=file, destination=destination
        )

    async def execute(
        self,
        descriptor: UploadPlanDescriptor,
        source: UploadSource,
        on_progress: ProgressCallback | None = None,
    ) -> UploadOutcome:
        """Upload the bytes described by ``descriptor``."""
        if descriptor.method == "multipart":
            return await self._execute_multipart(descriptor, source, on_progress)
        return await self._execute_single(descriptor, source, on_progress)

    async def upload(
        self,
        source: UploadSource,
        size_threshold: int,
        on_progress: ProgressCallback | None = None,
        title: str = "",
        description: str = "",
    ) -> UploadOutcome:
        """begin_upload followed by execute."""
        descriptor = await self.begin_upload(source, size_threshold, title, description)
        return await self.execute(descriptor, source, on_progress)

    # ------------------------------------------------------------------
    # Single request
    # ------------------------------------------------------------------

    async def _execute_single(
        self,
        descriptor: UploadPlanDescriptor,
        source: UploadSource,
        on_progress: ProgressCallback | None,
    ) -> UploadOutcome:
        destination = descriptor.destination
        reporter = _PercentReporter(source.size, on_progress)

        try:
            payload = source.read_range(0, source.size)
        except OSError as e:
            raise TransportError("single_upload", f"cannot read source: {e}") from e

        try:
            await self._storage.upload_bytes(
                destination.url or "",
                payload,
                source.content_type,
                on_progress=lambda loaded, _total: reporter.report(loaded),
            )
        except TransportError as e:
            raise TransportError("single_upload", e.detail) from e

        logger.info("Single upload complete: %s", destination.upload_id)
        return UploadOutcome(
            upload_id=destination.upload_id,
            job_id=destination.processing_job_id,
            method="single",
        )

    # ------------------------------------------------------------------
    # Multipart
    # ------------------------------------------------------------------

    async def _execute_multipart(
        self,
        descriptor: UploadPlanDescriptor,
        source: UploadSource,
        on_progress: ProgressCallback | None,
    ) -> UploadOutcome:
        announced = descriptor.destination.multipart
        if announced is None:
            raise TransportError("destination", "multipart destination without a part plan")
        plan = announced.model_copy(deep=True)
        plan.parts = []

        expected = expected_part_count(source.size, plan.part_size)
        if plan.total_parts != expected:
            raise TransportError(
                "destination",
                f"part plan announces {plan.total_parts} parts, "
                f"{source.size} bytes at {plan.part_size} per part need {expected}",
            )

        reporter = _PercentReporter(source.size, on_progress)
        part_number = 0
        try:
            for part_number in range(1, plan.total_parts + 1):
                await self._upload_part(plan, source, part_number, reporter)
            plan.validate_complete()
            result = await self._storage.finalize_multipart(plan, descriptor.file)
        except TransportError as e:
            await self._abort(plan)
            if e.part_number is None and e.stage in ("part_destination", "part_upload"):
                raise TransportError(e.stage, e.detail, part_number) from e
            raise
        except OSError as e:
            await self._abort(plan)
            raise TransportError(
                "part_upload", f"cannot read source: {e}", part_number
            ) from e

        logger.info(
            "Multipart upload %s complete: %d parts", plan.upload_id, len(plan.parts)
        )
        return UploadOutcome(
            upload_id=plan.upload_id,
            job_id=result.job_id or descriptor.destination.processing_job_id,
            method="multipart",
            record_ref=result.record_ref,
            public_url=result.public_url,
            parts_uploaded=len(plan.parts),
        )

    async def _upload_part(
        self,
        plan: MultipartUploadPlan,
        source: UploadSource,
        part_number: int,
        reporter: _PercentReporter,
    ) -> None:
        offset = (part_number - 1) * plan.part_size
        length = min(plan.part_size, source.size - offset)

        url = await self._storage.request_part_destination(
            plan, part_number, source.content_type
        )
        payload = source.read_range(offset, length)
        etag = await self._storage.upload_bytes(
            url,
            payload,
            source.content_type,
            on_progress=lambda loaded, _total: reporter.report(offset + loaded),
        )
        if not etag:
            raise TransportError("part_upload", "storage returned no ETag", part_number)

        plan.record_part(part_number, etag)
        reporter.report(offset + length)
        logger.debug("Part %d/%d uploaded (%d bytes)", part_number, plan.total_parts, length)

    async def _abort(self, plan: MultipartUploadPlan) -> None:
        """Best-effort server-side cleanup of a failed multipart sequence."""
        try:
            await self._storage.abort_multipart(plan)
        except TransportError as e:
            logger.warning("Could not abort multipart upload %s: %s", plan.upload_id, e)
