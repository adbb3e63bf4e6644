# src/upload/http_storage_service.py — v1
"""Storage service backed by the application's REST API (UPLOAD_BACKEND=http).

Endpoints:
    POST   /api/videos/upload-perfect-stepped   initiate (server picks method)
    PUT    /api/videos/multipart-upload         signed URL for one part
    PATCH  /api/videos/multipart-upload         complete multipart upload
    DELETE /api/videos/multipart-upload         abort multipart upload
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vidpipe.core.errors import TransportError
from vidpipe.core.models import (
    FileMetadata,
    FinalizeResult,
    MultipartUploadPlan,
    UploadDestination,
    UploadMethod,
)
from vidpipe.upload.base_storage_service import BaseStorageService, ByteProgressCallback
from vidpipe.upload.presigned import put_presigned

logger = logging.getLogger(__name__)

INITIATE_PATH = "/api/videos/upload-perfect-stepped"
MULTIPART_PATH = "/api/videos/multipart-upload"


class HttpStorageService(BaseStorageService):
    """Talk to the backend that owns the bucket and hands out signed URLs.

    Args:
        base_url: Backend root URL (no trailing slash).
        headers: Extra headers (authorization) for backend calls.
        timeout: Per-request timeout for backend calls.
        upload_timeout: Per-request timeout for byte uploads.
        transport: Optional httpx transport (tests inject MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        upload_timeout: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._upload_timeout = upload_timeout
        self._transport = transport

    async def _call(
        self, stage: str, method: str, path: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(stage, _error_detail(e.response)) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(stage, str(e)) from e

        if not isinstance(data, dict):
            raise TransportError(stage, "unexpected response body")
        if data.get("success") is False:
            raise TransportError(stage, data.get("error") or "request rejected")
        return data

    async def request_upload_destination(
        self, file: FileMetadata, method: UploadMethod
    ) -> UploadDestination:
        data = await self._call(
            "destination",
            "POST",
            INITIATE_PATH,
            {
                "uploadMethod": "initiate",
                "preferredMethod": "multipart" if method == "multipart" else "regular",
                "filename": file.filename,
                "size": file.size,
                "mimeType": file.content_type,
                "title": file.title,
                "description": file.description,
            },
        )
        info = data.get("uploadInfo") or {}

        if data.get("uploadMethod") == "multipart":
            try:
                plan = MultipartUploadPlan(
                    upload_id=info["uploadId"],
                    storage_key=info["s3Key"],
                    part_size=info["partSize"],
                    total_parts=info["totalParts"],
                )
            except (KeyError, ValueError) as e:
                raise TransportError("destination", f"invalid part plan: {e}") from e
            logger.info(
                "Multipart destination %s: %d parts of %d bytes",
                plan.upload_id, plan.total_parts, plan.part_size,
            )
            return UploadDestination(
                upload_id=plan.upload_id,
                method="multipart",
                multipart=plan,
                job_id=data.get("processingJobId"),
            )

        url = info.get("presignedUrl") or info.get("url")
        upload_id = info.get("uploadId") or data.get("videoId") or info.get("s3Key")
        if not url or not upload_id:
            raise TransportError("destination", "no upload URL in response")
        return UploadDestination(
            upload_id=str(upload_id),
            method="single",
            url=url,
            job_id=data.get("processingJobId"),
        )

    async def request_part_destination(
        self, plan: MultipartUploadPlan, part_number: int, content_type: str
    ) -> str:
        data = await self._call(
            "part_destination",
            "PUT",
            MULTIPART_PATH,
            {
                "uploadId": plan.upload_id,
                "s3Key": plan.storage_key,
                "partNumber": part_number,
                "contentType": content_type,
            },
        )
        url = data.get("presignedUrl")
        if not url:
            raise TransportError(
                "part_destination", "no presigned URL in response", part_number
            )
        return url

    async def upload_bytes(
        self,
        url: str,
        payload: bytes,
        content_type: str,
        on_progress: ByteProgressCallback | None = None,
    ) -> str | None:
        try:
            return await put_presigned(
                url,
                payload,
                content_type,
                on_progress=on_progress,
                timeout=self._upload_timeout,
                transport=self._transport,
            )
        except httpx.HTTPError as e:
            raise TransportError("part_upload", str(e)) from e

    async def finalize_multipart(
        self, plan: MultipartUploadPlan, file: FileMetadata
    ) -> FinalizeResult:
        data = await self._call(
            "finalize",
            "PATCH",
            MULTIPART_PATH,
            {
                "uploadId": plan.upload_id,
                "s3Key": plan.storage_key,
                "parts": [
                    {"partNumber": p.part_number, "etag": p.part_identifier}
                    for p in plan.ordered_parts()
                ],
                "filename": file.filename,
                "fileSize": file.size,
                "mimeType": file.content_type,
                "title": file.title,
                "description": file.description,
            },
        )
        video = data.get("video") or {}
        record_ref = data.get("videoId") or video.get("id")
        return FinalizeResult(
            record_ref=str(record_ref) if record_ref is not None else None,
            public_url=data.get("cloudFrontUrl") or data.get("publicUrl"),
            job_id=data.get("processingJobId") or data.get("muxUploadId"),
        )

    async def abort_multipart(self, plan: MultipartUploadPlan) -> None:
        await self._call(
            "abort",
            "DELETE",
            MULTIPART_PATH,
            {"uploadId": plan.upload_id, "s3Key": plan.storage_key},
        )
        logger.info("Aborted multipart upload %s", plan.upload_id)


def _error_detail(response: httpx.Response) -> str:
    """Best error message a backend answer offers."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        details = body.get("details")
        if message and details:
            return f"{message}: {details}"
        if message:
            return str(message)
    return f"HTTP {response.status_code}"
