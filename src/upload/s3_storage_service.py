# src/upload/s3_storage_service.py — v1
"""S3-compatible storage service (UPLOAD_BACKEND=s3).

Creates multipart uploads and presigned URLs directly with boto3 instead of
going through the backend API. Supports AWS S3, MinIO and other
S3-compatible storage.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from pathlib import PurePosixPath

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

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

MB = 1024 * 1024
GB = 1024 * MB
MAX_OBJECT_SIZE = 5 * 1024 * GB


def recommended_part_size(size: int) -> int:
    """Part size tiers: 100MB, 500MB above 1GB, 1GB above 10GB."""
    if size > 10 * GB:
        return 1 * GB
    if size > 1 * GB:
        return 500 * MB
    return 100 * MB


class S3StorageService(BaseStorageService):
    """Upload straight to a bucket with presigned URLs."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "videos/",
        region: str | None = None,
        endpoint_url: str | None = None,
        url_expiry_s: int = 3600,
        upload_timeout: float = 600.0,
    ) -> None:
        """Initialize S3 storage service.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix for uploaded videos (e.g. "videos/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            url_expiry_s: Lifetime of generated presigned URLs.
            upload_timeout: Per-request timeout for byte uploads.
        """
        kwargs: dict = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._s3 = boto3.client("s3", **kwargs)
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._region = region or "us-east-1"
        self._endpoint_url = endpoint_url
        self._url_expiry_s = url_expiry_s
        self._upload_timeout = upload_timeout

    def _new_key(self, filename: str) -> str:
        """Unique object key keeping the original extension."""
        suffix = PurePosixPath(filename).suffix
        return f"{self._prefix}{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{suffix}"

    def _public_url(self, key: str) -> str:
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def request_upload_destination(
        self, file: FileMetadata, method: UploadMethod
    ) -> UploadDestination:
        if file.size > MAX_OBJECT_SIZE:
            raise TransportError("destination", "File too large. Maximum size is 5TB")

        key = self._new_key(file.filename)
        try:
            if method == "multipart":
                response = self._s3.create_multipart_upload(
                    Bucket=self._bucket,
                    Key=key,
                    ContentType=file.content_type,
                    Metadata={"original-filename": file.filename},
                )
                part_size = recommended_part_size(file.size)
                plan = MultipartUploadPlan(
                    upload_id=response["UploadId"],
                    storage_key=key,
                    part_size=part_size,
                    total_parts=max(1, math.ceil(file.size / part_size)),
                )
                logger.info(
                    "S3 multipart upload s3://%s/%s: %d parts of %d bytes",
                    self._bucket, key, plan.total_parts, part_size,
                )
                return UploadDestination(
                    upload_id=plan.upload_id, method="multipart", multipart=plan
                )

            url = self._s3.generate_presigned_url(
                "put_object",
                Params={"Bucket": self._bucket, "Key": key, "ContentType": file.content_type},
                ExpiresIn=self._url_expiry_s,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError("destination", str(e)) from e

        return UploadDestination(upload_id=key, method="single", url=url)

    async def request_part_destination(
        self, plan: MultipartUploadPlan, part_number: int, content_type: str
    ) -> str:
        try:
            return self._s3.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": self._bucket,
                    "Key": plan.storage_key,
                    "UploadId": plan.upload_id,
                    "PartNumber": part_number,
                },
                ExpiresIn=self._url_expiry_s,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError("part_destination", str(e), part_number) from e

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
            )
        except httpx.HTTPError as e:
            raise TransportError("part_upload", str(e)) from e

    async def finalize_multipart(
        self, plan: MultipartUploadPlan, file: FileMetadata
    ) -> FinalizeResult:
        try:
            response = self._s3.complete_multipart_upload(
                Bucket=self._bucket,
                Key=plan.storage_key,
                UploadId=plan.upload_id,
                MultipartUpload={
                    "Parts": [
                        {"ETag": p.part_identifier, "PartNumber": p.part_number}
                        for p in plan.ordered_parts()
                    ]
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError("finalize", str(e)) from e

        logger.info("S3 multipart upload complete: s3://%s/%s", self._bucket, plan.storage_key)
        return FinalizeResult(
            public_url=response.get("Location") or self._public_url(plan.storage_key),
            job_id=plan.storage_key,
        )

    async def abort_multipart(self, plan: MultipartUploadPlan) -> None:
        try:
            self._s3.abort_multipart_upload(
                Bucket=self._bucket, Key=plan.storage_key, UploadId=plan.upload_id
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError("abort", str(e)) from e
        logger.info("Aborted S3 multipart upload %s", plan.upload_id)
