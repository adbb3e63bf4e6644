# src/api/models.py — v1
"""API-level models: VideoInput plus re-exports of the caller-facing types."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, model_validator

from vidpipe.core.models import ContentMetadata, UploadResult
from vidpipe.upload.source import BytesUploadSource, FileUploadSource, UploadSource

__all__ = ["ContentMetadata", "UploadResult", "VideoInput"]


class VideoInput(BaseModel):
    """Video to upload: a path on disk or raw bytes with a filename."""

    content: bytes | Path
    filename: str | None = None
    content_type: str | None = None

    @model_validator(mode="after")
    def require_filename_for_bytes(self) -> VideoInput:
        if isinstance(self.content, bytes) and not self.filename:
            raise ValueError("filename is required when content is bytes")
        return self

    def to_source(self) -> UploadSource:
        if isinstance(self.content, bytes):
            return BytesUploadSource(self.content, self.filename or "", self.content_type)
        return FileUploadSource(self.content, self.content_type)
