# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from vidpipe.core.errors import IncompletePartsError

# === PIPELINE STEPS ===

StepKey = Literal[
    "upload",
    "processing",
    "subtitles",
    "database",
    "speaker_identification",
    "completion",
]
StepStatus = Literal["pending", "processing", "completed", "error"]

# Total order of the pipeline; step N may start only once N-1 is completed.
STEP_ORDER: tuple[StepKey, ...] = (
    "upload",
    "processing",
    "subtitles",
    "database",
    "speaker_identification",
    "completion",
)

STEP_TITLES: dict[str, tuple[str, str]] = {
    "upload": ("Video Upload", "Uploading video file to storage"),
    "processing": ("Video Processing", "Transcoding video and generating thumbnails"),
    "subtitles": ("Subtitle Generation", "Generating captions and transcript"),
    "database": ("Database Storage", "Saving video metadata to database"),
    "speaker_identification": (
        "Speaker Identification",
        "Identifying and naming speakers in the video",
    ),
    "completion": ("Finalization", "Completing upload process"),
}


class ProcessingStep(BaseModel):
    """One stage of the upload pipeline as seen by observers."""

    key: StepKey
    title: str
    description: str = ""
    status: StepStatus = "pending"
    progress: int | None = Field(default=None, ge=0, le=100)
    detail: str | None = None
    started_at: float | None = None
    duration_s: float | None = None
    skipped: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "error")


# === UPLOAD ===

UploadMethod = Literal["single", "multipart"]


class FileMetadata(BaseModel):
    """Descriptor of the file sent to the storage service."""

    filename: str
    size: int = Field(ge=0)
    content_type: str = "application/octet-stream"
    title: str = ""
    description: str = ""


class UploadedPart(BaseModel):
    """Identifier returned by storage for one uploaded part."""

    part_number: int = Field(ge=1)
    part_identifier: str


def expected_part_count(total_size: int, part_size: int) -> int:
    """Number of parts for a file of ``total_size`` split at ``part_size``."""
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    return max(1, math.ceil(total_size / part_size))


class MultipartUploadPlan(BaseModel):
    """Server-assigned multipart layout plus the parts uploaded so far."""

    upload_id: str
    storage_key: str
    part_size: int = Field(gt=0)
    total_parts: int = Field(ge=1)
    parts: list[UploadedPart] = Field(default_factory=list)

    def record_part(self, part_number: int, part_identifier: str) -> UploadedPart:
        part = UploadedPart(part_number=part_number, part_identifier=part_identifier)
        self.parts.append(part)
        return part

    def ordered_parts(self) -> list[UploadedPart]:
        return sorted(self.parts, key=lambda p: p.part_number)

    def validate_complete(self) -> None:
        """Raise IncompletePartsError unless parts are exactly 1..total_parts."""
        counts = Counter(p.part_number for p in self.parts)
        duplicates = sorted(n for n, c in counts.items() if c > 1)
        missing = [n for n in range(1, self.total_parts + 1) if n not in counts]
        extra = sorted(n for n in counts if n > self.total_parts)
        if missing or duplicates or extra:
            raise IncompletePartsError(
                expected=self.total_parts,
                missing=missing,
                duplicates=duplicates + extra,
            )


class UploadDestination(BaseModel):
    """Where the bytes go, as answered by the storage service."""

    upload_id: str
    method: UploadMethod
    url: str | None = None
    multipart: MultipartUploadPlan | None = None
    job_id: str | None = None

    @property
    def processing_job_id(self) -> str:
        """Identifier the remote processor is polled with."""
        return self.job_id or self.upload_id


class UploadPlanDescriptor(BaseModel):
    """Result of begin_upload: chosen method plus destination."""

    method: UploadMethod
    file: FileMetadata
    destination: UploadDestination


class FinalizeResult(BaseModel):
    """Storage response to a completed multipart sequence."""

    record_ref: str | None = None
    public_url: str | None = None
    job_id: str | None = None


class UploadOutcome(BaseModel):
    """What the transport hands back after a successful upload."""

    upload_id: str
    job_id: str
    method: UploadMethod
    record_ref: str | None = None
    public_url: str | None = None
    parts_uploaded: int = 0


# === REMOTE PROCESSING ===

AssetState = Literal["uploading", "processing", "ready", "errored"]


class ThumbnailVariant(BaseModel):
    time: float
    url: str


class ThumbnailSet(BaseModel):
    small: str | None = None
    medium: str | None = None
    large: str | None = None
    variants: list[ThumbnailVariant] = Field(default_factory=list)


class CaptionRefs(BaseModel):
    """Locations of the generated caption document."""

    vtt_url: str
    srt_url: str | None = None


class RemoteAssetStatus(BaseModel):
    """One status answer from the remote processor."""

    job_id: str
    status: AssetState
    asset_id: str | None = None
    playback_id: str | None = None
    error: str | None = None
    thumbnails: ThumbnailSet | None = None
    captions: CaptionRefs | None = None

    @property
    def is_ready(self) -> bool:
        return self.status == "ready" and bool(self.asset_id) and bool(self.playback_id)

    @property
    def is_errored(self) -> bool:
        return self.status == "errored"


# === TRANSCRIPT / SPEAKERS ===


class TranscriptData(BaseModel):
    """Plain transcript derived from a caption document. Immutable."""

    model_config = ConfigDict(frozen=True)

    text: str
    speaker_count: int = Field(ge=1)
    caption_url: str | None = None
    cue_lines: tuple[str, ...] = ()


class Speaker(BaseModel):
    """A labeled speaker the user may rename and illustrate."""

    id: str
    original_label: str
    name: str
    color: str
    segments: int = 0
    confidence: float = 0.9
    screenshot: str | None = None


# === SESSION INPUT / OUTPUT ===


class ContentMetadata(BaseModel):
    """Caller-supplied descriptive fields for the video record."""

    title: str
    description: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    visibility: Literal["public", "private", "unlisted"] = "private"


class VideoRecordFields(BaseModel):
    """Payload persisted once processing is done."""

    title: str
    description: str = ""
    category: str = ""
    tags: str = ""
    visibility: str = "private"
    status: Literal["published", "processing"]
    upload_id: str
    asset_id: str | None = None
    playback_id: str | None = None
    thumbnails: ThumbnailSet | None = None
    captions: CaptionRefs | None = None
    speaker_count: int = 1
    upload_method: str = "single"


class UploadResult(BaseModel):
    """Caller-facing summary of a finished session."""

    record_id: str
    upload_id: str
    asset_id: str | None = None
    playback_id: str | None = None
    thumbnails: ThumbnailSet | None = None
    captions: CaptionRefs | None = None
    transcript: TranscriptData | None = None
    speakers: list[Speaker] = Field(default_factory=list)
    duration_s: int = 0
