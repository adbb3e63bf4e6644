# src/speakers/frame_source.py — v1
"""Still-frame capture for speaker screenshots.

A frame source knows a video and a playback position and returns one JPEG
frame at that position. FfmpegFrameSource shells out to ffmpeg and reads
the encoded image from stdout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

from vidpipe.core.errors import PipelineError

logger = logging.getLogger(__name__)


class FrameCaptureError(PipelineError):
    """A still frame could not be extracted."""


@runtime_checkable
class FrameSource(Protocol):
    """Anything that can hand back the current frame as JPEG bytes."""

    @property
    def position_s(self) -> float: ...

    async def capture_frame(self) -> bytes: ...


class FfmpegFrameSource:
    """Grab a single JPEG frame from a local file or stream URL via ffmpeg.

    Args:
        media_url: Local path or HTTP(S)/HLS URL of the video.
        position_s: Initial playback position in seconds.
        ffmpeg_binary: ffmpeg executable name or path.
        jpeg_quality: ffmpeg ``-q:v`` value (2 best, 31 worst).
        width: Optional output width; height keeps the aspect ratio.
    """

    def __init__(
        self,
        media_url: str,
        position_s: float = 0.0,
        ffmpeg_binary: str = "ffmpeg",
        jpeg_quality: int = 4,
        width: int | None = None,
    ) -> None:
        self._media_url = media_url
        self._position_s = max(0.0, position_s)
        self._ffmpeg = ffmpeg_binary
        self._quality = jpeg_quality
        self._width = width

    @property
    def position_s(self) -> float:
        return self._position_s

    def seek(self, position_s: float) -> None:
        """Move the playback position used by the next capture."""
        self._position_s = max(0.0, position_s)

    def build_command(self) -> list[str]:
        cmd = [
            self._ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-ss", f"{self._position_s:.3f}",
            "-i", self._media_url,
            "-frames:v", "1",
            "-q:v", str(self._quality),
        ]
        if self._width:
            cmd += ["-vf", f"scale={self._width}:-2"]
        cmd += ["-f", "image2pipe", "-vcodec", "mjpeg", "pipe:1"]
        return cmd

    async def capture_frame(self) -> bytes:
        cmd = self.build_command()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FrameCaptureError(f"ffmpeg not found: {self._ffmpeg}") from e

        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise FrameCaptureError(
                f"ffmpeg exited with {process.returncode} at {self._position_s:.1f}s: {message}"
            )
        if not stdout:
            raise FrameCaptureError(f"ffmpeg produced no frame at {self._position_s:.1f}s")

        logger.debug(
            "Captured frame at %.1fs from %s (%d bytes)",
            self._position_s, self._media_url, len(stdout),
        )
        return stdout
