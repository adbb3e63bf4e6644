# src/main.py — v1
"""CLI entry point — upload and captions commands.

Usage:
    vidpipe upload <file> --title TITLE [options]
    vidpipe captions <file.vtt>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from vidpipe.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vidpipe",
        description=f"vidpipe v{__version__} - Video upload pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- upload ---
    p_upload = subparsers.add_parser("upload", help="Upload and process a video")
    p_upload.add_argument("file", type=Path, help="Path to video file")
    p_upload.add_argument("--title", default=None, help="Video title (default: file name)")
    p_upload.add_argument("--description", default="", help="Video description")
    p_upload.add_argument("--category", default="", help="Video category")
    p_upload.add_argument(
        "--tags", default="",
        help="Comma-separated tags",
    )
    p_upload.add_argument(
        "--visibility", choices=["public", "private", "unlisted"], default=None,
        help="Visibility (default: DEFAULT_VISIBILITY setting)",
    )
    p_upload.add_argument(
        "--name-speakers", action="store_true",
        help="Prompt for speaker names when several speakers are detected",
    )
    p_upload.set_defaults(func=_cmd_upload)

    # --- captions ---
    p_captions = subparsers.add_parser(
        "captions", help="Parse a WebVTT file and estimate speakers",
    )
    p_captions.add_argument("file", type=Path, help="Path to .vtt file")
    p_captions.set_defaults(func=_cmd_captions)

    return parser


async def _cmd_upload(args: argparse.Namespace) -> int:
    """Upload a single video and drive it through the pipeline."""
    from vidpipe.api.facade import upload_video
    from vidpipe.api.models import VideoInput
    from vidpipe.config.settings import Settings
    from vidpipe.core.errors import PipelineError
    from vidpipe.core.models import ContentMetadata

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    settings = Settings()
    if settings.log_file:
        from vidpipe.logging.logger import setup_logging

        setup_logging(
            level="DEBUG" if args.verbose else settings.log_level,
            log_format=settings.log_format,
            log_file=str(settings.log_file),
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )

    content = ContentMetadata(
        title=args.title or file_path.stem,
        description=args.description,
        category=args.category or settings.default_category,
        tags=_parse_tags(args.tags),
        visibility=args.visibility or settings.default_visibility,
    )

    handler = (
        _speaker_prompt(file_path, settings.ffmpeg_binary) if args.name_speakers else None
    )
    try:
        result = await upload_video(
            VideoInput(content=file_path),
            content,
            settings=settings,
            speaker_handler=handler,
            on_progress=_ProgressPrinter(),
        )
    except PipelineError as e:
        print(f"\nUpload failed: {e}")
        return 1

    print("\nUpload complete:")
    print(f"  Record ID:    {result.record_id}")
    print(f"  Upload ID:    {result.upload_id}")
    print(f"  Asset ID:     {result.asset_id}")
    print(f"  Playback ID:  {result.playback_id}")
    if result.captions:
        print(f"  Captions:     {result.captions.vtt_url}")
    if result.speakers:
        names = ", ".join(s.name for s in result.speakers)
        print(f"  Speakers:     {names}")
    print(f"  Duration:     {result.duration_s}s")
    return 0


async def _cmd_captions(args: argparse.Namespace) -> int:
    """Print the transcript of a caption file and its speaker estimate."""
    from vidpipe.captions.parser import build_transcript
    from vidpipe.speakers.registry import SpeakerRegistry

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    transcript = build_transcript(file_path.read_text(encoding="utf-8"), str(file_path))
    registry = SpeakerRegistry()
    speakers = registry.derive_speakers("\n".join(transcript.cue_lines))

    print(f"\nTranscript ({len(transcript.text)} chars):")
    print(f"  {transcript.text}")
    print(f"  Estimated speakers: {transcript.speaker_count}")
    for speaker in speakers:
        print(f"  - {speaker.original_label}: {speaker.segments} segments")
    return 0


def _speaker_prompt(media: Path, ffmpeg_binary: str):
    """Build a speaker handler that asks for names and screenshot positions."""
    from vidpipe.speakers.frame_source import FfmpegFrameSource, FrameCaptureError

    frames = FfmpegFrameSource(str(media), ffmpeg_binary=ffmpeg_binary, width=320)

    async def prompt(registry) -> bool:
        speakers = registry.speakers()
        if not speakers:
            return False
        print("\nSeveral speakers detected. Press Enter to keep a label or skip a screenshot.")
        for speaker in speakers:
            answer = await asyncio.to_thread(
                input, f"  Name for {speaker.original_label!r} [{speaker.name}]: "
            )
            registry.rename(speaker.id, answer)

            position = await asyncio.to_thread(input, "  Screenshot at second: ")
            if not position.strip():
                continue
            try:
                frames.seek(float(position))
                await registry.capture_screenshot(speaker.id, frames)
            except ValueError:
                print(f"  Not a number: {position!r}")
            except FrameCaptureError as e:
                print(f"  Screenshot failed: {e}")
        return True

    return prompt


def _parse_tags(raw: str) -> list[str]:
    return [t.strip() for t in raw.split(",") if t.strip()]


class _ProgressPrinter:
    """Print a line whenever the active step detail changes."""

    def __init__(self) -> None:
        self._last: str | None = None

    def __call__(self, steps) -> None:
        active = next((s for s in steps if s.status in ("processing", "error")), None)
        if active is None or not active.detail:
            return
        line = f"[{active.title}] {active.detail}"
        if line != self._last:
            self._last = line
            print(line, file=sys.stderr)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from vidpipe.logging.logger import setup_logging

    setup_logging(level="DEBUG" if verbose else "INFO", log_format="text")
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
