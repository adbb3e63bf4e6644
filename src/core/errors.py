# src/core/errors.py — v1
"""Pipeline error taxonomy.

Fatal errors (transport, remote processing, poll timeout, persistence)
halt the session and mark the failing step as ``error``. CaptionFetchError
is the only one the orchestrator tolerates.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the upload pipeline."""


class TransportError(PipelineError):
    """Upload failed at a specific transport stage.

    Stages: destination, part_destination, part_upload, finalize,
    single_upload.
    """

    def __init__(self, stage: str, message: str, part_number: int | None = None):
        self.stage = stage
        self.part_number = part_number
        self.detail = message
        where = f" (part {part_number})" if part_number is not None else ""
        super().__init__(f"Upload failed at {stage}{where}: {message}")


class IncompletePartsError(TransportError):
    """Uploaded parts do not form the contiguous sequence 1..N."""

    def __init__(self, expected: int, missing: list[int], duplicates: list[int]):
        self.expected = expected
        self.missing = missing
        self.duplicates = duplicates
        problems = []
        if missing:
            problems.append(f"missing parts {missing}")
        if duplicates:
            problems.append(f"duplicate parts {duplicates}")
        super().__init__(
            "finalize",
            f"expected {expected} parts, " + ", ".join(problems or ["unexpected parts"]),
        )


class RemoteProcessingError(PipelineError):
    """The remote processor reported the asset as errored."""

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(message)


class RemoteStatusError(PipelineError):
    """A single status request failed; polling treats it as transient."""


class PollTimeoutError(PipelineError):
    """Remote processing did not reach a terminal state within the ceiling."""

    def __init__(self, job_id: str, timeout_s: float):
        self.job_id = job_id
        self.timeout_s = timeout_s
        super().__init__(
            f"Video processing did not finish within {timeout_s:.0f}s (job {job_id})"
        )


class CaptionFetchError(PipelineError):
    """Caption document could not be retrieved. Never fatal."""


class PersistenceError(PipelineError):
    """Video record or speaker data could not be stored."""


class StepTransitionError(PipelineError):
    """Illegal step state transition (ordering or monotonicity violated)."""
