# src/pipeline/steps.py — v1
"""Ordered step state machine for one upload session.

Transitions per step:
    pending → processing → completed
    pending | processing → error
A step may enter ``processing`` (or be completed directly) only when every
earlier step is completed. ``completed`` and ``error`` are final until
reset().
"""

from __future__ import annotations

import math
import time
from typing import Callable

from vidpipe.core.errors import StepTransitionError
from vidpipe.core.models import STEP_ORDER, STEP_TITLES, ProcessingStep, StepKey


def round_half_up(value: float) -> int:
    """Round non-negative values with halves going up."""
    return int(math.floor(value + 0.5))


class StepStateMachine:
    """Owns the ProcessingStep list and enforces legal transitions.

    Args:
        keys: Ordered step keys.
        clock: Monotonic clock used for started_at and durations.
    """

    def __init__(
        self,
        keys: tuple[StepKey, ...] = STEP_ORDER,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._keys = keys
        self._clock = clock
        self._steps: dict[str, ProcessingStep] = {}
        self.reset()

    def reset(self) -> None:
        """Every step back to pending with no progress or detail."""
        self._steps = {}
        for key in self._keys:
            title, description = STEP_TITLES.get(key, (key, ""))
            self._steps[key] = ProcessingStep(key=key, title=title, description=description)

    # --- Queries ---

    def get(self, key: StepKey) -> ProcessingStep:
        return self._step(key).model_copy()

    def snapshot(self) -> list[ProcessingStep]:
        return [s.model_copy() for s in self._steps.values()]

    def overall_progress(self) -> int:
        completed = sum(1 for s in self._steps.values() if s.status == "completed")
        return round_half_up(100 * completed / len(self._steps))

    def current_step(self) -> ProcessingStep | None:
        """First step that is not completed (None once everything is)."""
        for step in self._steps.values():
            if step.status != "completed":
                return step.model_copy()
        return None

    def has_error(self) -> bool:
        return any(s.status == "error" for s in self._steps.values())

    def is_complete(self) -> bool:
        return all(s.status == "completed" for s in self._steps.values())

    # --- Transitions ---

    def start(self, key: StepKey, detail: str | None = None) -> ProcessingStep:
        step = self._step(key)
        if step.status != "pending":
            raise StepTransitionError(f"Cannot start step {key!r}: status is {step.status}")
        self._require_predecessors_completed(key)
        step.status = "processing"
        step.progress = 0
        step.detail = detail
        step.started_at = self._clock()
        return step.model_copy()

    def update(
        self, key: StepKey, progress: int | None = None, detail: str | None = None
    ) -> ProcessingStep:
        step = self._step(key)
        if step.status != "processing":
            raise StepTransitionError(f"Cannot update step {key!r}: status is {step.status}")
        if progress is not None:
            step.progress = max(step.progress or 0, min(100, max(0, progress)))
        if detail is not None:
            step.detail = detail
        return step.model_copy()

    def complete(
        self, key: StepKey, detail: str | None = None, skipped: bool = False
    ) -> ProcessingStep:
        step = self._step(key)
        if step.status in ("completed", "error"):
            raise StepTransitionError(f"Cannot complete step {key!r}: status is {step.status}")
        now = self._clock()
        if step.status == "pending":
            self._require_predecessors_completed(key)
            step.started_at = now
        step.status = "completed"
        step.progress = 100
        step.skipped = skipped
        if detail is not None:
            step.detail = detail
        step.duration_s = now - (step.started_at if step.started_at is not None else now)
        return step.model_copy()

    def fail(self, key: StepKey, message: str) -> ProcessingStep:
        step = self._step(key)
        if step.status in ("completed", "error"):
            raise StepTransitionError(f"Cannot fail step {key!r}: status is {step.status}")
        now = self._clock()
        step.status = "error"
        step.detail = message
        if step.started_at is not None:
            step.duration_s = now - step.started_at
        return step.model_copy()

    # --- Internals ---

    def _step(self, key: str) -> ProcessingStep:
        try:
            return self._steps[key]
        except KeyError:
            raise StepTransitionError(f"Unknown step: {key!r}") from None

    def _require_predecessors_completed(self, key: str) -> None:
        for earlier in self._keys[: self._keys.index(key)]:  # type: ignore[arg-type]
            if self._steps[earlier].status != "completed":
                raise StepTransitionError(
                    f"Step {key!r} cannot run before {earlier!r} is completed"
                )
