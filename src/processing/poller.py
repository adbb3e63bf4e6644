# src/processing/poller.py — v1
"""Remote processing poller.

Repeatedly asks the status service about one job until it is ready or
errored, or until the hard ceiling elapses. One poller instance drives one
session: a second poll request while a loop is active is a no-op, and at
most one terminal callback (ready, error, timeout or stall) is ever
delivered.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Literal

from vidpipe.core.errors import PollTimeoutError, RemoteStatusError
from vidpipe.core.models import RemoteAssetStatus
from vidpipe.processing.base_status_service import BaseStatusService

logger = logging.getLogger(__name__)

StatusCallback = Callable[[RemoteAssetStatus], Awaitable[None] | None]
ErrorCallback = Callable[[str], Awaitable[None] | None]
TimeoutCallback = Callable[[PollTimeoutError], Awaitable[None] | None]

TimeoutBehavior = Literal["error", "stall"]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class RemoteProcessingPoller:
    """Poll a processing job at a fixed interval under a hard ceiling.

    Args:
        status_service: Where statuses come from.
        interval_s: Delay between two status requests.
        timeout_s: Ceiling after which polling stops.
        timeout_behavior: "error" delivers a PollTimeoutError to
            ``on_timeout``; "stall" reports no error and only tells
            ``on_stall`` that polling ended.
    """

    def __init__(
        self,
        status_service: BaseStatusService,
        interval_s: float = 2.0,
        timeout_s: float = 600.0,
        timeout_behavior: TimeoutBehavior = "error",
    ) -> None:
        self._service = status_service
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._timeout_behavior = timeout_behavior
        self._task: asyncio.Task[None] | None = None
        self._requests = 0

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def request_count(self) -> int:
        """Status requests issued by the most recent loop."""
        return self._requests

    def poll_until_terminal(
        self,
        job_id: str,
        on_ready: StatusCallback,
        on_error: ErrorCallback,
        on_status: StatusCallback | None = None,
        on_timeout: TimeoutCallback | None = None,
        on_stall: TimeoutCallback | None = None,
    ) -> asyncio.Task[None]:
        """Start polling ``job_id`` in a background task.

        Returns the running task; if a loop is already active it is
        returned unchanged and the new request is ignored. A status
        service failure other than RemoteStatusError ends the loop and
        is delivered through ``on_error``.
        """
        active = self._task
        if active is not None and not active.done():
            logger.debug("Poll already active, ignoring request for %s", job_id)
            return active

        self._requests = 0
        self._task = asyncio.create_task(
            self._run(job_id, on_ready, on_error, on_status, on_timeout, on_stall),
            name=f"poll-{job_id}",
        )
        return self._task

    def stop(self) -> None:
        """Cancel the active loop without delivering any callback."""
        active, self._task = self._task, None
        if active is not None and not active.done():
            active.cancel()

    async def _run(
        self,
        job_id: str,
        on_ready: StatusCallback,
        on_error: ErrorCallback,
        on_status: StatusCallback | None,
        on_timeout: TimeoutCallback | None,
        on_stall: TimeoutCallback | None,
    ) -> None:
        logger.info(
            "Polling job %s every %.1fs (ceiling %.0fs)",
            job_id, self._interval_s, self._timeout_s,
        )
        try:
            status = await asyncio.wait_for(
                self._poll_loop(job_id, on_status), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            error = PollTimeoutError(job_id, self._timeout_s)
            if self._timeout_behavior == "stall":
                logger.warning("%s; polling stopped without error", error)
                if on_stall is not None:
                    await _maybe_await(on_stall(error))
                return
            logger.error("%s", error)
            if on_timeout is not None:
                await _maybe_await(on_timeout(error))
            return
        except Exception as e:
            logger.exception("Polling job %s crashed", job_id)
            await _maybe_await(on_error(str(e) or e.__class__.__name__))
            return

        # Terminal callbacks are not subject to the ceiling.
        if status.is_ready:
            logger.info(
                "Job %s ready: asset=%s playback=%s",
                job_id, status.asset_id, status.playback_id,
            )
            await _maybe_await(on_ready(status))
        else:
            message = status.error or "Video processing failed"
            logger.error("Job %s errored: %s", job_id, message)
            await _maybe_await(on_error(message))

    async def _poll_loop(
        self, job_id: str, on_status: StatusCallback | None
    ) -> RemoteAssetStatus:
        while True:
            self._requests += 1
            try:
                status = await self._service.get_asset_status(job_id)
            except RemoteStatusError as e:
                logger.warning("Status request for %s failed, retrying: %s", job_id, e)
            else:
                if on_status is not None:
                    await _maybe_await(on_status(status))
                if status.is_ready or status.is_errored:
                    return status
                logger.debug("Job %s still %s", job_id, status.status)
            await asyncio.sleep(self._interval_s)
