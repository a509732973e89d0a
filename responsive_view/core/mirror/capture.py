"""Capture loop.

One loop per session runtime. The timer fires immediately and then every
interval; each fire runs a tick in its own task. A tick that finds another
tick still in flight (or the runtime stopping) returns without doing
anything, so slow captures skip fires instead of queuing them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from responsive_view.core.mirror.api import STATUS_ERROR, STATUS_LIVE, FrameMessage
from responsive_view.core.mirror.deadline import run_with_deadline
from responsive_view.core.mirror.device import DeviceRuntime, capture_frame
from responsive_view.core.mirror.errors import describe_error
from responsive_view.utils import utc_timestamp

if TYPE_CHECKING:
    from responsive_view.core.mirror.runtime import SessionRuntime

log = logging.getLogger("mirror.capture")


class RecurringTask:
    """Fire-and-forget timer: run `fn` now, then every `interval` seconds."""

    def __init__(self, fn: Callable[[], Awaitable[object]], interval: float, *, name: str):
        self._fn = fn
        self._interval = interval
        self._name = name
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        """Stop scheduling further fires. In-flight fires finish on their own."""
        task = self._task
        self._task = None
        if task and not task.done():
            task.cancel()

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run(self) -> None:
        try:
            while True:
                self._fire()
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            return

    def _fire(self) -> None:
        task = asyncio.create_task(self._fn(), name=f"{self._name}:fire")
        self._inflight.add(task)
        task.add_done_callback(self._on_fire_done)

    def _on_fire_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Recurring task %s failed: %s", self._name, exc, exc_info=exc)


class CaptureLoop:
    def __init__(
        self,
        runtime: "SessionRuntime",
        *,
        interval: float,
        capture_timeout: float,
        paint_delay: float,
        jpeg_quality: int,
    ):
        self._runtime = runtime
        self._capture_timeout = capture_timeout
        self._paint_delay = paint_delay
        self._jpeg_quality = jpeg_quality

        # Single-slot reentrancy token; checked and taken without awaiting.
        self._token = asyncio.Lock()
        self._timer = RecurringTask(
            self.tick, interval, name=f"capture:{runtime.session.id}"
        )
        self.ticks_run = 0

    @property
    def is_ticking(self) -> bool:
        return self._token.locked()

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    async def wait_idle(self) -> None:
        await self._timer.wait_idle()

    async def tick(self) -> bool:
        """Run one capture pass. Returns False when the tick was skipped."""
        runtime = self._runtime
        if runtime.is_stopping or self._token.locked():
            return False

        async with self._token:
            self.ticks_run += 1
            for device in list(runtime.devices.values()):
                if runtime.is_stopping:
                    break
                await self._capture_device(device)
        return True

    async def _capture_device(self, device: DeviceRuntime) -> None:
        runtime = self._runtime
        try:
            await runtime.ensure_initialized(device)
            # Keep the target active so it keeps painting; never re-navigate here.
            await runtime.activate(device)
            await asyncio.sleep(self._paint_delay)
            data = await run_with_deadline(
                "captureScreenshot",
                self._capture_timeout,
                capture_frame(runtime.debugger, device, quality=self._jpeg_quality),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if runtime.is_stopping:
                return
            log.debug("Capture failed for %s/%s: %s", runtime.session.id, device.device_id, e)
            await runtime.emit_status(
                device.device_id, STATUS_ERROR, describe_error(e, "Capture failed")
            )
            return

        if runtime.is_stopping:
            return
        await runtime.emit(
            FrameMessage(
                session_id=runtime.session.id,
                device_id=device.device_id,
                data_base64=data,
                captured_at=utc_timestamp(),
            )
        )
        await runtime.emit_status(device.device_id, STATUS_LIVE)
