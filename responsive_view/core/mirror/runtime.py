"""SessionRuntime.

This is the single place that owns one preview session's live state:
- the device runtimes and their attach/initialize flags
- the capture loop and its reentrancy token
- reload / input forwarding
- ordered, best-effort teardown

It depends only on ports, not on the concrete CDP connection.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from responsive_view.config import MirrorTimings
from responsive_view.core.mirror.api import (
    STATUS_ERROR,
    STATUS_STARTING,
    ChannelPort,
    ClickEvent,
    InputEvent,
    OutboundMessage,
    ResponsiveSession,
    StatusMessage,
    WheelEvent,
    to_wire,
)
from responsive_view.core.mirror.capture import CaptureLoop
from responsive_view.core.mirror.deadline import run_with_deadline
from responsive_view.core.mirror.device import (
    DEFAULT_JPEG_QUALITY,
    DeviceRuntime,
    apply_emulation,
    dispatch_click,
    dispatch_wheel,
    navigate,
    reload_page,
)
from responsive_view.core.mirror.errors import describe_error
from responsive_view.core.mirror.ports import BrowserPort, DebuggerPort, DisplaySurface


@dataclass(frozen=True)
class CleanupResult:
    step: str
    ok: bool
    error: str | None = None


CleanupStep = tuple[str, Callable[[], Awaitable[object]]]


async def run_cleanup(steps: list[CleanupStep], log: logging.Logger) -> list[CleanupResult]:
    """Run every step in order; a failing step never stops the ones after it."""
    results: list[CleanupResult] = []
    for name, step in steps:
        try:
            await step()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.debug("Cleanup step %s failed: %s", name, e)
            results.append(CleanupResult(step=name, ok=False, error=describe_error(e, type(e).__name__)))
        else:
            results.append(CleanupResult(step=name, ok=True))
    return results


class SessionRuntime:
    def __init__(
        self,
        *,
        session: ResponsiveSession,
        channel: ChannelPort,
        surface: DisplaySurface,
        devices: dict[str, DeviceRuntime],
        browser: BrowserPort,
        debugger: DebuggerPort,
        timings: MirrorTimings | None = None,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ):
        self.session = session
        self.channel = channel
        self.surface = surface
        self.devices = devices
        self.browser = browser
        self.debugger = debugger
        self.timings = timings or MirrorTimings()
        self.log = logging.getLogger(f"session.{session.id}")

        self.is_stopping = False
        self._torn_down = False

        self.capture = CaptureLoop(
            self,
            interval=self.timings.capture_interval,
            capture_timeout=self.timings.capture_timeout,
            paint_delay=self.timings.paint_delay,
            jpeg_quality=jpeg_quality,
        )

    @property
    def is_ticking(self) -> bool:
        return self.capture.is_ticking

    def start_capture(self) -> None:
        if self.is_stopping:
            return
        self.capture.start()

    # -----------------
    # Channel
    # -----------------

    async def emit(self, message: OutboundMessage) -> None:
        """Best-effort send; a closed channel is not an error for the engine."""
        try:
            await self.channel.send(to_wire(message))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.debug("Dropped %s for closed channel: %s", type(message).__name__, e)

    async def emit_status(self, device_id: str, status: str, message: str | None = None) -> None:
        await self.emit(
            StatusMessage(
                session_id=self.session.id,
                device_id=device_id,
                status=status,
                message=message,
            )
        )

    async def emit_error_all(self, message: str) -> None:
        for device_id in self.session.devices:
            await self.emit_status(device_id, STATUS_ERROR, message)

    # -----------------
    # Device setup
    # -----------------

    async def ensure_attached(self, device: DeviceRuntime) -> None:
        if device.attached:
            return
        try:
            await self.debugger.attach(device.target_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self.emit_status(
                device.device_id,
                STATUS_ERROR,
                describe_error(e, "Failed to attach debugger (missing permission?)"),
            )
            raise
        device.attached = True

    async def activate(self, device: DeviceRuntime) -> None:
        """Bring the target to the front of its window so it paints. Best-effort."""
        try:
            await self.browser.activate_target(device.target_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.debug("activate %s failed: %s", device.device_id, e)

    async def ensure_initialized(self, device: DeviceRuntime) -> None:
        if device.initialized:
            return
        if self.is_stopping:
            raise RuntimeError("Session is stopping")

        t = self.timings
        await self.emit_status(device.device_id, STATUS_STARTING)

        await run_with_deadline("debugger.attach", t.attach_timeout, self.ensure_attached(device))
        await run_with_deadline(
            "applyEmulation", t.emulation_timeout, apply_emulation(self.debugger, device)
        )
        await self.activate(device)
        await run_with_deadline(
            "navigate", t.navigate_timeout, navigate(self.debugger, device, self.session.url)
        )
        await asyncio.sleep(t.settle_delay)

        device.mark_initialized()
        self.log.debug("Device %s initialized", device.device_id)

    # -----------------
    # Commands from the UI
    # -----------------

    async def reload_device(self, device_id: str) -> bool:
        device = self.devices.get(device_id)
        if device is None or self.is_stopping:
            return False
        await self.ensure_attached(device)
        # The next tick re-runs emulation + navigation.
        device.initialized = False
        await run_with_deadline(
            "Page.reload", self.timings.command_timeout, reload_page(self.debugger, device)
        )
        return True

    async def forward_input(self, device_id: str, event: InputEvent) -> bool:
        device = self.devices.get(device_id)
        if device is None or self.is_stopping:
            return False
        await self.ensure_initialized(device)
        if self.is_stopping:
            return False

        if isinstance(event, ClickEvent):
            dispatch = dispatch_click(self.debugger, device, event)
        elif isinstance(event, WheelEvent):
            dispatch = dispatch_wheel(self.debugger, device, event)
        else:
            raise TypeError(f"Unhandled input event: {type(event).__name__}")
        # A page dialog (alert/confirm) stalls input events until dismissed.
        await run_with_deadline(
            "Input.dispatchMouseEvent", self.timings.command_timeout, dispatch
        )
        return True

    # -----------------
    # Teardown
    # -----------------

    async def teardown(self) -> list[CleanupResult]:
        if self._torn_down:
            return []
        self._torn_down = True
        self.is_stopping = True
        self.capture.cancel()

        steps: list[CleanupStep] = []
        for device in self.devices.values():
            if device.attached:
                steps.append(
                    (f"detach:{device.device_id}", lambda d=device: self.debugger.detach(d.target_id))
                )

        target_ids = [d.target_id for d in self.devices.values()]
        if target_ids:
            steps.append(("close-targets", lambda: self.browser.close_targets(target_ids)))
        steps.append(("remove-surface", lambda: self.browser.remove_surface(self.surface)))

        results = await run_cleanup(steps, self.log)
        failed = [r for r in results if not r.ok]
        if failed:
            self.log.info(
                "Stopped with %d cleanup failure(s): %s",
                len(failed),
                ", ".join(f"{r.step} ({r.error})" for r in failed),
            )
        else:
            self.log.info("Stopped (%d device(s))", len(self.devices))
        return results
