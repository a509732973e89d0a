"""Session registry: at most one live SessionRuntime per session id."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from responsive_view.config import MirrorTimings
from responsive_view.core.mirror.api import STATUS_ERROR, ChannelPort, ResponsiveSession, StatusMessage, to_wire
from responsive_view.core.mirror.device import DEFAULT_JPEG_QUALITY
from responsive_view.core.mirror.errors import ProvisioningError, describe_error
from responsive_view.core.mirror.ports import BrowserPort, DebuggerPort, DisplaySurface
from responsive_view.core.mirror.provisioning import provision_devices
from responsive_view.core.mirror.runtime import CleanupResult, SessionRuntime
from responsive_view.devices import DEVICE_BY_ID, DevicePreset

log = logging.getLogger("mirror.registry")


class SessionRegistry:
    """Owns every SessionRuntime in the process.

    Start and stop for one session id are serialized, so restarting a stale id
    always finishes tearing down the old runtime before the new one is
    registered.
    """

    def __init__(
        self,
        *,
        browser: BrowserPort,
        debugger: DebuggerPort,
        catalog: Mapping[str, DevicePreset] = DEVICE_BY_ID,
        timings: MirrorTimings | None = None,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ):
        self.browser = browser
        self.debugger = debugger
        self.catalog = catalog
        self.timings = timings or MirrorTimings()
        self.jpeg_quality = jpeg_quality
        self._sessions: dict[str, SessionRuntime] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionRuntime | None:
        return self._sessions.get(session_id)

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def start(
        self,
        session: ResponsiveSession,
        channel: ChannelPort,
        *,
        session_id: str | None = None,
    ) -> SessionRuntime | None:
        """Provision and register a runtime; None if provisioning failed.

        `session_id` overrides the registry key (the channel's session id).
        """
        key = session_id or session.id
        async with self._lock_for(key):
            if key in self._sessions:
                log.info("Session %s restarted; stopping previous runtime", key)
                await self._stop_locked(key)

            try:
                runtime = await self._provision(session, channel)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Session %s failed to start: %s", key, e)
                message = describe_error(e, "Failed to start mirroring")
                for device_id in session.devices:
                    await _send_quietly(
                        channel,
                        StatusMessage(
                            session_id=key,
                            device_id=device_id,
                            status=STATUS_ERROR,
                            message=message,
                        ),
                    )
                return None

            self._sessions[key] = runtime
            runtime.start_capture()
            log.info(
                "Session %s started: %s on %s",
                key,
                session.url,
                ", ".join(runtime.devices),
            )
            return runtime

    async def _provision(self, session: ResponsiveSession, channel: ChannelPort) -> SessionRuntime:
        try:
            surface = await self.browser.create_surface()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ProvisioningError(describe_error(e, "Failed to create preview window")) from e

        try:
            devices = await provision_devices(self.browser, session, surface, self.catalog)
        except BaseException:
            await self._discard_surface(surface)
            raise

        return SessionRuntime(
            session=session,
            channel=channel,
            surface=surface,
            devices=devices,
            browser=self.browser,
            debugger=self.debugger,
            timings=self.timings,
            jpeg_quality=self.jpeg_quality,
        )

    async def _discard_surface(self, surface: DisplaySurface) -> None:
        try:
            await self.browser.remove_surface(surface)
        except Exception as e:
            log.debug("Failed to remove surface %s: %s", surface.surface_id, e)

    async def stop(self, session_id: str) -> list[CleanupResult]:
        """Tear down a session. Unknown ids are a no-op.

        Waits behind a start already holding the session lock, so a stop sent
        right after a start still tears the new runtime down.
        """
        async with self._lock_for(session_id):
            return await self._stop_locked(session_id)

    async def _stop_locked(self, session_id: str) -> list[CleanupResult]:
        runtime = self._sessions.get(session_id)
        if runtime is None:
            return []
        try:
            return await runtime.teardown()
        finally:
            if self._sessions.get(session_id) is runtime:
                del self._sessions[session_id]

    async def stop_all(self) -> None:
        for session_id in list(self._sessions):
            try:
                await self.stop(session_id)
            except Exception:
                log.exception("Failed to stop session %s", session_id)


async def _send_quietly(channel: ChannelPort, message: StatusMessage) -> None:
    try:
        await channel.send(to_wire(message))
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log.debug("Dropped start failure status: %s", e)
