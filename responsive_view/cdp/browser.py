"""Chrome adapter implementing the mirror engine's browser and debugger ports."""

from __future__ import annotations

import logging

from responsive_view.cdp.client import CDPClient
from responsive_view.cdp.errors import CDPError, CDPProtocolError
from responsive_view.core.mirror.ports import DisplaySurface, TargetInfo

log = logging.getLogger("cdp.browser")

SURFACE_WIDTH = 520
SURFACE_HEIGHT = 420


class ChromeBrowser:
    """Maps display surfaces to isolated browser contexts and targets to
    flattened debugger sessions."""

    def __init__(
        self,
        client: CDPClient,
        *,
        surface_width: int = SURFACE_WIDTH,
        surface_height: int = SURFACE_HEIGHT,
    ):
        self._client = client
        self._surface_width = surface_width
        self._surface_height = surface_height
        self._sessions: dict[str, str] = {}  # target_id -> CDP sessionId
        client.on_event("Target.detachedFromTarget", self._on_detached)

    def _on_detached(self, params: dict, _session_id: str | None) -> None:
        target_id = params.get("targetId")
        session_id = params.get("sessionId")
        if isinstance(target_id, str) and self._sessions.get(target_id) == session_id:
            self._sessions.pop(target_id, None)
            log.debug("Target %s detached", target_id)

    # -----------------
    # BrowserPort
    # -----------------

    async def create_surface(self) -> DisplaySurface:
        """Open a small, unfocused, on-screen window in a fresh browser context.

        The window must stay on-screen and un-minimized: Chromium stops
        painting minimized windows and screenshots then hang.
        """
        created = await self._client.send("Target.createBrowserContext", {"disposeOnDetach": True})
        context_id = created.get("browserContextId")
        if not isinstance(context_id, str) or not context_id:
            raise CDPProtocolError("Target.createBrowserContext returned no browserContextId")

        try:
            target = await self._client.send(
                "Target.createTarget",
                {
                    "url": "about:blank",
                    "browserContextId": context_id,
                    "newWindow": True,
                    "background": True,
                    "width": self._surface_width,
                    "height": self._surface_height,
                },
            )
            host_target_id = target.get("targetId")
            if not isinstance(host_target_id, str) or not host_target_id:
                raise CDPProtocolError("Target.createTarget returned no targetId")
        except BaseException:
            await self._dispose_context(context_id)
            raise

        window_id: int | None = None
        try:
            window = await self._client.send(
                "Browser.getWindowForTarget", {"targetId": host_target_id}
            )
            raw_window_id = window.get("windowId")
            if isinstance(raw_window_id, int):
                window_id = raw_window_id
                await self._client.send(
                    "Browser.setWindowBounds",
                    {"windowId": window_id, "bounds": {"windowState": "normal"}},
                )
        except CDPError as e:
            # Headless builds have no windows; capture still works there.
            log.debug("Window bounds unavailable for %s: %s", host_target_id, e)

        return DisplaySurface(
            surface_id=context_id, window_id=window_id, host_target_id=host_target_id
        )

    async def list_targets(self, surface: DisplaySurface) -> list[TargetInfo]:
        result = await self._client.send("Target.getTargets")
        infos = result.get("targetInfos")
        if not isinstance(infos, list):
            return []

        targets: list[TargetInfo] = []
        for info in infos:
            if not isinstance(info, dict):
                continue
            if info.get("type") != "page":
                continue
            if info.get("browserContextId") != surface.surface_id:
                continue
            target_id = info.get("targetId")
            if not isinstance(target_id, str):
                continue
            targets.append(
                TargetInfo(
                    target_id=target_id,
                    url=str(info.get("url") or ""),
                    active=target_id == surface.host_target_id,
                )
            )
        return targets

    async def create_target(self, surface: DisplaySurface, url: str) -> str:
        result = await self._client.send(
            "Target.createTarget",
            {"url": url, "browserContextId": surface.surface_id, "background": True},
        )
        target_id = result.get("targetId")
        if not isinstance(target_id, str) or not target_id:
            raise CDPProtocolError("Target.createTarget returned no targetId")
        return target_id

    async def activate_target(self, target_id: str) -> None:
        await self._client.send("Target.activateTarget", {"targetId": target_id})

    async def close_targets(self, target_ids: list[str]) -> None:
        failures: list[str] = []
        for target_id in target_ids:
            try:
                await self._client.send("Target.closeTarget", {"targetId": target_id})
            except CDPError as e:
                failures.append(f"{target_id}: {e}")
            self._sessions.pop(target_id, None)
        if failures:
            raise CDPError("; ".join(failures))

    async def remove_surface(self, surface: DisplaySurface) -> None:
        await self._client.send(
            "Target.disposeBrowserContext", {"browserContextId": surface.surface_id}
        )

    async def _dispose_context(self, context_id: str) -> None:
        try:
            await self._client.send("Target.disposeBrowserContext", {"browserContextId": context_id})
        except CDPError as e:
            log.debug("Failed to dispose context %s: %s", context_id, e)

    # -----------------
    # DebuggerPort
    # -----------------

    async def attach(self, target_id: str) -> None:
        if target_id in self._sessions:
            return
        result = await self._client.send(
            "Target.attachToTarget", {"targetId": target_id, "flatten": True}
        )
        session_id = result.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise CDPProtocolError("Target.attachToTarget returned no sessionId")
        self._sessions[target_id] = session_id

    async def detach(self, target_id: str) -> None:
        session_id = self._sessions.pop(target_id, None)
        if session_id is None:
            return
        await self._client.send("Target.detachFromTarget", {"sessionId": session_id})

    async def send(self, target_id: str, method: str, params: dict | None = None) -> dict:
        session_id = self._sessions.get(target_id)
        if session_id is None:
            raise CDPError(f"Debugger is not attached to target {target_id}")
        return await self._client.send(method, params, session_id=session_id)
