"""DevTools protocol client over an aiohttp websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable

import aiohttp

from responsive_view.cdp.errors import CDPCommandError, CDPConnectionError, CDPProtocolError

log = logging.getLogger("cdp")

EventHandler = Callable[[dict, str | None], None]


class CDPClient:
    """Browser-level DevTools connection.

    Commands for individual targets travel over the same websocket, tagged
    with the flattened `sessionId` returned by Target.attachToTarget.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        max_message_bytes: int = 64 * 1024 * 1024,
        connect_timeout: float = 10.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self._max_message_bytes = max_message_bytes
        self._connect_timeout = connect_timeout
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task | None = None
        self._next_id = 0
        self._pending: dict[int, tuple[str, asyncio.Future]] = {}
        self._listeners: dict[str, list[EventHandler]] = {}

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def _make_url(self, path: str) -> str:
        return f"{self.endpoint}{path}"

    async def request_json(self, session: aiohttp.ClientSession, path: str) -> object:
        url = self._make_url(path)
        timeout = aiohttp.ClientTimeout(total=self._connect_timeout)
        try:
            async with session.get(url, timeout=timeout) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    detail = text.strip() or resp.reason
                    raise CDPConnectionError(f"DevTools HTTP {resp.status} GET {url}: {detail}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CDPConnectionError(f"DevTools endpoint {self.endpoint} unreachable: {e}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CDPProtocolError("invalid JSON from DevTools", payload_preview=text[:200]) from e

    async def discover_ws_url(self, session: aiohttp.ClientSession) -> str:
        version = await self.request_json(session, "/json/version")
        ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not isinstance(ws_url, str) or not ws_url:
            raise CDPProtocolError("/json/version has no webSocketDebuggerUrl")
        return ws_url

    async def connect(self, session: aiohttp.ClientSession) -> None:
        if self.connected:
            return
        ws_url = await self.discover_ws_url(session)
        try:
            self._ws = await session.ws_connect(
                ws_url, heartbeat=30, max_msg_size=self._max_message_bytes
            )
        except aiohttp.ClientError as e:
            raise CDPConnectionError(f"DevTools websocket connect failed: {e}") from e
        self._reader_task = asyncio.create_task(self._read_loop(self._ws), name="cdp-reader")
        log.info("Connected to DevTools at %s", ws_url)

    async def close(self) -> None:
        task = self._reader_task
        self._reader_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        self._fail_pending(CDPConnectionError("DevTools connection closed"))

    def on_event(self, method: str, handler: EventHandler) -> None:
        self._listeners.setdefault(method, []).append(handler)

    async def send(
        self,
        method: str,
        params: dict | None = None,
        *,
        session_id: str | None = None,
    ) -> dict:
        ws = self._ws
        if ws is None or ws.closed:
            raise CDPConnectionError("DevTools websocket is not connected")

        self._next_id += 1
        msg_id = self._next_id
        payload: dict[str, object] = {"id": msg_id, "method": method, "params": params or {}}
        if session_id:
            payload["sessionId"] = session_id

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = (method, fut)
        try:
            await ws.send_str(json.dumps(payload, allow_nan=False))
            return await fut
        finally:
            # A caller that gave up (deadline) must not leave a stale entry.
            self._pending.pop(msg_id, None)

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    log.warning("DevTools websocket error: %s", ws.exception())
                    break
        finally:
            if ws is self._ws:
                log.warning("DevTools websocket closed")
            self._fail_pending(CDPConnectionError("DevTools websocket closed"))

    def _dispatch(self, text: str) -> None:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            log.debug("Ignoring non-JSON DevTools frame")
            return
        if not isinstance(data, dict):
            return

        msg_id = data.get("id")
        if isinstance(msg_id, int):
            entry = self._pending.get(msg_id)
            if entry is None:
                return
            method, fut = entry
            if fut.done():
                return
            error = data.get("error")
            if isinstance(error, dict):
                fut.set_exception(
                    CDPCommandError(
                        method,
                        code=error.get("code"),
                        message=error.get("message"),
                        data=error.get("data"),
                    )
                )
            else:
                result = data.get("result")
                fut.set_result(result if isinstance(result, dict) else {})
            return

        method = data.get("method")
        if not isinstance(method, str):
            return
        params = data.get("params")
        for handler in list(self._listeners.get(method, ())):
            try:
                handler(params if isinstance(params, dict) else {}, data.get("sessionId"))
            except Exception:
                log.exception("DevTools event handler for %s failed", method)

    def _fail_pending(self, exc: Exception) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for _, fut in pending:
            if not fut.done():
                fut.set_exception(exc)
