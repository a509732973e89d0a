"""HTTP + websocket surface of the service.

Exposes:
- /channel/{name}          websocket UI channel (`<prefix>:<session_id>`)
- GET  /devices            device preset catalog
- POST /sessions           create a ResponsiveSession
- GET  /sessions/current   last created session
- GET  /sessions/{id}      a session created by this process
- GET  /preferences        last used URL / device selection
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Mapping

import aiohttp
from aiohttp import web

from responsive_view.core.mirror.api import ResponsiveSession
from responsive_view.core.mirror.errors import MessageError
from responsive_view.core.mirror.router import MirrorRouter
from responsive_view.devices import DEFAULT_DEVICE_IDS, DEVICE_BY_ID, DEVICE_PRESETS, DevicePreset
from responsive_view.storage import (
    LAST_SESSION_KEY,
    SESSION_STORAGE_KEY,
    DurableStore,
    EphemeralStore,
)
from responsive_view.utils import normalize_target_url

log = logging.getLogger("server")


class WebSocketChannel:
    """ChannelPort over an aiohttp server-side websocket."""

    def __init__(self, ws: web.WebSocketResponse):
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send(self, payload: dict) -> None:
        if self._ws.closed:
            raise ConnectionResetError("channel closed")
        await self._ws.send_json(payload)


def _session_key(session_id: str) -> str:
    return f"{SESSION_STORAGE_KEY}:{session_id}"


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


def build_app(
    *,
    router: MirrorRouter,
    ephemeral: EphemeralStore,
    durable: DurableStore,
    catalog: Mapping[str, DevicePreset] = DEVICE_BY_ID,
) -> web.Application:
    app = web.Application()

    async def handle_channel(request: web.Request) -> web.StreamResponse:
        name = request.match_info.get("name", "")
        session_id = router.session_id_for_channel(name)
        if not session_id:
            raise web.HTTPNotFound()

        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        channel = WebSocketChannel(ws)
        log.info("Channel %s connected", name)

        # Messages run concurrently; one stalled command must not hold up a stop.
        pending: set[asyncio.Task] = set()

        def on_message_done(task: asyncio.Task) -> None:
            pending.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                log.error("[%s] channel message failed: %s", session_id, exc, exc_info=exc)

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        raw = json.loads(msg.data)
                    except json.JSONDecodeError:
                        log.warning("[%s] ignoring non-JSON channel message", session_id)
                        continue
                    task = asyncio.create_task(
                        router.handle(session_id, channel, raw), name=f"channel:{session_id}"
                    )
                    pending.add(task)
                    task.add_done_callback(on_message_done)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    log.warning("[%s] channel error: %s", session_id, ws.exception())
        finally:
            # Let messages that were just queued take their turn on the session
            # lock, so the stop below runs after them.
            await asyncio.sleep(0)
            await router.disconnected(session_id)
            for task in list(pending):
                task.cancel()
            log.info("Channel %s disconnected", name)
        return ws

    async def handle_devices(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "devices": [p.to_dict() for p in DEVICE_PRESETS if p.id in catalog],
                "defaults": list(DEFAULT_DEVICE_IDS),
            }
        )

    async def handle_create_session(request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return _bad_request("Body must be JSON")
        if not isinstance(body, dict):
            return _bad_request("Body must be a JSON object")

        devices = body.get("devices")
        if devices is None:
            devices = list(DEFAULT_DEVICE_IDS)
        if not isinstance(devices, list) or not all(isinstance(d, str) for d in devices):
            return _bad_request("devices must be a list of device ids")
        known = [d for d in devices if d in catalog]
        if not known:
            return _bad_request("Pick at least one viewport")

        raw_url = body.get("url")
        try:
            url = normalize_target_url(raw_url if isinstance(raw_url, str) else "")
            session = ResponsiveSession.create(str(uuid.uuid4()), url, known)
        except (ValueError, MessageError) as e:
            return _bad_request(str(e))

        durable.set(LAST_SESSION_KEY, {"url": session.url, "devices": list(session.devices)})
        ephemeral.set(SESSION_STORAGE_KEY, session)
        ephemeral.set(_session_key(session.id), session)
        log.info("Created session %s for %s", session.id, session.url)

        return web.json_response(
            {"session": session.to_dict(), "channel": router.channel_name(session.id)},
            status=201,
        )

    async def handle_current_session(request: web.Request) -> web.Response:
        session = ephemeral.get(SESSION_STORAGE_KEY)
        if not isinstance(session, ResponsiveSession):
            raise web.HTTPNotFound()
        return web.json_response(
            {"session": session.to_dict(), "channel": router.channel_name(session.id)}
        )

    async def handle_get_session(request: web.Request) -> web.Response:
        session = ephemeral.get(_session_key(request.match_info.get("session_id", "")))
        if not isinstance(session, ResponsiveSession):
            raise web.HTTPNotFound()
        return web.json_response(
            {
                "session": session.to_dict(),
                "channel": router.channel_name(session.id),
                "live": session.id in router.registry,
            }
        )

    async def handle_preferences(request: web.Request) -> web.Response:
        stored = durable.get(LAST_SESSION_KEY)
        url = ""
        devices = list(DEFAULT_DEVICE_IDS)
        if isinstance(stored, dict):
            if isinstance(stored.get("url"), str):
                url = stored["url"]
            saved = stored.get("devices")
            if isinstance(saved, list) and saved:
                devices = [d for d in saved if isinstance(d, str)]
        return web.json_response({"url": url, "devices": devices})

    app.router.add_get("/channel/{name}", handle_channel)
    app.router.add_get("/devices", handle_devices)
    app.router.add_post("/sessions", handle_create_session)
    app.router.add_get("/sessions/current", handle_current_session)
    app.router.add_get("/sessions/{session_id}", handle_get_session)
    app.router.add_get("/preferences", handle_preferences)
    return app


async def start_server(
    app: web.Application,
    *,
    host: str = "127.0.0.1",
    port: int = 7788,
) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    return runner
