"""Tests for the HTTP and websocket surface."""

import asyncio
from dataclasses import replace

import pytest
from aiohttp.test_utils import TestClient, TestServer

from responsive_view.core.mirror.router import MirrorRouter
from responsive_view.core.mirror.registry import SessionRegistry
from responsive_view.server import build_app
from responsive_view.storage import LAST_SESSION_KEY, DurableStore, EphemeralStore, init_db


@pytest.fixture
def durable(tmp_path):
    conn = init_db(tmp_path / "kv.db")
    yield DurableStore(conn)
    conn.close()


@pytest.fixture
def app(registry, durable):
    return build_app(router=MirrorRouter(registry), ephemeral=EphemeralStore(), durable=durable)


# =============================================================================
# Session creation
# =============================================================================


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_session_normalizes_url(self, app, durable):
        async with TestClient(TestServer(app)) as client:
            resp = await client.post(
                "/sessions", json={"url": "  example.com ", "devices": ["mobile-360x800"]}
            )
            assert resp.status == 201
            body = await resp.json()

        session = body["session"]
        assert session["url"] == "https://example.com"
        assert session["devices"] == ["mobile-360x800"]
        assert session["mode"] == "mirror"
        assert body["channel"] == f"responsive-view:{session['id']}"
        assert durable.get(LAST_SESSION_KEY) == {
            "url": "https://example.com",
            "devices": ["mobile-360x800"],
        }

    @pytest.mark.asyncio
    async def test_create_session_uses_default_devices(self, app):
        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/sessions", json={"url": "localhost:3000"})
            body = await resp.json()

        assert resp.status == 201
        assert body["session"]["url"] == "http://localhost:3000"
        assert body["session"]["devices"] == [
            "mobile-360x800",
            "tablet-768x1024",
            "desktop-1920x1080",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"url": "", "devices": ["mobile-360x800"]}, "Enter a URL to preview"),
            ({"url": "example.com", "devices": []}, "Pick at least one viewport"),
            ({"url": "example.com", "devices": ["watch-42"]}, "Pick at least one viewport"),
        ],
    )
    async def test_create_session_rejects_bad_input(self, app, payload, message):
        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/sessions", json=payload)
            body = await resp.json()

        assert resp.status == 400
        assert body["error"] == message

    @pytest.mark.asyncio
    async def test_create_session_requires_json(self, app):
        async with TestClient(TestServer(app)) as client:
            resp = await client.post("/sessions", data="not json")
            body = await resp.json()

        assert resp.status == 400
        assert body["error"] == "Body must be JSON"

    @pytest.mark.asyncio
    async def test_current_and_lookup(self, app):
        async with TestClient(TestServer(app)) as client:
            missing = await client.get("/sessions/current")
            assert missing.status == 404

            created = await (await client.post("/sessions", json={"url": "example.com"})).json()
            session_id = created["session"]["id"]

            current = await (await client.get("/sessions/current")).json()
            assert current["session"]["id"] == session_id

            lookup = await client.get(f"/sessions/{session_id}")
            assert lookup.status == 200
            assert (await lookup.json())["live"] is False

            assert (await client.get("/sessions/unknown")).status == 404

    @pytest.mark.asyncio
    async def test_preferences_remember_last_session(self, app):
        async with TestClient(TestServer(app)) as client:
            before = await (await client.get("/preferences")).json()
            assert before["url"] == ""
            assert before["devices"] == ["mobile-360x800", "tablet-768x1024", "desktop-1920x1080"]

            await client.post(
                "/sessions", json={"url": "https://example.org", "devices": ["iphone-16-pro"]}
            )
            after = await (await client.get("/preferences")).json()

        assert after == {"url": "https://example.org", "devices": ["iphone-16-pro"]}


@pytest.mark.asyncio
async def test_devices_catalog(app):
    async with TestClient(TestServer(app)) as client:
        body = await (await client.get("/devices")).json()

    ids = [d["id"] for d in body["devices"]]
    assert "mobile-360x800" in ids
    assert body["defaults"] == ["mobile-360x800", "tablet-768x1024", "desktop-1920x1080"]
    mobile = next(d for d in body["devices"] if d["id"] == "mobile-360x800")
    assert (mobile["width"], mobile["height"], mobile["category"]) == (360, 800, "mobile")


# =============================================================================
# Channel
# =============================================================================


class TestChannel:
    @pytest.mark.asyncio
    async def test_unknown_channel_name_is_404(self, app):
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/channel/other:abc")
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_start_streams_frames_and_disconnect_stops(self, app, registry, fake_browser):
        async with TestClient(TestServer(app)) as client:
            created = await (
                await client.post(
                    "/sessions",
                    json={"url": "example.com", "devices": ["mobile-360x800", "desktop-1920x1080"]},
                )
            ).json()
            session = created["session"]

            ws = await client.ws_connect(f"/channel/{created['channel']}")
            await ws.send_json({"type": "mirror/start", "session": session})

            messages = []
            while len([m for m in messages if m["type"] == "mirror/frame"]) < 2:
                messages.append(await ws.receive_json(timeout=2))

            assert session["id"] in registry
            frames = [m for m in messages if m["type"] == "mirror/frame"]
            assert [f["deviceId"] for f in frames] == ["mobile-360x800", "desktop-1920x1080"]
            assert messages[0] == {
                "type": "mirror/status",
                "sessionId": session["id"],
                "deviceId": "mobile-360x800",
                "status": "starting",
            }

            await ws.close()
            for _ in range(200):
                if session["id"] not in registry:
                    break
                await asyncio.sleep(0.01)

        assert len(registry) == 0
        assert fake_browser.live_targets == set()

    @pytest.mark.asyncio
    async def test_stop_is_not_blocked_by_stalled_input(self, durable, fake_browser, timings):
        # Long command deadline: the stop must not wait for it to expire.
        registry = SessionRegistry(
            browser=fake_browser,
            debugger=fake_browser,
            timings=replace(timings, command_timeout=30.0),
        )
        app = build_app(
            router=MirrorRouter(registry), ephemeral=EphemeralStore(), durable=durable
        )
        fake_browser.hang_methods.add("Input.dispatchMouseEvent")

        async with TestClient(TestServer(app)) as client:
            created = await (
                await client.post(
                    "/sessions", json={"url": "example.com", "devices": ["mobile-360x800"]}
                )
            ).json()
            session_id = created["session"]["id"]

            ws = await client.ws_connect(f"/channel/{created['channel']}")
            await ws.send_json({"type": "mirror/start", "session": created["session"]})
            while (await ws.receive_json(timeout=2))["type"] != "mirror/frame":
                pass

            await ws.send_json(
                {
                    "type": "mirror/input",
                    "sessionId": session_id,
                    "deviceId": "mobile-360x800",
                    "event": {"kind": "click", "x": 10, "y": 10},
                }
            )
            await ws.send_json({"type": "mirror/stop", "sessionId": session_id})

            for _ in range(100):
                if session_id not in registry:
                    break
                await asyncio.sleep(0.01)

            assert session_id not in registry
            assert fake_browser.live_targets == set()

            await ws.close()

    @pytest.mark.asyncio
    async def test_disconnect_is_not_blocked_by_stalled_input(
        self, durable, fake_browser, timings
    ):
        registry = SessionRegistry(
            browser=fake_browser,
            debugger=fake_browser,
            timings=replace(timings, command_timeout=30.0),
        )
        app = build_app(
            router=MirrorRouter(registry), ephemeral=EphemeralStore(), durable=durable
        )
        fake_browser.hang_methods.add("Input.dispatchMouseEvent")

        async with TestClient(TestServer(app)) as client:
            created = await (
                await client.post(
                    "/sessions", json={"url": "example.com", "devices": ["mobile-360x800"]}
                )
            ).json()
            session_id = created["session"]["id"]

            ws = await client.ws_connect(f"/channel/{created['channel']}")
            await ws.send_json({"type": "mirror/start", "session": created["session"]})
            while (await ws.receive_json(timeout=2))["type"] != "mirror/frame":
                pass
            await ws.send_json(
                {
                    "type": "mirror/input",
                    "sessionId": session_id,
                    "deviceId": "mobile-360x800",
                    "event": {"kind": "wheel", "x": 10, "y": 10, "deltaX": 0, "deltaY": 90},
                }
            )
            await asyncio.sleep(0.05)
            await ws.close()

            for _ in range(100):
                if session_id not in registry:
                    break
                await asyncio.sleep(0.01)

        assert len(registry) == 0
        assert fake_browser.live_targets == set()
