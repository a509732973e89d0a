"""Tests for the DevTools client and the Chrome port adapter."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from responsive_view.cdp.browser import ChromeBrowser
from responsive_view.cdp.client import CDPClient
from responsive_view.cdp.errors import CDPCommandError, CDPConnectionError, CDPError
from responsive_view.core.mirror.ports import DisplaySurface


def _client_with_fake_ws():
    client = CDPClient("http://127.0.0.1:9222/")
    ws = MagicMock()
    ws.closed = False
    ws.send_str = AsyncMock()
    client._ws = ws
    return client, ws


# =============================================================================
# CDPClient
# =============================================================================


class TestCDPClient:
    def test_endpoint_is_normalized(self):
        assert CDPClient("http://127.0.0.1:9222/").endpoint == "http://127.0.0.1:9222"

    @pytest.mark.asyncio
    async def test_send_requires_connection(self):
        client = CDPClient("http://127.0.0.1:9222")
        with pytest.raises(CDPConnectionError):
            await client.send("Target.getTargets")

    @pytest.mark.asyncio
    async def test_response_resolves_pending_command(self):
        client, ws = _client_with_fake_ws()

        task = asyncio.create_task(
            client.send("Page.navigate", {"url": "https://example.com"}, session_id="sess-1")
        )
        await asyncio.sleep(0)

        sent = json.loads(ws.send_str.await_args.args[0])
        assert sent == {
            "id": 1,
            "method": "Page.navigate",
            "params": {"url": "https://example.com"},
            "sessionId": "sess-1",
        }

        client._dispatch(json.dumps({"id": 1, "result": {"frameId": "F1"}}))
        assert await task == {"frameId": "F1"}
        assert client._pending == {}

    @pytest.mark.asyncio
    async def test_error_response_raises_command_error(self):
        client, _ = _client_with_fake_ws()

        task = asyncio.create_task(client.send("Target.closeTarget", {"targetId": "T"}))
        await asyncio.sleep(0)
        client._dispatch(
            json.dumps({"id": 1, "error": {"code": -32602, "message": "No target with given id"}})
        )

        with pytest.raises(CDPCommandError) as exc_info:
            await task
        assert exc_info.value.code == -32602
        assert str(exc_info.value) == "Target.closeTarget failed: No target with given id (-32602)"

    @pytest.mark.asyncio
    async def test_abandoned_command_leaves_no_pending_entry(self):
        client, _ = _client_with_fake_ws()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(client.send("Page.captureScreenshot"), timeout=0.01)

        assert client._pending == {}
        # A late response for the abandoned id is ignored.
        client._dispatch(json.dumps({"id": 1, "result": {}}))

    @pytest.mark.asyncio
    async def test_non_finite_params_are_never_sent(self):
        client, ws = _client_with_fake_ws()

        with pytest.raises(ValueError):
            await client.send("Input.dispatchMouseEvent", {"type": "mouseWheel", "deltaX": float("nan")})

        ws.send_str.assert_not_awaited()
        assert client._pending == {}

    @pytest.mark.asyncio
    async def test_events_reach_listeners(self):
        client, _ = _client_with_fake_ws()
        seen = []
        client.on_event("Target.detachedFromTarget", lambda params, sid: seen.append((params, sid)))

        client._dispatch(json.dumps({"method": "Target.detachedFromTarget", "params": {"targetId": "T"}}))
        client._dispatch("not json")
        client._dispatch(json.dumps({"method": "Page.loadEventFired", "params": {}}))

        assert seen == [({"targetId": "T"}, None)]

    @pytest.mark.asyncio
    async def test_close_fails_pending_commands(self):
        client, ws = _client_with_fake_ws()
        ws.close = AsyncMock()

        task = asyncio.create_task(client.send("Target.getTargets"))
        await asyncio.sleep(0)
        await client.close()

        with pytest.raises(CDPConnectionError):
            await task
        assert not client.connected


# =============================================================================
# ChromeBrowser
# =============================================================================


def _browser_with_responses(responses):
    client = MagicMock()
    calls = []

    async def send(method, params=None, *, session_id=None):
        calls.append((method, params, session_id))
        result = responses.get(method, {})
        if isinstance(result, Exception):
            raise result
        return result

    client.send = send
    return ChromeBrowser(client), client, calls


class TestChromeBrowser:
    @pytest.mark.asyncio
    async def test_create_surface_opens_unfocused_window_in_new_context(self):
        browser, _, calls = _browser_with_responses(
            {
                "Target.createBrowserContext": {"browserContextId": "CTX"},
                "Target.createTarget": {"targetId": "HOST"},
                "Browser.getWindowForTarget": {"windowId": 7},
            }
        )

        surface = await browser.create_surface()

        assert surface == DisplaySurface(surface_id="CTX", window_id=7, host_target_id="HOST")
        methods = [c[0] for c in calls]
        assert methods == [
            "Target.createBrowserContext",
            "Target.createTarget",
            "Browser.getWindowForTarget",
            "Browser.setWindowBounds",
        ]
        params = calls[1][1]
        assert params["browserContextId"] == "CTX"
        assert params["newWindow"] is True
        assert params["background"] is True
        assert calls[3][1] == {"windowId": 7, "bounds": {"windowState": "normal"}}

    @pytest.mark.asyncio
    async def test_create_surface_disposes_context_on_failure(self):
        browser, _, calls = _browser_with_responses(
            {
                "Target.createBrowserContext": {"browserContextId": "CTX"},
                "Target.createTarget": CDPError("window creation blocked"),
            }
        )

        with pytest.raises(CDPError):
            await browser.create_surface()

        assert calls[-1] == ("Target.disposeBrowserContext", {"browserContextId": "CTX"}, None)

    @pytest.mark.asyncio
    async def test_create_surface_without_windows(self):
        browser, _, _ = _browser_with_responses(
            {
                "Target.createBrowserContext": {"browserContextId": "CTX"},
                "Target.createTarget": {"targetId": "HOST"},
                "Browser.getWindowForTarget": CDPError("Browser window not found"),
            }
        )

        surface = await browser.create_surface()

        assert surface.window_id is None
        assert surface.host_target_id == "HOST"

    @pytest.mark.asyncio
    async def test_list_targets_filters_by_context(self):
        browser, _, _ = _browser_with_responses(
            {
                "Target.getTargets": {
                    "targetInfos": [
                        {"targetId": "A", "type": "page", "browserContextId": "CTX", "url": "about:blank"},
                        {"targetId": "B", "type": "page", "browserContextId": "OTHER"},
                        {"targetId": "C", "type": "service_worker", "browserContextId": "CTX"},
                        {"targetId": "HOST", "type": "page", "browserContextId": "CTX"},
                    ]
                }
            }
        )

        targets = await browser.list_targets(DisplaySurface("CTX", host_target_id="HOST"))

        assert [(t.target_id, t.active) for t in targets] == [("A", False), ("HOST", True)]

    @pytest.mark.asyncio
    async def test_attach_routes_commands_through_session(self):
        browser, _, calls = _browser_with_responses(
            {"Target.attachToTarget": {"sessionId": "S1"}}
        )

        with pytest.raises(CDPError, match="not attached"):
            await browser.send("T1", "Page.enable")

        await browser.attach("T1")
        await browser.attach("T1")
        await browser.send("T1", "Page.enable")

        assert calls[0] == ("Target.attachToTarget", {"targetId": "T1", "flatten": True}, None)
        assert len([c for c in calls if c[0] == "Target.attachToTarget"]) == 1
        assert calls[-1] == ("Page.enable", None, "S1")

        await browser.detach("T1")
        assert calls[-1] == ("Target.detachFromTarget", {"sessionId": "S1"}, None)
        with pytest.raises(CDPError):
            await browser.send("T1", "Page.enable")

    @pytest.mark.asyncio
    async def test_detached_event_forgets_session(self):
        client, _ = _client_with_fake_ws()
        browser = ChromeBrowser(client)
        browser._sessions["T1"] = "S1"

        client._dispatch(
            json.dumps(
                {"method": "Target.detachedFromTarget", "params": {"sessionId": "S1", "targetId": "T1"}}
            )
        )

        with pytest.raises(CDPError, match="not attached"):
            await browser.send("T1", "Page.enable")

    @pytest.mark.asyncio
    async def test_close_targets_reports_every_failure(self):
        browser, _, calls = _browser_with_responses(
            {"Target.closeTarget": CDPError("No target with given id")}
        )

        with pytest.raises(CDPError) as exc_info:
            await browser.close_targets(["A", "B"])

        assert [c[1] for c in calls] == [{"targetId": "A"}, {"targetId": "B"}]
        assert "A:" in str(exc_info.value) and "B:" in str(exc_info.value)
