#!/usr/bin/env python3
"""
Responsive View - multi-device live preview service

Connects to a Chrome instance started with --remote-debugging-port and serves
a websocket channel per preview session. Each session opens an isolated,
unfocused window with one tab per emulated device and streams screenshots of
every tab back over the channel.

Start Chrome first, e.g.:
    google-chrome --remote-debugging-port=9222 --user-data-dir=/tmp/rv-profile

Then run:
    python -m responsive_view.bridge
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from responsive_view.cdp import CDPClient, ChromeBrowser
from responsive_view.config import get_mirror_config
from responsive_view.core.mirror import MirrorRouter, SessionRegistry
from responsive_view.server import build_app, start_server
from responsive_view.storage import DurableStore, EphemeralStore, init_db
from responsive_view.utils import load_env

# Load environment
load_env()

# Configuration
CONFIG = get_mirror_config()

logging.basicConfig(
    level=getattr(logging, CONFIG.log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("bridge")


async def main():
    db = init_db(CONFIG.db_path)

    async with aiohttp.ClientSession() as http:
        client = CDPClient(
            CONFIG.cdp_endpoint,
            max_message_bytes=CONFIG.cdp_max_message_bytes,
            connect_timeout=CONFIG.cdp_connect_timeout,
        )
        await client.connect(http)

        browser = ChromeBrowser(client)
        registry = SessionRegistry(
            browser=browser,
            debugger=browser,
            timings=CONFIG.timings,
            jpeg_quality=CONFIG.jpeg_quality,
        )
        router = MirrorRouter(registry, prefix=CONFIG.channel_prefix)

        app = build_app(router=router, ephemeral=EphemeralStore(), durable=DurableStore(db))
        runner = await start_server(app, host=CONFIG.host, port=CONFIG.port)
        log.info(f"Listening on http://{CONFIG.host}:{CONFIG.port}")

        try:
            while client.connected:
                await asyncio.sleep(1)
            log.error("Lost DevTools connection; shutting down")
        finally:
            await registry.stop_all()
            await runner.cleanup()
            await client.close()
            db.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    run()
