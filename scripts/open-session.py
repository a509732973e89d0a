#!/usr/bin/env python3
"""
Create a preview session on a running responsive-view service.

Usage:
    open-session.py [--device <id>]... <url>
    open-session.py --list-devices

Example:
    open-session.py localhost:3000
    open-session.py -d iphone-16-pro -d desktop-1280 example.com

Notes:
    - Service address defaults to RESPONSIVE_VIEW_HOST/RESPONSIVE_VIEW_PORT.
    - Without --device the service's default devices are used.
    - Connect a UI to the printed channel to start mirroring.
"""

import asyncio
import os
import sys
from pathlib import Path

import aiohttp

# Allow running this script directly.
# Ensures `import responsive_view.*` works when invoked as `python3 scripts/open-session.py`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from responsive_view.utils import load_env

# Load environment
load_env()


def _service_url() -> str:
    host = (os.getenv("RESPONSIVE_VIEW_HOST") or "127.0.0.1").strip() or "127.0.0.1"
    if host in {"0.0.0.0", "::", "[::]"}:
        host = "127.0.0.1"
    port = os.getenv("RESPONSIVE_VIEW_PORT", "7788")
    return f"http://{host}:{port}"


def _parse_args(argv: list[str]) -> tuple[str, list[str]] | None:
    if not argv:
        return None

    if argv[0] in {"-h", "--help"}:
        print(__doc__)
        return ("__exit__", [])

    if argv[0] == "--list-devices":
        return ("__list__", [])

    devices: list[str] = []
    rest: list[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg.startswith("--device="):
            devices.append(arg.split("=", 1)[1])
        elif arg in {"--device", "-d"} and i + 1 < len(argv):
            devices.append(argv[i + 1])
            i += 1
        else:
            rest.append(arg)
        i += 1

    url = " ".join(rest).strip()
    if not url:
        return None
    return url, devices


async def main():
    parsed = _parse_args(sys.argv[1:])
    if not parsed:
        print(__doc__)
        sys.exit(1)

    url, devices = parsed
    if url == "__exit__":
        sys.exit(0)

    base = _service_url()
    timeout = aiohttp.ClientTimeout(total=10)
    async with aiohttp.ClientSession(timeout=timeout) as http:
        if url == "__list__":
            async with http.get(f"{base}/devices") as resp:
                data = await resp.json()
            defaults = set(data.get("defaults", []))
            for preset in data.get("devices", []):
                mark = "*" if preset["id"] in defaults else " "
                print(f"{mark} {preset['id']:<20} {preset['width']}x{preset['height']} @{preset['pixelRatio']}x")
            sys.exit(0)

        payload: dict[str, object] = {"url": url}
        if devices:
            payload["devices"] = devices
        async with http.post(f"{base}/sessions", json=payload) as resp:
            data = await resp.json()
            if resp.status >= 400:
                print(f"Error: {data.get('error', resp.reason)}")
                sys.exit(2)

    session = data["session"]
    print(f"Session: {session['id']}")
    print(f"URL:     {session['url']}")
    print(f"Devices: {', '.join(session['devices'])}")
    ws_base = base.replace("http://", "ws://", 1)
    print(f"Channel: {ws_base}/channel/{data['channel']}")


if __name__ == "__main__":
    asyncio.run(main())
