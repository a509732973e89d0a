"""Device provisioning inside a freshly created display surface."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from responsive_view.core.mirror.api import ResponsiveSession
from responsive_view.core.mirror.device import DeviceRuntime
from responsive_view.core.mirror.errors import ProvisioningError
from responsive_view.core.mirror.ports import BrowserPort, DisplaySurface
from responsive_view.devices import DEVICE_BY_ID, DevicePreset

log = logging.getLogger("mirror.provisioning")

NO_TARGETS_MESSAGE = "no device targets were created"


async def provision_devices(
    browser: BrowserPort,
    session: ResponsiveSession,
    surface: DisplaySurface,
    catalog: Mapping[str, DevicePreset] = DEVICE_BY_ID,
) -> dict[str, DeviceRuntime]:
    """Create one DeviceRuntime per known requested device, in request order.

    The first device reuses the target the surface was opened with; closing
    and recreating it could take the window down with it. Every other device
    gets a new background target in the same surface. If a later target
    cannot be created, the ones already created are closed before raising.
    """
    device_ids = [d for d in session.devices if d in catalog]
    skipped = [d for d in session.devices if d not in catalog]
    if skipped:
        log.warning("Session %s: skipping unknown device(s): %s", session.id, ", ".join(skipped))
    if not device_ids:
        raise ProvisioningError(NO_TARGETS_MESSAGE)

    targets = await browser.list_targets(surface)
    host = next((t for t in targets if t.active), None) or (targets[0] if targets else None)
    if host is None:
        raise ProvisioningError(NO_TARGETS_MESSAGE)

    first_id = device_ids[0]
    devices: dict[str, DeviceRuntime] = {
        first_id: DeviceRuntime(
            device_id=first_id, target_id=host.target_id, preset=catalog[first_id]
        )
    }

    created: list[str] = []
    try:
        for device_id in device_ids[1:]:
            target_id = await browser.create_target(surface, session.url)
            created.append(target_id)
            devices[device_id] = DeviceRuntime(
                device_id=device_id, target_id=target_id, preset=catalog[device_id]
            )
    except asyncio.CancelledError:
        raise
    except Exception:
        if created:
            try:
                await browser.close_targets(created)
            except Exception as e:
                log.debug("Failed to close partially provisioned targets: %s", e)
        raise

    return devices
