"""Tests for device provisioning inside a display surface."""

import pytest

from responsive_view.cdp.errors import CDPError
from responsive_view.core.mirror.api import ResponsiveSession
from responsive_view.core.mirror.errors import ProvisioningError
from responsive_view.core.mirror.provisioning import NO_TARGETS_MESSAGE, provision_devices
from tests.fakes import FakeBrowser


def _session(*devices):
    return ResponsiveSession.create("s1", "https://example.com", list(devices))


@pytest.mark.asyncio
async def test_first_device_reuses_host_target():
    browser = FakeBrowser()
    surface = await browser.create_surface()

    devices = await provision_devices(
        browser, _session("mobile-360x800", "tablet-768x1024", "desktop-1920x1080"), surface
    )

    assert list(devices) == ["mobile-360x800", "tablet-768x1024", "desktop-1920x1080"]
    assert devices["mobile-360x800"].target_id == surface.host_target_id
    target_ids = [d.target_id for d in devices.values()]
    assert len(set(target_ids)) == 3
    assert set(target_ids) == set(browser.targets[surface.surface_id])
    assert not any(d.attached or d.initialized for d in devices.values())


@pytest.mark.asyncio
async def test_unknown_devices_are_skipped():
    browser = FakeBrowser()
    surface = await browser.create_surface()

    devices = await provision_devices(browser, _session("watch-42", "desktop-1920x1080"), surface)

    assert list(devices) == ["desktop-1920x1080"]
    assert devices["desktop-1920x1080"].target_id == surface.host_target_id


@pytest.mark.asyncio
async def test_no_known_devices_raises():
    browser = FakeBrowser()
    surface = await browser.create_surface()

    with pytest.raises(ProvisioningError, match=NO_TARGETS_MESSAGE):
        await provision_devices(browser, _session("watch-42"), surface)


@pytest.mark.asyncio
async def test_empty_surface_raises():
    browser = FakeBrowser()
    surface = await browser.create_surface()
    browser.targets[surface.surface_id] = []

    with pytest.raises(ProvisioningError, match=NO_TARGETS_MESSAGE):
        await provision_devices(browser, _session("mobile-360x800"), surface)


@pytest.mark.asyncio
async def test_partial_failure_closes_created_targets():
    browser = FakeBrowser()
    surface = await browser.create_surface()
    original_create = browser.create_target
    calls = []

    async def flaky_create(surface_, url):
        calls.append(url)
        if len(calls) == 2:
            raise CDPError("Target.createTarget failed")
        return await original_create(surface_, url)

    browser.create_target = flaky_create

    with pytest.raises(CDPError):
        await provision_devices(
            browser,
            _session("mobile-360x800", "tablet-768x1024", "desktop-1920x1080"),
            surface,
        )

    assert browser.closed_targets == [f"{surface.surface_id}-t1"]
    assert browser.targets[surface.surface_id] == [surface.host_target_id]
