"""Per-device state and the CDP commands that drive one device target."""

from __future__ import annotations

from dataclasses import dataclass

from responsive_view.core.mirror.api import ClickEvent, WheelEvent
from responsive_view.core.mirror.ports import DebuggerPort
from responsive_view.devices import DevicePreset

MAX_TOUCH_POINTS = 5
DEFAULT_JPEG_QUALITY = 70


@dataclass
class DeviceRuntime:
    device_id: str
    target_id: str
    preset: DevicePreset
    attached: bool = False
    initialized: bool = False

    def __setattr__(self, name: str, value: object) -> None:
        if name == "target_id" and "target_id" in self.__dict__:
            raise AttributeError("target_id is assigned once at provisioning")
        super().__setattr__(name, value)

    def mark_initialized(self) -> None:
        if not self.attached:
            raise RuntimeError(f"{self.device_id}: cannot initialize before attach")
        self.initialized = True

    def clamp(self, x: float, y: float) -> tuple[float, float]:
        """Clamp logical coordinates into the preset viewport."""
        max_x = self.preset.width - 1
        max_y = self.preset.height - 1
        return max(0, min(max_x, x)), max(0, min(max_y, y))


async def apply_emulation(debugger: DebuggerPort, device: DeviceRuntime) -> None:
    preset = device.preset
    target = device.target_id

    await debugger.send(
        target,
        "Emulation.setDeviceMetricsOverride",
        {
            "width": preset.width,
            "height": preset.height,
            "deviceScaleFactor": preset.pixel_ratio,
            "mobile": preset.is_mobile,
        },
    )
    await debugger.send(target, "Network.setUserAgentOverride", {"userAgent": preset.user_agent})

    if preset.is_mobile:
        await debugger.send(
            target,
            "Emulation.setTouchEmulationEnabled",
            {"enabled": True, "maxTouchPoints": MAX_TOUCH_POINTS},
        )
    else:
        await debugger.send(target, "Emulation.setTouchEmulationEnabled", {"enabled": False})


async def navigate(debugger: DebuggerPort, device: DeviceRuntime, url: str) -> None:
    target = device.target_id
    await debugger.send(target, "Page.enable")
    await debugger.send(target, "Network.enable")
    await debugger.send(target, "Runtime.enable")
    await debugger.send(target, "Page.navigate", {"url": url})


async def capture_frame(
    debugger: DebuggerPort, device: DeviceRuntime, *, quality: int = DEFAULT_JPEG_QUALITY
) -> str:
    """Return one base64 JPEG of the device's logical viewport."""
    result = await debugger.send(
        device.target_id,
        "Page.captureScreenshot",
        {
            "format": "jpeg",
            "quality": quality,
            "fromSurface": True,
            "captureBeyondViewport": False,
            "clip": {
                "x": 0,
                "y": 0,
                "width": device.preset.width,
                "height": device.preset.height,
                "scale": 1,
            },
        },
    )
    data = result.get("data") if isinstance(result, dict) else None
    if not isinstance(data, str) or not data:
        raise RuntimeError("Screenshot returned no image data")
    return data


async def reload_page(debugger: DebuggerPort, device: DeviceRuntime) -> None:
    await debugger.send(device.target_id, "Page.reload", {"ignoreCache": True})


async def dispatch_click(debugger: DebuggerPort, device: DeviceRuntime, event: ClickEvent) -> None:
    x, y = device.clamp(event.x, event.y)
    button = "right" if event.button == 2 else "left"
    for phase in ("mousePressed", "mouseReleased"):
        await debugger.send(
            device.target_id,
            "Input.dispatchMouseEvent",
            {"type": phase, "x": x, "y": y, "button": button, "clickCount": 1},
        )


async def dispatch_wheel(debugger: DebuggerPort, device: DeviceRuntime, event: WheelEvent) -> None:
    x, y = device.clamp(event.x, event.y)
    await debugger.send(
        device.target_id,
        "Input.dispatchMouseEvent",
        {
            "type": "mouseWheel",
            "x": x,
            "y": y,
            "deltaX": event.delta_x,
            "deltaY": event.delta_y,
        },
    )
