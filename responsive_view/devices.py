"""Device preset catalog."""

from __future__ import annotations

from dataclasses import dataclass

MOBILE = "mobile"
TABLET = "tablet"
DESKTOP = "desktop"


@dataclass(frozen=True)
class DevicePreset:
    id: str
    label: str
    short_label: str
    width: int
    height: int
    pixel_ratio: float
    user_agent: str
    category: str  # mobile|tablet|desktop
    description: str

    @property
    def is_mobile(self) -> bool:
        return self.category == MOBILE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "shortLabel": self.short_label,
            "width": self.width,
            "height": self.height,
            "pixelRatio": self.pixel_ratio,
            "userAgent": self.user_agent,
            "category": self.category,
            "description": self.description,
        }


_UA_ANDROID_CHROME = (
    "Mozilla/5.0 (Linux; Android 15; Mobile) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Mobile Safari/537.36"
)
_UA_IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 18_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/18.1 Mobile/15E148 Safari/604.1"
)
_UA_MAC_CHROME = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_6) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

DEVICE_PRESETS: list[DevicePreset] = [
    DevicePreset(
        id="mobile-360x800",
        label="Mobile 360×800",
        short_label="Mobile",
        width=360,
        height=800,
        pixel_ratio=2,
        user_agent=_UA_ANDROID_CHROME,
        category=MOBILE,
        description="Common mobile breakpoint",
    ),
    DevicePreset(
        id="tablet-768x1024",
        label="Tablet 768×1024",
        short_label="Tablet",
        width=768,
        height=1024,
        pixel_ratio=2,
        user_agent=_UA_IPAD,
        category=TABLET,
        description="Classic tablet portrait breakpoint",
    ),
    DevicePreset(
        id="desktop-1920x1080",
        label="Desktop 1920×1080",
        short_label="1920px",
        width=1920,
        height=1080,
        pixel_ratio=1,
        user_agent=_UA_MAC_CHROME,
        category=DESKTOP,
        description="Baseline full HD desktop viewport",
    ),
    DevicePreset(
        id="iphone-16-pro",
        label="iPhone 16 Pro",
        short_label="iPhone",
        width=393,
        height=852,
        pixel_ratio=3,
        user_agent=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 18_1 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/18.1 Mobile/15E148 Safari/604.1"
        ),
        category=MOBILE,
        description="Apple flagship viewport @3x DPR",
    ),
    DevicePreset(
        id="pixel-9-pro",
        label="Pixel 9 Pro",
        short_label="Pixel",
        width=412,
        height=917,
        pixel_ratio=3,
        user_agent=(
            "Mozilla/5.0 (Linux; Android 15; Pixel 9 Pro XL) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Mobile Safari/537.36"
        ),
        category=MOBILE,
        description="Reference Android flagship viewport",
    ),
    DevicePreset(
        id="ipad-mini-6",
        label="iPad Mini 6",
        short_label="iPad",
        width=744,
        height=1133,
        pixel_ratio=2,
        user_agent=_UA_IPAD,
        category=TABLET,
        description="Compact tablet in portrait",
    ),
    DevicePreset(
        id="surface-pro-10",
        label="Surface Pro 10",
        short_label="Surface",
        width=1024,
        height=1366,
        pixel_ratio=2,
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        ),
        category=TABLET,
        description="Large tablet / hybrid reference",
    ),
    DevicePreset(
        id="macbook-pro-14",
        label="MacBook Pro 14”",
        short_label="Laptop",
        width=1512,
        height=982,
        pixel_ratio=2,
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_6) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/18.1 Safari/605.1.15"
        ),
        category=DESKTOP,
        description="Typical wide laptop viewport",
    ),
    DevicePreset(
        id="desktop-1280",
        label="Desktop 1280",
        short_label="1280px",
        width=1280,
        height=800,
        pixel_ratio=1,
        user_agent=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        ),
        category=DESKTOP,
        description="Baseline desktop breakpoint",
    ),
]

DEFAULT_DEVICE_IDS: tuple[str, ...] = (
    "mobile-360x800",
    "tablet-768x1024",
    "desktop-1920x1080",
)

DEVICE_BY_ID: dict[str, DevicePreset] = {preset.id: preset for preset in DEVICE_PRESETS}


def get_device_preset(device_id: str) -> DevicePreset | None:
    return DEVICE_BY_ID.get(device_id)
