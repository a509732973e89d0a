from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from responsive_view.utils import env_float, env_int

DEFAULT_CHANNEL_PREFIX = "responsive-view"


@dataclass(frozen=True)
class MirrorTimings:
    """Deadlines and delays (seconds) used by the capture engine."""

    capture_interval: float = 1.1
    attach_timeout: float = 2.5
    emulation_timeout: float = 2.5
    navigate_timeout: float = 5.0
    capture_timeout: float = 2.5
    command_timeout: float = 2.5
    settle_delay: float = 0.25
    paint_delay: float = 0.06


@dataclass(frozen=True)
class MirrorConfig:
    host: str
    port: int
    channel_prefix: str
    db_path: Path
    cdp_endpoint: str
    cdp_max_message_bytes: int
    cdp_connect_timeout: float
    jpeg_quality: int
    log_level: str
    timings: MirrorTimings = field(default_factory=MirrorTimings)


def _default_db_path() -> Path:
    default = Path(__file__).resolve().parents[1] / "responsive_view.db"
    return Path(os.getenv("RESPONSIVE_VIEW_DB", str(default)))


def _resolve_cdp_endpoint() -> str:
    endpoint = (os.getenv("CDP_ENDPOINT") or "").strip()
    if endpoint:
        return endpoint.rstrip("/")

    host = os.getenv("CDP_HOST", "127.0.0.1")
    port = os.getenv("CDP_PORT", "9222")
    return f"http://{host}:{port}"


def get_timings() -> MirrorTimings:
    defaults = MirrorTimings()
    return MirrorTimings(
        capture_interval=env_float("MIRROR_CAPTURE_INTERVAL_S", defaults.capture_interval),
        attach_timeout=env_float("MIRROR_ATTACH_TIMEOUT_S", defaults.attach_timeout),
        emulation_timeout=env_float("MIRROR_EMULATION_TIMEOUT_S", defaults.emulation_timeout),
        navigate_timeout=env_float("MIRROR_NAVIGATE_TIMEOUT_S", defaults.navigate_timeout),
        capture_timeout=env_float("MIRROR_CAPTURE_TIMEOUT_S", defaults.capture_timeout),
        command_timeout=env_float("MIRROR_COMMAND_TIMEOUT_S", defaults.command_timeout),
        settle_delay=env_float("MIRROR_SETTLE_DELAY_S", defaults.settle_delay),
        paint_delay=env_float("MIRROR_PAINT_DELAY_S", defaults.paint_delay),
    )


def get_mirror_config() -> MirrorConfig:
    """Build config from the environment (call load_env() first)."""
    host = (os.getenv("RESPONSIVE_VIEW_HOST") or "127.0.0.1").strip() or "127.0.0.1"
    prefix = (os.getenv("RESPONSIVE_VIEW_CHANNEL_PREFIX") or "").strip() or DEFAULT_CHANNEL_PREFIX
    quality = max(1, min(100, env_int("MIRROR_JPEG_QUALITY", 70)))

    return MirrorConfig(
        host=host,
        port=env_int("RESPONSIVE_VIEW_PORT", 7788),
        channel_prefix=prefix,
        db_path=_default_db_path(),
        cdp_endpoint=_resolve_cdp_endpoint(),
        cdp_max_message_bytes=env_int("CDP_MAX_MESSAGE_BYTES", 64 * 1024 * 1024),
        cdp_connect_timeout=env_float("CDP_CONNECT_TIMEOUT_S", 10.0),
        jpeg_quality=quality,
        log_level=(os.getenv("RESPONSIVE_VIEW_LOG_LEVEL") or "INFO").strip().upper(),
        timings=get_timings(),
    )
