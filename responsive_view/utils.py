#!/usr/bin/env python3
"""
Shared utilities for the responsive-view service.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

_log = logging.getLogger("utils")

_LOCALHOST_LIKE = re.compile(r"^(localhost|127\.0\.0\.1|0\.0\.0\.0|\[::1\])", re.IGNORECASE)
_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _log.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Environment Loading
# =============================================================================


def load_env(env_path: Path | None = None) -> None:
    """Load .env file into os.environ. Handles quoted values and spaces."""
    if env_path is None:
        env_path = Path(__file__).parent.parent / ".env"

    if not env_path.exists():
        return

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            val = val.strip().strip('"').strip("'")
            os.environ[key.strip()] = val


# =============================================================================
# URL normalization
# =============================================================================


def normalize_target_url(raw: str) -> str:
    """Turn user input into a navigable URL.

    Bare hosts default to https, except loopback hosts which default to http
    since local dev servers rarely terminate TLS.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValueError("Enter a URL to preview")

    if _HTTP_SCHEME.match(trimmed):
        return trimmed

    if _LOCALHOST_LIKE.match(trimmed):
        return f"http://{trimmed}"

    candidate = f"https:{trimmed}" if trimmed.startswith("//") else trimmed
    parts = urlsplit(candidate)
    if parts.scheme and parts.netloc:
        return urlunsplit(parts)

    return f"https://{trimmed}"
