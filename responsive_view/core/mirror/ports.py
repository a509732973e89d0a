"""Ports for the mirror engine.

These interfaces keep the registry and runtime independent of the concrete
browser connection (CDP over websocket) so tests can drive them with fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DisplaySurface:
    """An isolated on-screen window hosting one session's targets."""

    surface_id: str
    window_id: int | None = None
    host_target_id: str | None = None


@dataclass(frozen=True)
class TargetInfo:
    target_id: str
    url: str = ""
    active: bool = False


class BrowserPort(Protocol):
    async def create_surface(self) -> DisplaySurface: ...

    async def list_targets(self, surface: DisplaySurface) -> list[TargetInfo]: ...

    async def create_target(self, surface: DisplaySurface, url: str) -> str: ...

    async def activate_target(self, target_id: str) -> None: ...

    async def close_targets(self, target_ids: list[str]) -> None: ...

    async def remove_surface(self, surface: DisplaySurface) -> None: ...


class DebuggerPort(Protocol):
    async def attach(self, target_id: str) -> None: ...

    async def detach(self, target_id: str) -> None: ...

    async def send(self, target_id: str, method: str, params: dict | None = None) -> dict: ...
