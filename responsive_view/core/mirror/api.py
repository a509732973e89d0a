"""Public API for the mirror engine.

This module is the stable boundary between:
- the UI channel (websocket transport, JSON wire format)
- the session registry / runtime implementation

Inbound and outbound messages are closed sets of frozen dataclasses. The wire
format uses the camelCase keys the UI speaks; `parse_inbound` and `to_wire`
are the only places that know about it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Union

from responsive_view.core.mirror.errors import MessageError
from responsive_view.utils import utc_timestamp

START = "mirror/start"
STOP = "mirror/stop"
RELOAD = "mirror/reload"
INPUT = "mirror/input"
FRAME = "mirror/frame"
STATUS = "mirror/status"

STATUS_STARTING = "starting"
STATUS_LIVE = "live"
STATUS_ERROR = "error"

SESSION_MODES = ("mirror", "iframe")


@dataclass(frozen=True)
class ResponsiveSession:
    id: str
    url: str
    devices: tuple[str, ...]
    mode: str = "mirror"
    created_at: str = ""

    @classmethod
    def create(
        cls,
        session_id: str,
        url: str,
        devices: list[str] | tuple[str, ...],
        *,
        mode: str = "mirror",
        created_at: str | None = None,
    ) -> "ResponsiveSession":
        ordered = tuple(dict.fromkeys(d for d in devices if d))
        if not session_id:
            raise MessageError("session id is required")
        if not ordered:
            raise MessageError("session needs at least one device")
        if mode not in SESSION_MODES:
            raise MessageError(f"unknown session mode: {mode!r}")
        return cls(
            id=session_id,
            url=url,
            devices=ordered,
            mode=mode,
            created_at=created_at or utc_timestamp(),
        )

    @classmethod
    def from_dict(cls, data: object) -> "ResponsiveSession":
        if not isinstance(data, dict):
            raise MessageError("session must be an object")
        devices = data.get("devices")
        if not isinstance(devices, list) or not all(isinstance(d, str) for d in devices):
            raise MessageError("session.devices must be a list of strings")
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise MessageError("session.url is required")
        return cls.create(
            _require_str(data, "id"),
            url,
            devices,
            mode=str(data.get("mode") or "mirror"),
            created_at=data.get("createdAt") if isinstance(data.get("createdAt"), str) else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "devices": list(self.devices),
            "mode": self.mode,
            "createdAt": self.created_at,
        }


# -----------------
# Input events
# -----------------


@dataclass(frozen=True)
class ClickEvent:
    x: float
    y: float
    button: int = 0


@dataclass(frozen=True)
class WheelEvent:
    x: float
    y: float
    delta_x: float
    delta_y: float


InputEvent = Union[ClickEvent, WheelEvent]


# -----------------
# Inbound (UI -> core)
# -----------------


@dataclass(frozen=True)
class StartMirror:
    session: ResponsiveSession


@dataclass(frozen=True)
class StopMirror:
    session_id: str


@dataclass(frozen=True)
class ReloadDevice:
    session_id: str
    device_id: str


@dataclass(frozen=True)
class ForwardInput:
    session_id: str
    device_id: str
    event: InputEvent


InboundMessage = Union[StartMirror, StopMirror, ReloadDevice, ForwardInput]


# -----------------
# Outbound (core -> UI)
# -----------------


@dataclass(frozen=True)
class FrameMessage:
    session_id: str
    device_id: str
    data_base64: str
    captured_at: str
    mime: str = "image/jpeg"


@dataclass(frozen=True)
class StatusMessage:
    session_id: str
    device_id: str
    status: str  # starting|live|error
    message: str | None = None


OutboundMessage = Union[FrameMessage, StatusMessage]


class ChannelPort(Protocol):
    """Per-session UI channel. `send` may raise once the peer is gone."""

    async def send(self, payload: dict) -> None: ...


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MessageError(f"{key} is required")
    return value


def _require_number(data: dict, key: str) -> float:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly. json.loads also yields NaN/Infinity.
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise MessageError(f"event.{key} must be a number")
    return value


def _parse_event(raw: object) -> InputEvent:
    if not isinstance(raw, dict):
        raise MessageError("event must be an object")
    kind = raw.get("kind")
    if kind == "click":
        button = raw.get("button", 0)
        if button is None:
            button = 0
        if isinstance(button, bool) or not isinstance(button, int):
            raise MessageError("event.button must be an integer")
        return ClickEvent(x=_require_number(raw, "x"), y=_require_number(raw, "y"), button=button)
    if kind == "wheel":
        return WheelEvent(
            x=_require_number(raw, "x"),
            y=_require_number(raw, "y"),
            delta_x=_require_number(raw, "deltaX"),
            delta_y=_require_number(raw, "deltaY"),
        )
    raise MessageError(f"unknown input kind: {kind!r}")


def parse_inbound(raw: object) -> InboundMessage:
    """Validate a decoded JSON message from the UI."""
    if not isinstance(raw, dict):
        raise MessageError("message must be an object")

    msg_type = raw.get("type")
    if msg_type == START:
        return StartMirror(session=ResponsiveSession.from_dict(raw.get("session")))
    if msg_type == STOP:
        return StopMirror(session_id=_require_str(raw, "sessionId"))
    if msg_type == RELOAD:
        return ReloadDevice(
            session_id=_require_str(raw, "sessionId"),
            device_id=_require_str(raw, "deviceId"),
        )
    if msg_type == INPUT:
        return ForwardInput(
            session_id=_require_str(raw, "sessionId"),
            device_id=_require_str(raw, "deviceId"),
            event=_parse_event(raw.get("event")),
        )
    raise MessageError(f"unknown message type: {msg_type!r}")


def to_wire(message: OutboundMessage) -> dict:
    if isinstance(message, FrameMessage):
        return {
            "type": FRAME,
            "sessionId": message.session_id,
            "deviceId": message.device_id,
            "mime": message.mime,
            "dataBase64": message.data_base64,
            "capturedAt": message.captured_at,
        }
    if isinstance(message, StatusMessage):
        payload: dict[str, object] = {
            "type": STATUS,
            "sessionId": message.session_id,
            "deviceId": message.device_id,
            "status": message.status,
        }
        if message.message is not None:
            payload["message"] = message.message
        return payload
    raise TypeError(f"Unhandled outbound message: {type(message).__name__}")
