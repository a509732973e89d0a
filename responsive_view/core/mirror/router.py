"""UI message router.

Maps a channel name to a session id, validates inbound messages and
dispatches them to the registry / runtime. It is the single error boundary
for channel traffic: nothing raised while handling a message escapes to the
transport.
"""

from __future__ import annotations

import asyncio
import logging

from responsive_view.config import DEFAULT_CHANNEL_PREFIX
from responsive_view.core.mirror.api import (
    STATUS_ERROR,
    ChannelPort,
    ForwardInput,
    InboundMessage,
    ReloadDevice,
    StartMirror,
    StatusMessage,
    StopMirror,
    parse_inbound,
)
from responsive_view.core.mirror.errors import describe_error
from responsive_view.core.mirror.registry import SessionRegistry

log = logging.getLogger("mirror")


class MirrorRouter:
    def __init__(self, registry: SessionRegistry, *, prefix: str = DEFAULT_CHANNEL_PREFIX):
        self.registry = registry
        self.prefix = prefix

    def channel_name(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    def session_id_for_channel(self, name: str) -> str | None:
        head = f"{self.prefix}:"
        if not name or not name.startswith(head):
            return None
        session_id = name[len(head) :]
        return session_id or None

    async def handle(self, session_id: str, channel: ChannelPort, raw: object) -> None:
        """Handle one decoded message from the channel bound to `session_id`."""
        try:
            message = parse_inbound(raw)
            await self.dispatch(session_id, channel, message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("[%s] channel message failed", session_id)
            await self._report_failure(session_id, raw, e)

    async def dispatch(self, session_id: str, channel: ChannelPort, message: InboundMessage) -> None:
        if isinstance(message, StartMirror):
            if message.session.id != session_id:
                log.warning(
                    "[%s] start for session %s on foreign channel; ignoring",
                    session_id,
                    message.session.id,
                )
                return
            await self.registry.start(message.session, channel, session_id=session_id)
            return

        if isinstance(message, StopMirror):
            if not self._owned(session_id, message.session_id):
                return
            await self.registry.stop(session_id)
            return

        if isinstance(message, ReloadDevice):
            if not self._owned(session_id, message.session_id):
                return
            runtime = self.registry.get(session_id)
            if runtime is None:
                return
            await runtime.reload_device(message.device_id)
            return

        if isinstance(message, ForwardInput):
            if not self._owned(session_id, message.session_id):
                return
            runtime = self.registry.get(session_id)
            if runtime is None:
                return
            await runtime.forward_input(message.device_id, message.event)
            return

        raise TypeError(f"Unhandled inbound message: {type(message).__name__}")

    async def disconnected(self, session_id: str) -> None:
        """The UI channel went away; tear the session down."""
        try:
            await self.registry.stop(session_id)
        except Exception:
            log.exception("[%s] stop after disconnect failed", session_id)

    def _owned(self, session_id: str, message_session_id: str) -> bool:
        if message_session_id == session_id:
            return True
        log.warning(
            "[%s] message for session %s on foreign channel; ignoring",
            session_id,
            message_session_id,
        )
        return False

    async def _report_failure(self, session_id: str, raw: object, exc: Exception) -> None:
        runtime = self.registry.get(session_id)
        if runtime is None:
            return

        text = describe_error(exc, "Unexpected error")
        device_id = raw.get("deviceId") if isinstance(raw, dict) else None
        if isinstance(device_id, str) and device_id:
            await runtime.emit(
                StatusMessage(
                    session_id=runtime.session.id,
                    device_id=device_id,
                    status=STATUS_ERROR,
                    message=text,
                )
            )
            return

        await runtime.emit_error_all(text)
