"""DevTools protocol exceptions.

These exception types let the mirror engine report failures consistently
without scraping strings.
"""

from __future__ import annotations


class CDPError(RuntimeError):
    """Base class for DevTools client errors."""


class CDPConnectionError(CDPError):
    """The DevTools endpoint is unreachable or the websocket closed."""


class CDPProtocolError(CDPError):
    """Malformed/invalid data from the DevTools endpoint."""

    def __init__(self, message: str, *, payload_preview: str | None = None):
        self.message = message
        self.payload_preview = payload_preview
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.payload_preview:
            return f"DevTools protocol error: {self.message} (payload={self.payload_preview!r})"
        return f"DevTools protocol error: {self.message}"


class CDPCommandError(CDPError):
    """A command returned an error response."""

    def __init__(
        self,
        method: str,
        *,
        code: int | None = None,
        message: str | None = None,
        data: object | None = None,
    ):
        self.method = method
        self.code = code
        self.message = message
        self.data = data
        super().__init__(self.__str__())

    def __str__(self) -> str:
        detail = (self.message or "").strip() or "unknown error"
        if self.code is not None:
            return f"{self.method} failed: {detail} ({self.code})"
        return f"{self.method} failed: {detail}"
