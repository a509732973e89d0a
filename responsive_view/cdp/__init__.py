"""Chrome DevTools protocol transport."""

from responsive_view.cdp.browser import ChromeBrowser
from responsive_view.cdp.client import CDPClient
from responsive_view.cdp.errors import (
    CDPCommandError,
    CDPConnectionError,
    CDPError,
    CDPProtocolError,
)

__all__ = [
    "CDPClient",
    "CDPCommandError",
    "CDPConnectionError",
    "CDPError",
    "CDPProtocolError",
    "ChromeBrowser",
]
