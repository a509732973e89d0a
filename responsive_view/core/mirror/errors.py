"""Mirror engine exceptions.

These let the registry and router report failures as device statuses without
scraping strings.
"""

from __future__ import annotations


class MirrorError(RuntimeError):
    """Base class for mirror engine errors."""


class ProvisioningError(MirrorError):
    """The display surface or device targets could not be created."""


class StepTimeout(MirrorError):
    """A remote step did not finish before its deadline."""

    def __init__(self, label: str, seconds: float):
        self.label = label
        self.seconds = float(seconds)
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"{self.label} timed out"


class MessageError(ValueError):
    """Malformed inbound channel message."""


def describe_error(exc: BaseException, fallback: str) -> str:
    """User-facing text for a device status message."""
    text = str(exc).strip()
    return text or fallback
