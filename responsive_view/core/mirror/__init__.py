"""Mirror engine (session orchestration and capture).

This package implements:
- a process-wide session registry (one runtime per session id)
- per-device provisioning, debugger attach and emulation setup
- a reentrancy-guarded capture loop publishing frames/status to the UI
- reload and input forwarding

The browser connection and the UI channel are injected via ports.
"""

from responsive_view.core.mirror.registry import SessionRegistry
from responsive_view.core.mirror.router import MirrorRouter
from responsive_view.core.mirror.runtime import SessionRuntime

__all__ = ["MirrorRouter", "SessionRegistry", "SessionRuntime"]
