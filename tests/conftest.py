"""Shared pytest fixtures for the responsive-view test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from responsive_view.config import MirrorTimings
from responsive_view.core.mirror.registry import SessionRegistry
from tests.fakes import FakeBrowser, RecordingChannel


@pytest.fixture
def fake_browser():
    return FakeBrowser()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def timings():
    # Long interval: only the immediate first tick fires during a test.
    return MirrorTimings(
        capture_interval=60.0,
        attach_timeout=0.5,
        emulation_timeout=0.5,
        navigate_timeout=0.5,
        capture_timeout=0.1,
        command_timeout=0.5,
        settle_delay=0.0,
        paint_delay=0.0,
    )


@pytest.fixture
def registry(fake_browser, timings):
    return SessionRegistry(browser=fake_browser, debugger=fake_browser, timings=timings)
