"""Deadline combinator for remote steps that can hang."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from responsive_view.core.mirror.errors import StepTimeout

T = TypeVar("T")


def _consume_result(task: asyncio.Future) -> None:
    # Avoid "Task exception was never retrieved" for abandoned steps.
    if not task.cancelled():
        task.exception()


async def run_with_deadline(label: str, seconds: float, aw: Awaitable[T]) -> T:
    """Await `aw`, raising StepTimeout(label) if it takes longer than `seconds`.

    Unlike asyncio.wait_for, a TimeoutError raised by the operation itself is
    propagated unchanged rather than being reported as this deadline.
    """
    task = asyncio.ensure_future(aw)
    try:
        done, _ = await asyncio.wait({task}, timeout=seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task not in done:
        task.cancel()
        task.add_done_callback(_consume_result)
        raise StepTimeout(label, seconds)

    return task.result()
