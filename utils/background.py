"""
Best-effort execution of side-channel work (notifications, pushes).

Callers finish their primary mutation first and then hand follow-up work to
these helpers; a failure is logged with the label and never reaches the
caller.
"""

import asyncio
from typing import Any, Awaitable, Optional, Set

from logging_config import get_logger

logger = get_logger("background")


async def run_best_effort(awaitable: Awaitable[Any], label: str) -> Optional[Any]:
    """Await ``awaitable``; on failure log it and return None."""
    try:
        return await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.error(f"Best-effort task '{label}' failed: {exc}", exc_info=True, extra={"data": {"label": label}})
        return None


class BestEffortRunner:
    """
    Fire-and-forget scheduling on the running loop. Holds strong references
    to spawned tasks until they finish so they are not garbage collected
    mid-flight, and lets the owner drain them on shutdown.
    """

    def __init__(self) -> None:
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def spawn(self, awaitable: Awaitable[Any], label: str) -> asyncio.Task:
        task = asyncio.ensure_future(run_best_effort(awaitable, label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for spawned tasks to finish, used on shutdown and in tests."""
        if not self._pending:
            return
        await asyncio.wait(set(self._pending), timeout=timeout)
