"""
Fire-and-forget task tracking for best-effort remote writes.
"""

import asyncio
from typing import Awaitable, Set

from utils.logging_config import get_logger

logger = get_logger(__name__)


class BackgroundTasks:
    """
    Holds references to fire-and-forget tasks so they are not garbage collected
    mid-flight, and lets teardown code wait for whatever is pending.
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._pending: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, label: str = "") -> asyncio.Task:
        """Schedule coro on the running loop; must be called from inside the loop"""
        task = asyncio.get_running_loop().create_task(coro, name=f"{self.name}:{label}" if label else None)
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error!r}")

    async def drain(self):
        """Wait until every pending task (including ones spawned meanwhile) has finished"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._pending)
