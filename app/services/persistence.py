"""
Best-effort background persistence.

Callers commit their in-memory state first and return; the write to the cache
or remote store runs afterwards and a failure is only logged. Writes run one
at a time in the order they were scheduled, so the last state wins.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Set

from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class PersistenceQueue:
    """Runs blocking persistence calls as ordered background tasks"""

    def __init__(self):
        self._pending: Set[asyncio.Task] = set()
        self._lock: Optional[asyncio.Lock] = None

    def schedule(self, func: Callable[..., Any], *args: Any, description: str = "") -> asyncio.Task:
        if self._lock is None:
            self._lock = asyncio.Lock()
        task = asyncio.get_running_loop().create_task(self._run(func, args, description))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, func: Callable[..., Any], args: tuple, description: str) -> None:
        async with self._lock:
            try:
                await run_in_threadpool(func, *args)
            except Exception as e:
                logger.error(f"Persistence failed ({description or getattr(func, '__name__', func)}): {e}")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending))
