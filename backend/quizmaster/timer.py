from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], Awaitable[None]]
ExpireCallback = Callable[[], Awaitable[None]]


class CountdownTimer:
    """Counts ``limit`` down to zero, one step per ``interval`` seconds.

    Every intermediate value is handed to ``on_tick``; reaching zero calls
    ``on_expire`` once. After ``cancel()`` neither callback fires again.
    A timer runs once; each question gets a new timer starting from the limit.
    """

    def __init__(
        self,
        limit: int,
        on_tick: TickCallback,
        on_expire: ExpireCallback,
        *,
        interval: float = 1.0,
        name: str = "countdown",
    ):
        if limit < 1:
            raise ValueError("Countdown limit must be at least 1")
        self.limit = limit
        self.interval = interval
        self.name = name
        self.remaining = limit
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._expired = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"Timer {self.name} was already started")
        self._task = asyncio.create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._cancelled or self._expired:
            return
        self._cancelled = True
        task = self._task
        # The expiry callback may end up cancelling its own timer; let it finish.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        logger.debug("Timer %s cancelled at %s", self.name, self.remaining)

    async def wait(self) -> None:
        if self._task is None or self._task is asyncio.current_task():
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled:
                raise

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.interval)
            if self._cancelled:
                return
            self.remaining -= 1
            await self._on_tick(self.remaining)

        if self._cancelled:
            return
        self._expired = True
        logger.debug("Timer %s expired", self.name)
        await self._on_expire()
