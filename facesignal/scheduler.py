"""
Fixed-interval sampling on the asyncio event loop.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SamplingScheduler:
    """
    Fires `callback` every `interval` seconds of wall-clock time.

    The timer does not wait for a pass to finish; instead a tick that arrives
    while the previous pass is still running is skipped, so at most one pass
    is ever in flight.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], interval: float):
        if not (math.isfinite(interval) and interval > 0):
            raise ValueError(f"interval must be a positive finite number, got {interval}")
        self.interval = float(interval)
        self._callback = callback
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.fired = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        """Start ticking; must be called from inside the running loop."""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            self._tick()
            next_at += self.interval
            now = loop.time()
            if next_at < now:
                # fell behind (blocked loop); resume on the next whole period
                next_at = now + self.interval

    def _tick(self):
        if self.busy:
            self.skipped += 1
            logger.debug(f"[scheduler] previous pass still running; skipped={self.skipped}")
            return
        self.fired += 1
        self._inflight = asyncio.ensure_future(self._guarded())

    async def _guarded(self):
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[scheduler] analysis pass failed")

    def cancel(self) -> None:
        """Cancel the timer; no tick fires after this returns."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def drain(self) -> None:
        """Cancel and await the in-flight pass, dropping its result."""
        task, self._inflight = self._inflight, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def stop(self) -> None:
        self.cancel()
        await self.drain()
