"""Cancellable polling for email verification."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from core.config import settings

logger = logging.getLogger(__name__)

Check = Callable[[], Awaitable[bool]]


class VerificationPoller:
    """Calls ``check`` every ``interval`` seconds until it returns True.

    At most one check is in flight: a tick that fires while the previous check
    is still running is skipped. ``stop()`` cancels the timer and any running
    check.
    """

    def __init__(self, check: Check, interval: float = None):
        self._check = check
        self.interval = settings.verification_poll_interval if interval is None else interval
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._verified = asyncio.Event()
        self.ticks = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def verified(self) -> bool:
        return self._verified.is_set()

    def start(self) -> None:
        if self.running or self.verified:
            return
        self._loop_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in (self._loop_task, self._inflight) if t is not None and not t.done()]
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._loop_task = None
        self._inflight = None

    async def wait(self, timeout: float = None) -> bool:
        """Start polling if needed and wait until verified or ``timeout`` elapses."""
        self.start()
        try:
            await asyncio.wait_for(self._verified.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run(self) -> None:
        while not self.verified:
            await asyncio.sleep(self.interval)
            if self._inflight is not None and not self._inflight.done():
                self.skipped += 1
                logger.debug("Verification check still running, skipping tick")
                continue
            self.ticks += 1
            self._inflight = asyncio.create_task(self._tick())

    async def _tick(self) -> None:
        try:
            confirmed = await self._check()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Verification check failed: %s", e)
            return
        if confirmed:
            self._verified.set()
            if self._loop_task is not None and self._loop_task is not asyncio.current_task():
                self._loop_task.cancel()
