"""
Concurrency gate.

Bounded admission control for pipeline runs. One gate is shared by every
run of an orchestrator; each run holds exactly one slot from acquire to
its terminal state.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from shared.config import settings
from shared.errors import ConfigError, JobCancelledError
from shared.logging import get_logger

logger = get_logger("pipeline.gate")


class GateSlot:
    """One acquired slot. Releasing more than once is a no-op."""

    def __init__(self, gate: "ConcurrencyGate"):
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._gate._release()


class ConcurrencyGate:
    """Counting semaphore sized to MAX_CONCURRENT_JOBS."""

    def __init__(self, limit: Optional[int] = None):
        limit = settings.max_concurrent_jobs if limit is None else limit
        if limit < 1:
            raise ConfigError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self.limit - self._in_use

    async def acquire(self) -> GateSlot:
        """
        Wait for a free slot.

        Raises:
            JobCancelledError: The waiting task was cancelled
        """
        try:
            await self._semaphore.acquire()
        except asyncio.CancelledError as e:
            raise JobCancelledError("Cancelled while waiting for a pipeline slot") from e
        self._in_use += 1
        logger.debug("Gate slot acquired", extra={"in_use": self._in_use, "limit": self.limit})
        return GateSlot(self)

    async def try_acquire(self) -> Optional[GateSlot]:
        """
        Take a slot without waiting; None when the gate is full.

        Never suspends. It is a coroutine only so callers can await it the
        same way as acquire(); asyncio.Semaphore has no synchronous acquire,
        and an unlocked semaphore grants its permit without yielding.
        """
        if self._semaphore.locked():
            return None
        await self._semaphore.acquire()
        self._in_use += 1
        return GateSlot(self)

    def _release(self) -> None:
        if self._in_use == 0:
            logger.warning("Ignoring gate release without a matching acquire")
            return
        self._in_use -= 1
        self._semaphore.release()
        logger.debug("Gate slot released", extra={"in_use": self._in_use, "limit": self.limit})

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[GateSlot]:
        """Hold a slot for the duration of the block, on every exit path."""
        held = await self.acquire()
        try:
            yield held
        finally:
            held.release()
