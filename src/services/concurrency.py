"""Concurrency limits for part uploads and large-upload admission."""

import asyncio
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Set

from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Slot:
    """Ticket returned by ConcurrencyGate.acquire."""

    id: int


class ConcurrencyGate:
    """
    Bounds how many tasks run at once.

    ``acquire`` suspends while all ``limit`` slots are held. Releasing a slot
    twice is a no-op, so cleanup paths can release unconditionally.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._held: Set[int] = set()
        self._ids = itertools.count(1)

    @property
    def in_flight(self) -> int:
        return len(self._held)

    async def acquire(self) -> Slot:
        await self._semaphore.acquire()
        slot = Slot(next(self._ids))
        self._held.add(slot.id)
        return slot

    def release(self, slot: Slot) -> None:
        if slot.id not in self._held:
            return
        self._held.discard(slot.id)
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[Slot]:
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            self.release(acquired)


class AdmissionController:
    """
    Per-process ceiling on concurrently running large uploads.

    Unlike ConcurrencyGate it never waits: a request over the ceiling is
    rejected so the client can retry later.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("Admission ceiling must be at least 1")
        self.max_concurrent = max_concurrent
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    def try_admit(self) -> bool:
        if self._active >= self.max_concurrent:
            logger.warning(
                "Large upload rejected",
                active=self._active,
                max_concurrent=self.max_concurrent,
            )
            return False
        self._active += 1
        return True

    def release(self) -> None:
        self._active = max(self._active - 1, 0)
