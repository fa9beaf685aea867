"""Time-boxed memoization of the reconciled event snapshot."""

import logging
import time
from typing import Callable, Optional

from gallery.models.gallery import Event
from gallery.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class SnapshotCache:
    """One shared snapshot slot, filled lazily and emptied by mutations.

    Two reads that miss at the same time may both reconcile; whichever
    finishes last owns the slot. A reconciliation that was already running
    when ``invalidate()`` was called hands its result to its caller but does
    not store it, so the first read after a mutation always reconciles.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: Optional[tuple[Event, ...]] = None
        self._fetched_at: float = 0.0
        self._generation = 0

    @property
    def is_populated(self) -> bool:
        return self._snapshot is not None

    @property
    def fetched_at(self) -> Optional[float]:
        return self._fetched_at if self._snapshot is not None else None

    def _is_fresh(self) -> bool:
        return self._snapshot is not None and (self.clock() - self._fetched_at) < self.ttl_seconds

    async def get_snapshot(self, force_refresh: bool = False) -> tuple[Event, ...]:
        if not force_refresh and self._is_fresh():
            return self._snapshot

        generation = self._generation
        snapshot = await self.engine.reconcile()

        if generation == self._generation:
            self._snapshot = snapshot
            self._fetched_at = self.clock()
        else:
            logger.debug("Snapshot invalidated during reconciliation, not caching it")
        return snapshot

    def invalidate(self) -> None:
        """Drop the slot. The next read reconciles; nothing is fetched here."""
        self._generation += 1
        self._snapshot = None
        self._fetched_at = 0.0
