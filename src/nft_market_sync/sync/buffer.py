"""Event buffer - capped, newest-first feed shared by the backfill and live producers."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from nft_market_sync.exceptions import ConfigError
from nft_market_sync.models.events import MarketEvent
from nft_market_sync.models.records import MergeOrder

log = logging.getLogger(__name__)


class EventBuffer:
    """Newest-first list of market events, never longer than ``capacity``.

    Every merge prepends one whole batch and then drops the oldest tail
    entries. Merges are serialized by a lock so a batch is never interleaved
    with another one. The list is replaced on each merge rather than
    modified, so snapshots taken earlier stay valid.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ConfigError("capacity must be >= 1", {"capacity": capacity})
        self._capacity = capacity
        self._events: tuple[MarketEvent, ...] = ()
        self._lock = asyncio.Lock()
        self._merges = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def merges(self) -> int:
        return self._merges

    def __len__(self) -> int:
        return len(self._events)

    def snapshot(self) -> tuple[MarketEvent, ...]:
        return self._events

    async def merge(
        self, batch: Sequence[MarketEvent], order: MergeOrder,
    ) -> tuple[MarketEvent, ...]:
        """Insert ``batch`` at the head and return the resulting snapshot.

        OLDEST_FIRST batches are reversed so their newest entry leads;
        NEWEST_FIRST batches keep their order.
        """
        async with self._lock:
            current = self._events
            incoming = await self._incoming(batch, order)
            merged = incoming + current
            dropped = max(0, len(merged) - self._capacity)
            self._events = merged[: self._capacity]
            self._merges += 1
            log.debug(
                "Merged %d events (%s), dropped %d, size %d",
                len(incoming), order.value, dropped, len(self._events),
            )
            return self._events

    async def _incoming(
        self, batch: Sequence[MarketEvent], order: MergeOrder,
    ) -> tuple[MarketEvent, ...]:
        """Head-ordered copy of ``batch``. Runs while the merge lock is held."""
        if order == MergeOrder.OLDEST_FIRST:
            return tuple(reversed(batch))
        return tuple(batch)
