"""Sync engine - runs the one-shot backfill and the live subscriptions into one feed."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from nft_market_sync.chain.decoder import EventDecoder
from nft_market_sync.exceptions import EngineStoppedError, FatalError
from nft_market_sync.interfaces.node import NodeClient
from nft_market_sync.interfaces.source import RangeLogSource
from nft_market_sync.models.config import SyncConfig
from nft_market_sync.models.events import MarketEvent
from nft_market_sync.models.records import (
    EngineStatus,
    HistoricalState,
    LiveState,
    MergeOrder,
    WalkResult,
    WalkWarning,
)
from nft_market_sync.sync.buffer import EventBuffer
from nft_market_sync.sync.subscriber import LiveSubscriber
from nft_market_sync.sync.walker import AdaptiveBatchWalker

log = logging.getLogger(__name__)

UpdateListener = Callable[[tuple[MarketEvent, ...]], None]


class SyncEngine:
    """Owns the event buffer and both producer lifecycles.

    Historical: NOT_STARTED -> RUNNING -> COMPLETED | FAILED (partial result
    still merged), or CANCELLED when stop() interrupts the walk.
    Live: NOT_STARTED -> SUBSCRIBED -> STOPPED.

    Subscriptions are opened before the backfill starts so no live event is
    missed. Live and historical batches may overlap; nothing is
    de-duplicated.
    """

    def __init__(
        self,
        node: NodeClient,
        source: RangeLogSource,
        decoder: EventDecoder,
        address: str,
        config: SyncConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config.validate()
        self._node = node
        self._decoder = decoder
        self._address = address
        self._cfg = config
        self._clock = clock

        self._buffer: EventBuffer | None = EventBuffer(config.capacity)
        self._walker = AdaptiveBatchWalker(
            source, address, decoder.topics, config, on_warning=self._on_walk_warning,
        )
        self._subscribers = [
            LiveSubscriber(
                node, decoder, spec, address,
                on_events=self._on_live_events,
                on_error=self._on_live_error,
                clock=clock,
            )
            for spec in decoder.specs
        ]

        self._historical = HistoricalState.NOT_STARTED
        self._live = LiveState.NOT_STARTED
        self._walk_task: asyncio.Task | None = None
        self._walk_range: tuple[int, int] | None = None
        self._listeners: list[UpdateListener] = []
        self._last_error: Exception | None = None
        self._stopped = False
        self._lifecycle_lock = asyncio.Lock()

    # ── Lifecycle ─────────────────────────────────────────

    async def start(
        self,
        from_block: int | None = None,
        to_block: int | None = None,
        max_total: int | None = None,
    ) -> None:
        """Open the live subscriptions and launch the backfill once.

        Missing bounds default to ``[head - historical_span, head]``.
        Repeated calls leave a running or finished backfill untouched.
        """
        if from_block is not None and to_block is not None and from_block > to_block:
            err = FatalError(
                "from_block must not exceed to_block",
                {"from_block": from_block, "to_block": to_block},
            )
            self._last_error = err
            raise err
        if max_total is not None and max_total < 1:
            raise FatalError("max_total must be >= 1", {"max_total": max_total})

        async with self._lifecycle_lock:
            if self._stopped:
                raise EngineStoppedError("engine has been stopped")

            if self._live == LiveState.NOT_STARTED:
                await self._start_live()

            if self._historical != HistoricalState.NOT_STARTED:
                log.debug("Backfill already %s, not restarting", self._historical.value)
                return
            self._historical = HistoricalState.RUNNING

        # Resolved without the lock so stop() is not held up by a slow node
        try:
            if to_block is None:
                to_block = await self._node.get_latest_block_number()
            if from_block is None:
                from_block = max(0, to_block - self._cfg.historical_span)
        except Exception as exc:
            log.error("Cannot resolve backfill range: %s", exc)
            self._last_error = exc
            if self._historical == HistoricalState.RUNNING:
                self._historical = HistoricalState.FAILED
            return

        async with self._lifecycle_lock:
            if self._stopped:
                log.debug("Engine stopped while resolving the backfill range")
                return
            self._walk_range = (from_block, to_block)
            self._walk_task = asyncio.create_task(
                self._run_historical(from_block, to_block, max_total)
            )
            log.info("Sync engine started (backfill %d-%d)", from_block, to_block)

    async def stop(self) -> None:
        """Cancel the backfill, close every subscription and drop the buffer."""
        if self._stopped:
            return
        self._stopped = True

        async with self._lifecycle_lock:
            if self._walk_task is not None and not self._walk_task.done():
                self._walk_task.cancel()
                try:
                    await self._walk_task
                except asyncio.CancelledError:
                    pass
            if self._historical == HistoricalState.RUNNING:
                self._historical = HistoricalState.CANCELLED

            for sub in self._subscribers:
                try:
                    await sub.stop()
                except Exception as exc:
                    log.warning("Closing %s subscription failed: %s", sub.kind, exc)
            self._live = LiveState.STOPPED

            self._buffer = None
            self._listeners.clear()
            log.info("Sync engine stopped")

    async def wait_historical(self) -> WalkResult | None:
        """Wait for the backfill task to finish and return its result."""
        task = self._walk_task
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self.walk_result

    async def _start_live(self) -> None:
        started: list[LiveSubscriber] = []
        try:
            for sub in self._subscribers:
                await sub.start()
                started.append(sub)
        except Exception as exc:
            log.error("Opening live subscriptions failed: %s", exc)
            self._last_error = exc
            for sub in started:
                await sub.reset()
            raise
        self._live = LiveState.SUBSCRIBED

    async def _run_historical(self, from_block: int, to_block: int, max_total: int | None) -> None:
        try:
            result = await self._walker.walk(from_block, to_block, max_total)
            events = self._decoder.decode_batch(result.logs, self._clock())
            await self._merge(events, MergeOrder.OLDEST_FIRST)
        except asyncio.CancelledError:
            self._historical = HistoricalState.CANCELLED
            log.info("Backfill cancelled, partial results discarded")
            raise
        except Exception as exc:
            log.error("Backfill crashed: %s", exc, exc_info=True)
            self._historical = HistoricalState.FAILED
            self._last_error = exc
            return

        if result.error is not None:
            self._historical = HistoricalState.FAILED
            self._last_error = result.error
        else:
            self._historical = HistoricalState.COMPLETED

    # ── Producers ─────────────────────────────────────────

    async def _merge(self, events: list[MarketEvent], order: MergeOrder) -> None:
        buffer = self._buffer
        if buffer is None or not events:
            return
        snapshot = await buffer.merge(events, order)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                log.error("Update listener failed: %s", exc, exc_info=True)

    async def _on_live_events(self, events: list[MarketEvent]) -> None:
        await self._merge(events, MergeOrder.NEWEST_FIRST)

    def _on_live_error(self, exc: Exception) -> None:
        self._last_error = exc

    def _on_walk_warning(self, warning: WalkWarning) -> None:
        log.debug("Backfill warning: %s", warning.message)

    # ── Consumer surface ──────────────────────────────────

    def on_update(self, callback: UpdateListener) -> Callable[[], None]:
        """Register a listener fired with the new snapshot after each merge.

        Returns a function that unregisters the listener.
        """
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def snapshot(self) -> tuple[MarketEvent, ...]:
        if self._buffer is None:
            return ()
        return self._buffer.snapshot()

    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def historical_state(self) -> HistoricalState:
        return self._historical

    @property
    def live_state(self) -> LiveState:
        return self._live

    @property
    def walk_result(self) -> WalkResult | None:
        return self._walker.result

    @property
    def subscribers(self) -> list[LiveSubscriber]:
        return list(self._subscribers)

    def status(self) -> EngineStatus:
        result = self._walker.result
        from_block, to_block = self._walk_range or (None, None)
        return EngineStatus(
            historical=self._historical,
            live=self._live,
            buffered=len(self._buffer) if self._buffer is not None else 0,
            capacity=self._cfg.capacity,
            from_block=from_block,
            to_block=to_block,
            historical_logs=len(result.logs) if result else 0,
            chunk_calls=result.chunk_calls if result else 0,
            range_retries=result.range_retries if result else 0,
            skipped_ranges=len(result.skipped_ranges) if result else 0,
            warnings=len(result.warnings) if result else 0,
            subscription_errors=sum(s.error_count for s in self._subscribers),
            last_error=str(self._last_error) if self._last_error else None,
        )
