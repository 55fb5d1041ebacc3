"""Feed daemon - wires the node, decoder and sync engine together."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable

from nft_market_sync.chain.decoder import EventDecoder, load_abi
from nft_market_sync.chain.node import Web3NodeClient
from nft_market_sync.chain.source import NodeRangeLogSource
from nft_market_sync.interfaces.node import NodeClient
from nft_market_sync.models.config import FeedConfig
from nft_market_sync.models.events import MarketEvent
from nft_market_sync.sync.engine import SyncEngine

log = logging.getLogger(__name__)

OnNewEvents = Callable[[list[MarketEvent]], None]


def new_head(
    previous: tuple[MarketEvent, ...], current: tuple[MarketEvent, ...],
) -> list[MarketEvent]:
    """Entries prepended to ``current`` since ``previous`` was taken."""
    if not previous:
        return list(current)
    anchor = previous[0]
    for i, event in enumerate(current):
        if event is anchor:
            return list(current[:i])
    return list(current)


class FeedDaemon:
    """Long-running NFT market feed.

    Starts the sync engine, reports newly merged events to ``on_events``
    and logs a status line every ``status_interval`` seconds until stopped.
    """

    def __init__(
        self,
        cfg: FeedConfig,
        on_events: OnNewEvents | None = None,
        node: NodeClient | None = None,
    ) -> None:
        self._cfg = cfg
        self._on_events = on_events
        self._running = False
        self._stop_event = asyncio.Event()
        self._last_snapshot: tuple[MarketEvent, ...] = ()

        abi = load_abi(cfg.abi_path) if cfg.abi_path else None
        self.node: NodeClient = node or Web3NodeClient(
            cfg.rpc_url, cfg.poll_interval, cfg.request_timeout,
        )
        self.decoder = EventDecoder(abi)
        self.source = NodeRangeLogSource(self.node)
        self.engine = SyncEngine(
            self.node, self.source, self.decoder, cfg.contract_address, cfg.sync,
        )

    async def start(self) -> None:
        """Run the engine until stop() is called."""
        log.info("Starting NFT market feed")
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Contract: %s", self._cfg.contract_address)
        log.info(
            "  Capacity: %d, span: %d blocks",
            self._cfg.sync.capacity, self._cfg.sync.historical_span,
        )

        self._running = True
        remove_listener = self.engine.on_update(self._handle_update)
        try:
            await self.engine.start()
            await self._main_loop()
        finally:
            remove_listener()
            await self.engine.stop()
            await self.node.close()
            log.info("Feed shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False
        self._stop_event.set()

    async def _main_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._cfg.status_interval)
            except asyncio.TimeoutError:
                self._log_status()
            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break

    def _log_status(self) -> None:
        status = self.engine.status()
        log.info(
            "Status: backfill=%s live=%s buffered=%d/%d calls=%d skipped=%d sub_errors=%d",
            status.historical.value, status.live.value, status.buffered, status.capacity,
            status.chunk_calls, status.skipped_ranges, status.subscription_errors,
        )
        if status.last_error:
            log.info("  Last error: %s", status.last_error)

    def _handle_update(self, snapshot: tuple[MarketEvent, ...]) -> None:
        fresh = new_head(self._last_snapshot, snapshot)
        self._last_snapshot = snapshot
        if fresh and self._on_events:
            self._on_events(fresh)


async def run_feed(cfg: FeedConfig, on_events: OnNewEvents | None = None) -> None:
    """Entry point for running the feed with signal handling."""
    daemon = FeedDaemon(cfg, on_events=on_events)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
