"""Polling log subscription - a contract-event watch over plain HTTP JSON-RPC."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from nft_market_sync.interfaces.node import OnError, OnLogs
from nft_market_sync.models.events import RawLog

log = logging.getLogger(__name__)


class _LogReader(Protocol):
    async def get_latest_block_number(self) -> int:
        ...

    async def get_logs(
        self, address: str, topic0: str, from_block: int, to_block: int,
    ) -> list[RawLog]:
        ...


class PollingLogSubscription:
    """Delivers new logs for one (address, topic0) pair as the head advances.

    Starts at the head seen on registration, so only logs from later blocks
    are pushed. Errors are reported through ``on_error`` and the next poll
    retries the same block window; the subscription never ends itself.
    """

    def __init__(
        self,
        node: _LogReader,
        address: str,
        topic0: str,
        on_batch: OnLogs,
        on_error: OnError,
        poll_interval: float = 4.0,
    ) -> None:
        self._node = node
        self._address = address
        self._topic0 = topic0
        self._on_batch = on_batch
        self._on_error = on_error
        self._poll_interval = poll_interval
        self._last_block: int | None = None
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_block(self) -> int | None:
        return self._last_block

    async def start(self) -> None:
        """Record the current head and begin polling."""
        self._last_block = await self._node.get_latest_block_number()
        self._task = asyncio.create_task(self._poll_loop())
        log.debug(
            "Watching topic %s on %s from block %d",
            self._topic0[:10], self._address, self._last_block,
        )

    async def close(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.debug("Stopped watching topic %s", self._topic0[:10])

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            await self.poll_once()

    async def poll_once(self) -> None:
        """Fetch logs between the last seen block and the current head."""
        try:
            head = await self._node.get_latest_block_number()
            if self._last_block is None:
                self._last_block = head
                return
            if head <= self._last_block:
                return
            logs = await self._node.get_logs(
                self._address, self._topic0, self._last_block + 1, head,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._on_error(exc)
            return

        self._last_block = head
        if not logs:
            return
        try:
            await self._on_batch(logs)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error("Log handler for topic %s failed: %s", self._topic0[:10], exc, exc_info=True)
