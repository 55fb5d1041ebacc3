"""NodeClient protocol - the Ethereum JSON-RPC boundary."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from nft_market_sync.models.events import RawLog

OnLogs = Callable[[list[RawLog]], Awaitable[None]]
OnError = Callable[[Exception], None]


class LogSubscription(Protocol):
    """Handle for a standing log subscription. close() stops delivery."""

    @property
    def active(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class NodeClient(Protocol):
    """Read-only access to an Ethereum-compatible node."""

    async def get_latest_block_number(self) -> int:
        ...

    async def get_logs(
        self, address: str, topic0: str, from_block: int, to_block: int,
    ) -> list[RawLog]:
        """Logs emitted by ``address`` with ``topic0`` in the inclusive range.

        Raises the transport's own exception on failure; classification is
        the RangeLogSource's job.
        """
        ...

    async def subscribe_logs(
        self, address: str, topic0: str, on_batch: OnLogs, on_error: OnError,
    ) -> LogSubscription:
        ...

    async def close(self) -> None:
        ...
