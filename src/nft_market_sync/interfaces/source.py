"""RangeLogSource protocol - bounded-range log fetching with classified errors."""

from __future__ import annotations

from typing import Protocol, Sequence

from nft_market_sync.models.events import RawLog


class RangeLogSource(Protocol):
    """Fetches logs for exactly one inclusive block range."""

    async def fetch(
        self,
        address: str,
        event_signatures: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """Return matching logs ordered by (block_number, log_index).

        Raises RangeTooLargeError, TransientError or FatalError.
        """
        ...
