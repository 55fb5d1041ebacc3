"""Range log source - one bounded getLogs round per call, errors classified."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Sequence

from nft_market_sync.exceptions import (
    FatalError,
    RangeTooLargeError,
    SyncError,
    TransientError,
)
from nft_market_sync.interfaces.node import NodeClient
from nft_market_sync.models.events import RawLog

log = logging.getLogger(__name__)

# Provider phrasings for an oversized getLogs query
RANGE_ERROR_PATTERN = re.compile(
    r"range|too large|more than \d+ results|exceeds? max(imum)? results|max is \d+k? blocks",
    re.IGNORECASE,
)


def classify_error(exc: Exception, from_block: int, to_block: int) -> SyncError:
    """Map a transport exception onto the sync error taxonomy."""
    text = str(exc)
    if RANGE_ERROR_PATTERN.search(text):
        return RangeTooLargeError(from_block, to_block, reason=text[:200])
    return TransientError(
        f"getLogs failed: {text or type(exc).__name__}",
        {"from_block": from_block, "to_block": to_block},
    )


class NodeRangeLogSource:
    """RangeLogSource backed by a NodeClient.

    Issues one getLogs per event signature concurrently and merges the
    results in chain order. No retries happen here; the walker decides.
    """

    def __init__(self, node: NodeClient) -> None:
        self._node = node

    async def fetch(
        self,
        address: str,
        event_signatures: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        if from_block > to_block:
            raise FatalError(
                "from_block must not exceed to_block",
                {"from_block": from_block, "to_block": to_block},
            )
        if not event_signatures:
            return []

        try:
            batches = await asyncio.gather(
                *(
                    self._node.get_logs(address, topic0, from_block, to_block)
                    for topic0 in event_signatures
                )
            )
        except (asyncio.CancelledError, SyncError):
            raise
        except Exception as exc:
            err = classify_error(exc, from_block, to_block)
            log.debug("getLogs [%d, %d] failed: %s", from_block, to_block, err)
            raise err from exc

        logs = [entry for batch in batches for entry in batch]
        logs.sort(key=lambda entry: (entry.block_number, entry.log_index))
        return logs
