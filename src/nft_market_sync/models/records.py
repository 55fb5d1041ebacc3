"""Internal record types for walk state, walk results and engine status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from nft_market_sync.models.events import RawLog


class MergeOrder(str, Enum):
    """Order of a batch handed to EventBuffer.merge()."""

    OLDEST_FIRST = "oldest_first"  # historical walk output
    NEWEST_FIRST = "newest_first"  # live push, already head-ordered


class HistoricalState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"  # partial result still merged
    CANCELLED = "cancelled"  # partial result discarded


class LiveState(str, Enum):
    NOT_STARTED = "not_started"
    SUBSCRIBED = "subscribed"
    STOPPED = "stopped"


@dataclass
class ScanCursor:
    """Mutable walker position.

    next_block only increases; the walk is over once it passes end_block.
    """

    next_block: int
    end_block: int
    batch_size: int
    retries: int = 0

    @property
    def done(self) -> bool:
        return self.next_block > self.end_block

    def chunk_end(self) -> int:
        return min(self.next_block + self.batch_size - 1, self.end_block)

    def advance_to(self, block: int) -> None:
        """Move the cursor to ``block`` (never backwards) and reset retries."""
        if block > self.next_block:
            self.next_block = block
        self.retries = 0


@dataclass(frozen=True)
class WalkWarning:
    """A non-fatal incident during the walk, e.g. a skipped block range."""

    kind: str  # "range_skipped"
    from_block: int
    to_block: int
    message: str


@dataclass
class WalkResult:
    """Outcome of one AdaptiveBatchWalker run."""

    from_block: int
    to_block: int
    logs: list[RawLog] = field(default_factory=list)  # oldest first
    warnings: list[WalkWarning] = field(default_factory=list)
    error: Exception | None = None
    scanned_ranges: list[tuple[int, int]] = field(default_factory=list)
    skipped_ranges: list[tuple[int, int]] = field(default_factory=list)
    chunk_calls: int = 0
    range_retries: int = 0
    truncated: bool = False  # stopped early at max_total

    @property
    def completed(self) -> bool:
        """True when the walk ended without a terminal error."""
        return self.error is None

    @property
    def partial(self) -> bool:
        return self.error is not None or self.truncated or bool(self.skipped_ranges)


@dataclass
class EngineStatus:
    """Point-in-time view of both engine lifecycles."""

    historical: HistoricalState
    live: LiveState
    buffered: int
    capacity: int
    from_block: int | None = None
    to_block: int | None = None
    historical_logs: int = 0
    chunk_calls: int = 0
    range_retries: int = 0
    skipped_ranges: int = 0
    warnings: int = 0
    subscription_errors: int = 0
    last_error: str | None = None
