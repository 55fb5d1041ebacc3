"""Market event models decoded from NFT market contract logs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class EventKind(str, Enum):
    """Event kinds emitted by the market contract."""

    LISTED = "Listed"
    BOUGHT = "Bought"


@dataclass(frozen=True)
class RawLog:
    """A log entry as returned by the node, normalized to hex strings."""

    address: str
    topics: tuple[str, ...]
    data: str  # 0x-prefixed hex
    block_number: int
    log_index: int
    transaction_hash: str | None = None

    @property
    def topic0(self) -> str | None:
        return self.topics[0].lower() if self.topics else None


@dataclass(frozen=True)
class ListedEvent:
    """Emitted when a seller lists an NFT (Listed)."""

    nft_address: str
    token_id: int
    price: int  # smallest unit of payment_token
    payment_token: str
    seller: str
    observed_at: float  # local wall clock, not block time
    transaction_hash: str | None = None
    block_number: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.LISTED

    @property
    def actor(self) -> str:
        return self.seller


@dataclass(frozen=True)
class BoughtEvent:
    """Emitted when a buyer purchases a listed NFT (Bought)."""

    nft_address: str
    token_id: int
    price: int
    payment_token: str
    buyer: str
    observed_at: float
    transaction_hash: str | None = None
    block_number: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.BOUGHT

    @property
    def actor(self) -> str:
        return self.buyer


MarketEvent = Union[ListedEvent, BoughtEvent]


@dataclass(frozen=True)
class Unrecognized:
    """Decode result for a log whose topic0 matches no known event."""

    log: RawLog
    reason: str = "unknown event signature"
