"""Data models for nft_market_sync."""

from nft_market_sync.models.events import (
    BoughtEvent,
    EventKind,
    ListedEvent,
    MarketEvent,
    RawLog,
    Unrecognized,
)
from nft_market_sync.models.config import FeedConfig, SyncConfig
from nft_market_sync.models.records import (
    EngineStatus,
    HistoricalState,
    LiveState,
    MergeOrder,
    ScanCursor,
    WalkResult,
    WalkWarning,
)
from nft_market_sync.models.snapshots import FeedSnapshot, event_to_dict, status_to_dict

__all__ = [
    "BoughtEvent", "EventKind", "ListedEvent", "MarketEvent", "RawLog", "Unrecognized",
    "FeedConfig", "SyncConfig",
    "EngineStatus", "HistoricalState", "LiveState", "MergeOrder", "ScanCursor",
    "WalkResult", "WalkWarning",
    "FeedSnapshot", "event_to_dict", "status_to_dict",
]
