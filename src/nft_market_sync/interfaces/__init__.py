"""Protocol interfaces for nft_market_sync components."""

from nft_market_sync.interfaces.node import LogSubscription, NodeClient, OnError, OnLogs
from nft_market_sync.interfaces.source import RangeLogSource

__all__ = [
    "LogSubscription", "NodeClient", "OnError", "OnLogs",
    "RangeLogSource",
]
