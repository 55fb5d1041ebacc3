"""Event-log synchronization: adaptive backfill, live merge and the bounded feed."""

from nft_market_sync.sync.buffer import EventBuffer
from nft_market_sync.sync.engine import SyncEngine
from nft_market_sync.sync.subscriber import LiveSubscriber
from nft_market_sync.sync.walker import AdaptiveBatchWalker

__all__ = ["EventBuffer", "SyncEngine", "LiveSubscriber", "AdaptiveBatchWalker"]
