"""EVM node integration components."""

from nft_market_sync.chain.decoder import DEFAULT_MARKET_ABI, EventDecoder, EventSpec, load_abi
from nft_market_sync.chain.node import Web3NodeClient
from nft_market_sync.chain.source import NodeRangeLogSource, classify_error
from nft_market_sync.chain.subscription import PollingLogSubscription

__all__ = [
    "DEFAULT_MARKET_ABI", "EventDecoder", "EventSpec", "load_abi",
    "Web3NodeClient",
    "NodeRangeLogSource", "classify_error",
    "PollingLogSubscription",
]
