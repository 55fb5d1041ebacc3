"""nft_market_sync - NFT market event feed synchronized from an EVM node."""

__version__ = "0.1.0"
