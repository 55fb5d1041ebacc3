"""Configuration models for the sync engine and the feed daemon."""

from __future__ import annotations

from dataclasses import dataclass, field

from nft_market_sync.exceptions import ConfigError


@dataclass
class SyncConfig:
    """Adaptive backfill and buffer tuning."""

    initial_batch: int = 1000  # blocks in the first getLogs call
    min_batch: int = 16  # smallest width before skipping forward
    max_batch: int = 4000
    batch_growth_step: int = 500  # linear climb after each success
    max_retries_per_cursor: int = 10
    capacity: int = 50  # feed length
    historical_span: int = 10_000  # blocks back from head
    max_total: int = 150  # stop the walk after this many logs

    def validate(self) -> None:
        """Raise ConfigError if any bound is inconsistent."""
        if self.min_batch < 1:
            raise ConfigError("min_batch must be >= 1", {"min_batch": self.min_batch})
        if self.max_batch < self.min_batch:
            raise ConfigError(
                "max_batch must be >= min_batch",
                {"min_batch": self.min_batch, "max_batch": self.max_batch},
            )
        if self.initial_batch < 1:
            raise ConfigError("initial_batch must be >= 1", {"initial_batch": self.initial_batch})
        if self.batch_growth_step < 0:
            raise ConfigError(
                "batch_growth_step must be >= 0",
                {"batch_growth_step": self.batch_growth_step},
            )
        if self.max_retries_per_cursor < 1:
            raise ConfigError(
                "max_retries_per_cursor must be >= 1",
                {"max_retries_per_cursor": self.max_retries_per_cursor},
            )
        if self.capacity < 1:
            raise ConfigError("capacity must be >= 1", {"capacity": self.capacity})
        if self.historical_span < 0:
            raise ConfigError(
                "historical_span must be >= 0", {"historical_span": self.historical_span},
            )
        if self.max_total < 1:
            raise ConfigError("max_total must be >= 1", {"max_total": self.max_total})


@dataclass
class FeedConfig:
    """Complete feed daemon configuration."""

    # Feed
    status_interval: int = 60  # seconds between status log lines
    log_level: str = "info"

    # Node
    rpc_url: str = "http://127.0.0.1:8545"
    poll_interval: float = 4.0  # seconds between live subscription polls
    request_timeout: float = 30.0

    # Contract
    contract_address: str = ""
    abi_path: str = ""  # JSON ABI or compiler artifact; built-in fragments if empty

    sync: SyncConfig = field(default_factory=SyncConfig)
