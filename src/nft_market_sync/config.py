"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from nft_market_sync.exceptions import ConfigError
from nft_market_sync.models.config import FeedConfig, SyncConfig

_SYNC_INT_FIELDS = (
    "initial_batch",
    "min_batch",
    "max_batch",
    "batch_growth_step",
    "max_retries_per_cursor",
    "capacity",
    "historical_span",
    "max_total",
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "NFT_SYNC_",
) -> FeedConfig:
    """Load feed configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (NFT_SYNC_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from FeedConfig / SyncConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            try:
                with open(p, "rb") as f:
                    raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid TOML: {exc}", {"path": str(p)}) from exc

    cfg = FeedConfig()

    # ── Feed section ───────────────────────────────────────
    feed = raw.get("feed", {})
    if v := feed.get("status_interval"):
        cfg.status_interval = int(v)
    if v := feed.get("log_level"):
        cfg.log_level = str(v)

    # ── Node section ───────────────────────────────────────
    node = raw.get("node", {})
    if v := node.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := node.get("poll_interval"):
        cfg.poll_interval = float(v)
    if v := node.get("request_timeout"):
        cfg.request_timeout = float(v)

    # ── Contract section ───────────────────────────────────
    contract = raw.get("contract", {})
    if v := contract.get("address"):
        cfg.contract_address = str(v)
    if v := contract.get("abi_path"):
        cfg.abi_path = str(v)

    # ── Sync section ───────────────────────────────────────
    sync_raw = raw.get("sync", {})
    sync = SyncConfig()
    for name in _SYNC_INT_FIELDS:
        if name in sync_raw:
            setattr(sync, name, _as_int(name, sync_raw[name]))
    if "max_total" not in sync_raw and "capacity" in sync_raw:
        sync.max_total = sync.capacity * 3
    cfg.sync = sync

    # ── Environment variable overrides (highest priority) ──
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if addr := os.environ.get(f"{env_prefix}CONTRACT_ADDRESS"):
        cfg.contract_address = addr
    if abi := os.environ.get(f"{env_prefix}ABI_PATH"):
        cfg.abi_path = abi
    if cap := os.environ.get(f"{env_prefix}CAPACITY"):
        cfg.sync.capacity = _as_int("capacity", cap)
    if span := os.environ.get(f"{env_prefix}HISTORICAL_SPAN"):
        cfg.sync.historical_span = _as_int("historical_span", span)

    if cfg.abi_path:
        cfg.abi_path = str(Path(cfg.abi_path).expanduser())

    cfg.sync.validate()
    return cfg


def _as_int(name: str, value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer", {name: value}) from exc
