"""Configuration loading: TOML sections, env overrides and validation."""

from __future__ import annotations

import pytest

from nft_market_sync.config import load_config
from nft_market_sync.exceptions import ConfigError
from nft_market_sync.models.config import SyncConfig

from tests.factories import MARKET


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("RPC_URL", "CONTRACT_ADDRESS", "ABI_PATH", "CAPACITY", "HISTORICAL_SPAN"):
        monkeypatch.delenv(f"NFT_SYNC_{name}", raising=False)


def _write(tmp_path, text: str):
    path = tmp_path / "feed.toml"
    path.write_text(text)
    return path


def test_defaults_without_file():
    cfg = load_config()
    assert cfg.rpc_url == "http://127.0.0.1:8545"
    assert cfg.contract_address == ""
    assert cfg.sync == SyncConfig()


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg.sync.capacity == 50


def test_toml_sections(tmp_path):
    path = _write(tmp_path, f"""
[feed]
status_interval = 15
log_level = "debug"

[node]
rpc_url = "https://rpc.example.org"
poll_interval = 2.5
request_timeout = 10

[contract]
address = "{MARKET}"

[sync]
initial_batch = 200
min_batch = 8
max_batch = 2000
batch_growth_step = 100
max_retries_per_cursor = 5
capacity = 25
historical_span = 5000
max_total = 40
""")

    cfg = load_config(path)

    assert cfg.status_interval == 15
    assert cfg.log_level == "debug"
    assert cfg.rpc_url == "https://rpc.example.org"
    assert cfg.poll_interval == 2.5
    assert cfg.request_timeout == 10.0
    assert cfg.contract_address == MARKET
    assert cfg.sync == SyncConfig(
        initial_batch=200,
        min_batch=8,
        max_batch=2000,
        batch_growth_step=100,
        max_retries_per_cursor=5,
        capacity=25,
        historical_span=5000,
        max_total=40,
    )


def test_max_total_follows_capacity(tmp_path):
    cfg = load_config(_write(tmp_path, "[sync]\ncapacity = 10\n"))
    assert cfg.sync.max_total == 30


def test_env_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path, '[node]\nrpc_url = "http://file:8545"\n[sync]\ncapacity = 10\n')
    monkeypatch.setenv("NFT_SYNC_RPC_URL", "http://env:8545")
    monkeypatch.setenv("NFT_SYNC_CONTRACT_ADDRESS", MARKET)
    monkeypatch.setenv("NFT_SYNC_CAPACITY", "7")
    monkeypatch.setenv("NFT_SYNC_HISTORICAL_SPAN", "250")

    cfg = load_config(path)

    assert cfg.rpc_url == "http://env:8545"
    assert cfg.contract_address == MARKET
    assert cfg.sync.capacity == 7
    assert cfg.sync.historical_span == 250


def test_abi_path_is_expanded(monkeypatch):
    monkeypatch.setenv("NFT_SYNC_ABI_PATH", "~/abi/market.json")
    cfg = load_config()
    assert not cfg.abi_path.startswith("~")
    assert cfg.abi_path.endswith("abi/market.json")


def test_invalid_toml(tmp_path):
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(_write(tmp_path, "[sync\ncapacity = 1"))


def test_non_integer_sync_value(tmp_path):
    with pytest.raises(ConfigError, match="capacity"):
        load_config(_write(tmp_path, '[sync]\ncapacity = "lots"\n'))


def test_inconsistent_bounds_rejected(tmp_path):
    with pytest.raises(ConfigError, match="max_batch"):
        load_config(_write(tmp_path, "[sync]\nmin_batch = 100\nmax_batch = 10\n"))


def test_zero_capacity_from_env_rejected(monkeypatch):
    monkeypatch.setenv("NFT_SYNC_CAPACITY", "0")
    with pytest.raises(ConfigError):
        load_config()
