"""Shared fixtures for nft_market_sync tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from nft_market_sync.chain.decoder import EventDecoder
from nft_market_sync.models.config import FeedConfig, SyncConfig
from nft_market_sync.sync.engine import SyncEngine

from tests.factories import MARKET, OBSERVED_AT
from tests.mocks import MockNode, ScriptedRangeSource


def pytest_configure(config):
    """Add contract info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Market Contract"] = MARKET


def make_sync_config(**overrides) -> SyncConfig:
    """Build a SyncConfig with small widths suitable for testing."""
    defaults = dict(
        initial_batch=10,
        min_batch=1,
        max_batch=50,
        batch_growth_step=5,
        max_retries_per_cursor=10,
        capacity=20,
        historical_span=100,
        max_total=1_000,
    )
    defaults.update(overrides)
    return SyncConfig(**defaults)


def make_feed_config(**overrides) -> FeedConfig:
    sync = overrides.pop("sync", None) or make_sync_config()
    defaults = dict(
        rpc_url="http://127.0.0.1:8545",
        contract_address=MARKET,
        poll_interval=3600.0,
        status_interval=3600,
        sync=sync,
    )
    defaults.update(overrides)
    return FeedConfig(**defaults)


def fixed_clock() -> float:
    return OBSERVED_AT


@pytest.fixture
def sync_config():
    return make_sync_config()


@pytest.fixture
def decoder():
    return EventDecoder()


@pytest.fixture
def mock_node():
    return MockNode(head=1_000)


@pytest.fixture
async def make_engine(mock_node, decoder):
    """Factory: SyncEngine over mock_node and a scripted range source."""
    engines: list[SyncEngine] = []

    def _make(source: ScriptedRangeSource, config: SyncConfig | None = None) -> SyncEngine:
        engine = SyncEngine(
            mock_node, source, decoder, MARKET, config or make_sync_config(), clock=fixed_clock,
        )
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        await engine.stop()
