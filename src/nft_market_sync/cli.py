"""CLI entry point for the NFT market feed."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime

import click

from nft_market_sync.chain.decoder import EventDecoder, load_abi
from nft_market_sync.chain.node import Web3NodeClient
from nft_market_sync.chain.source import NodeRangeLogSource
from nft_market_sync.config import load_config
from nft_market_sync.daemon import run_feed
from nft_market_sync.exceptions import SyncError
from nft_market_sync.models.config import FeedConfig
from nft_market_sync.models.events import MarketEvent
from nft_market_sync.models.records import EngineStatus, HistoricalState, LiveState, WalkResult
from nft_market_sync.models.snapshots import FeedSnapshot, event_to_dict
from nft_market_sync.sync.walker import AdaptiveBatchWalker


def _short(addr: str) -> str:
    return f"{addr[:6]}…{addr[-4:]}" if len(addr) > 12 else addr


def _format_event(event: MarketEvent) -> str:
    seen = datetime.fromtimestamp(event.observed_at).strftime("%H:%M:%S")
    role = "seller" if event.kind.value == "Listed" else "buyer"
    tx = event.transaction_hash[:10] + "…" if event.transaction_hash else "-"
    return (
        f"{seen} {event.kind.value:<6} nft={_short(event.nft_address)} "
        f"token={event.token_id} price={event.price} "
        f"{role}={_short(event.actor)} tx={tx}"
    )


def _echo_events(events: list[MarketEvent], as_json: bool) -> None:
    for event in events:
        if as_json:
            click.echo(json.dumps(event_to_dict(event)))
        else:
            click.echo(_format_event(event))


def _scan_status(result: WalkResult, cfg: FeedConfig, buffered: int) -> EngineStatus:
    """Engine-style status for a one-shot scan (no live side)."""
    return EngineStatus(
        historical=HistoricalState.FAILED if result.error else HistoricalState.COMPLETED,
        live=LiveState.NOT_STARTED,
        buffered=buffered,
        capacity=cfg.sync.capacity,
        from_block=result.from_block,
        to_block=result.to_block,
        historical_logs=len(result.logs),
        chunk_calls=result.chunk_calls,
        range_retries=result.range_retries,
        skipped_ranges=len(result.skipped_ranges),
        warnings=len(result.warnings),
        last_error=str(result.error) if result.error else None,
    )


def _load(ctx: click.Context) -> FeedConfig:
    try:
        cfg = load_config(ctx.obj["config_path"])
    except SyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())
    return cfg


def _require_contract(cfg: FeedConfig) -> None:
    """Exit with error if no contract address is configured."""
    if not cfg.contract_address:
        click.echo("Error: No contract address configured.", err=True)
        click.echo("Set NFT_SYNC_CONTRACT_ADDRESS or [contract] address in config.", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """nft-market-sync - live NFT market event feed from an EVM node."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show feed configuration."""
    cfg = _load(ctx)
    s = cfg.sync
    click.echo(f"RPC URL:     {cfg.rpc_url}")
    click.echo(f"Contract:    {cfg.contract_address or '(not set)'}")
    click.echo(f"ABI:         {cfg.abi_path or '(built-in Listed/Bought)'}")
    click.echo(f"Poll:        {cfg.poll_interval}s")
    click.echo(f"Capacity:    {s.capacity} events")
    click.echo(f"Span:        {s.historical_span} blocks (max {s.max_total} logs)")
    click.echo(
        f"Batching:    initial={s.initial_batch} min={s.min_batch} max={s.max_batch} "
        f"step={s.batch_growth_step} retries={s.max_retries_per_cursor}"
    )


@cli.command()
@click.pass_context
def head(ctx: click.Context) -> None:
    """Print the node's latest block number."""
    cfg = _load(ctx)

    async def _head():
        node = Web3NodeClient(cfg.rpc_url, request_timeout=cfg.request_timeout)
        try:
            return await node.get_latest_block_number()
        finally:
            await node.close()

    try:
        click.echo(asyncio.run(_head()))
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ── Feed ───────────────────────────────────────────────


@cli.command()
@click.option("--from-block", type=int, default=None, help="First block (default: head - span)")
@click.option("--to-block", type=int, default=None, help="Last block (default: head)")
@click.option("--max-total", type=int, default=None, help="Stop after this many logs")
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON object per event")
@click.pass_context
def scan(
    ctx: click.Context,
    from_block: int | None,
    to_block: int | None,
    max_total: int | None,
    as_json: bool,
) -> None:
    """One-shot adaptive backfill; prints events newest first."""
    cfg = _load(ctx)
    _require_contract(cfg)

    async def _scan():
        node = Web3NodeClient(cfg.rpc_url, request_timeout=cfg.request_timeout)
        try:
            decoder = EventDecoder(load_abi(cfg.abi_path) if cfg.abi_path else None)
            walker = AdaptiveBatchWalker(
                NodeRangeLogSource(node), cfg.contract_address, decoder.topics, cfg.sync,
            )
            end = to_block if to_block is not None else await node.get_latest_block_number()
            start = from_block if from_block is not None else max(0, end - cfg.sync.historical_span)
            result = await walker.walk(start, end, max_total)
            events = decoder.decode_batch(result.logs, datetime.now().timestamp())
            return result, events
        finally:
            await node.close()

    try:
        result, events = asyncio.run(_scan())
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    events.reverse()
    feed = events[: cfg.sync.capacity]
    if as_json:
        snapshot = FeedSnapshot(status=_scan_status(result, cfg, len(feed)), events=feed)
        click.echo(json.dumps(snapshot.to_dict()))
    else:
        _echo_events(feed, as_json=False)

    for warning in result.warnings:
        click.echo(f"Warning: {warning.message}", err=True)
    click.echo(
        f"Scanned {result.from_block}-{result.to_block}: {len(result.logs)} logs, "
        f"{result.chunk_calls} calls, {result.range_retries} range retries",
        err=True,
    )
    if result.error is not None:
        click.echo(f"Backfill incomplete: {result.error}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON object per event")
@click.pass_context
def watch(ctx: click.Context, as_json: bool) -> None:
    """Run the live feed: backfill once, then follow new events."""
    cfg = _load(ctx)
    _require_contract(cfg)

    click.echo(f"Watching {cfg.contract_address} (capacity {cfg.sync.capacity})", err=True)
    try:
        asyncio.run(run_feed(cfg, on_events=lambda events: _echo_events(events, as_json)))
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
