"""AdaptiveBatchWalker: coverage, back-off, skip-forward and early stop."""

from __future__ import annotations

import pytest

from nft_market_sync.exceptions import FatalError, TransientError
from nft_market_sync.sync.walker import AdaptiveBatchWalker

from tests.conftest import make_sync_config
from tests.factories import LISTED_TOPIC, MARKET, make_plain_log
from tests.mocks import ScriptedRangeSource


def _walker(source, **overrides) -> AdaptiveBatchWalker:
    return AdaptiveBatchWalker(source, MARKET, [LISTED_TOPIC], make_sync_config(**overrides))


def _assert_exact_cover(ranges, from_block, to_block):
    """Ranges are contiguous, non-overlapping and span exactly [from, to]."""
    ordered = sorted(ranges)
    assert ordered[0][0] == from_block
    assert ordered[-1][1] == to_block
    for (_, prev_end), (start, _) in zip(ordered, ordered[1:]):
        assert start == prev_end + 1


# ── Coverage without errors ───────────────────────────────────────


async def test_walk_returns_all_logs_in_ascending_order():
    logs = [make_plain_log(b, i) for b in range(0, 120, 7) for i in range(2)]
    source = ScriptedRangeSource(logs=list(reversed(logs)))
    walker = _walker(source)

    result = await walker.walk(0, 119)

    assert result.error is None
    assert result.logs == sorted(logs, key=lambda e: (e.block_number, e.log_index))
    assert result.skipped_ranges == []
    _assert_exact_cover(source.calls, 0, 119)
    assert result.scanned_ranges == source.calls
    assert result.chunk_calls == len(source.calls)


async def test_walk_passes_event_signatures():
    source = ScriptedRangeSource()
    await _walker(source).walk(5, 6)
    assert source.signatures == [[LISTED_TOPIC]]


async def test_batch_grows_linearly_up_to_max():
    source = ScriptedRangeSource()
    walker = _walker(source, initial_batch=10, batch_growth_step=5, max_batch=20)

    await walker.walk(0, 199)

    assert source.widths[:4] == [10, 15, 20, 20]
    assert max(source.widths) == 20


async def test_degenerate_span_makes_no_calls():
    source = ScriptedRangeSource()
    result = await _walker(source).walk(10, 9)

    assert source.calls == []
    assert result.logs == []
    assert result.completed


async def test_first_call_never_exceeds_span():
    source = ScriptedRangeSource()
    await _walker(source, initial_batch=1000, max_batch=4000).walk(50, 52)
    assert source.calls == [(50, 52)]


# ── Range-too-large back-off ──────────────────────────────────────


async def test_shrinks_batch_until_provider_accepts():
    """Provider rejects > 4 blocks: widths go 10 -> 5 -> 2, full cover in <= 6 calls."""
    source = ScriptedRangeSource(
        logs=[make_plain_log(b) for b in range(100, 110)],
        max_width=4,
    )
    walker = _walker(source, initial_batch=10, min_batch=1, max_batch=4000, batch_growth_step=500)

    result = await walker.walk(100, 109)

    assert source.widths[:3] == [10, 5, 2]
    assert len(source.calls) <= 6
    assert result.skipped_ranges == []
    assert [e.block_number for e in result.logs] == list(range(100, 110))
    _assert_exact_cover(result.scanned_ranges, 100, 109)
    assert result.range_retries == len(source.calls) - len(result.scanned_ranges)


async def test_terminates_when_every_allowed_width_is_rejected():
    """Widths >= min_batch always fail: walker skips forward and still ends."""
    source = ScriptedRangeSource(reject=lambda a, b: (b - a + 1) >= 4)
    walker = _walker(source, initial_batch=8, min_batch=4)

    result = await walker.walk(0, 9)

    assert result.error is None
    assert result.skipped_ranges == [(0, 3), (4, 7)]
    assert result.scanned_ranges == [(8, 9)]
    _assert_exact_cover(result.scanned_ranges + result.skipped_ranges, 0, 9)
    assert [w.kind for w in result.warnings] == ["range_skipped", "range_skipped"]
    assert result.partial


async def test_retry_bound_forces_skip():
    source = ScriptedRangeSource(reject=lambda a, b: a == 0)
    walker = _walker(source, initial_batch=8, min_batch=1, max_retries_per_cursor=2)

    result = await walker.walk(0, 15)

    assert source.calls[:3] == [(0, 7), (0, 3), (1, 1)]
    assert result.skipped_ranges == [(0, 0)]
    _assert_exact_cover(result.scanned_ranges + result.skipped_ranges, 0, 15)


async def test_skip_warning_reaches_callback():
    seen = []
    source = ScriptedRangeSource(reject=lambda a, b: True)
    walker = AdaptiveBatchWalker(
        source, MARKET, [LISTED_TOPIC],
        make_sync_config(initial_batch=2, min_batch=2),
        on_warning=seen.append,
    )

    result = await walker.walk(0, 5)

    assert seen == result.warnings
    assert [(w.from_block, w.to_block) for w in seen] == [(0, 1), (2, 3), (4, 5)]


# ── Early stop and failure ────────────────────────────────────────


async def test_stops_once_max_total_reached():
    source = ScriptedRangeSource(logs=[make_plain_log(b) for b in range(50)])
    walker = _walker(source, initial_batch=3, batch_growth_step=0)

    result = await walker.walk(0, 49, max_total=5)

    assert source.calls == [(0, 2), (3, 5)]
    assert len(result.logs) == 6
    assert result.truncated
    assert result.error is None


async def test_max_total_defaults_to_config():
    source = ScriptedRangeSource(logs=[make_plain_log(b) for b in range(50)])
    walker = _walker(source, initial_batch=10, batch_growth_step=0, max_total=15)

    result = await walker.walk(0, 49)

    assert len(source.calls) == 2
    assert len(result.logs) == 20


async def test_transient_error_returns_partial_result():
    source = ScriptedRangeSource(
        logs=[make_plain_log(b) for b in range(40)],
        errors={20: TransientError("connection reset")},
    )
    walker = _walker(source, initial_batch=10, batch_growth_step=0)

    result = await walker.walk(0, 39)

    assert isinstance(result.error, TransientError)
    assert not result.completed
    assert [e.block_number for e in result.logs] == list(range(20))
    assert source.calls == [(0, 9), (10, 19), (20, 29)]


async def test_non_sync_exception_is_surfaced_not_raised():
    source = ScriptedRangeSource(errors={0: RuntimeError("boom")})
    result = await _walker(source).walk(0, 9)
    assert isinstance(result.error, RuntimeError)


async def test_invalid_max_total_is_fatal():
    source = ScriptedRangeSource()
    with pytest.raises(FatalError):
        await _walker(source).walk(0, 9, max_total=0)
    assert source.calls == []


# ── Run-once semantics ────────────────────────────────────────────


async def test_second_walk_is_a_no_op():
    source = ScriptedRangeSource(logs=[make_plain_log(3)])
    walker = _walker(source)

    first = await walker.walk(0, 9)
    calls = list(source.calls)
    second = await walker.walk(0, 99)

    assert second is first
    assert source.calls == calls
    assert walker.cursor is None
