"""Adaptive batch walker - backfills a block interval with self-tuning getLogs widths."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from nft_market_sync.exceptions import FatalError, RangeTooLargeError
from nft_market_sync.interfaces.source import RangeLogSource
from nft_market_sync.models.config import SyncConfig
from nft_market_sync.models.records import ScanCursor, WalkResult, WalkWarning

log = logging.getLogger(__name__)

OnWarning = Callable[[WalkWarning], None]


class AdaptiveBatchWalker:
    """Covers ``[from_block, to_block]`` once, discovering a working batch width.

    - Success grows the width linearly by ``batch_growth_step`` up to
      ``max_batch``.
    - A range-too-large rejection halves the width of the rejected chunk and
      retries the same cursor.
    - When the halved width would drop below ``min_batch``, or the cursor has
      been retried ``max_retries_per_cursor`` times, ``min_batch`` blocks are
      skipped and a warning is recorded.
    - Any other error ends the walk; what was accumulated is returned with
      the error attached.

    A walker runs once. Later calls to walk() return the first result.
    """

    def __init__(
        self,
        source: RangeLogSource,
        address: str,
        event_signatures: Sequence[str],
        config: SyncConfig,
        on_warning: OnWarning | None = None,
    ) -> None:
        config.validate()
        self._source = source
        self._address = address
        self._signatures = list(event_signatures)
        self._cfg = config
        self._on_warning = on_warning
        self._cursor: ScanCursor | None = None
        self._result: WalkResult | None = None

    @property
    def cursor(self) -> ScanCursor | None:
        """Live cursor while walking; None before start and after the walk."""
        return self._cursor

    @property
    def result(self) -> WalkResult | None:
        return self._result

    async def walk(
        self, from_block: int, to_block: int, max_total: int | None = None,
    ) -> WalkResult:
        if self._result is not None:
            log.debug("Walk already ran for [%d, %d]", self._result.from_block, self._result.to_block)
            return self._result

        limit = self._cfg.max_total if max_total is None else max_total
        if limit < 1:
            raise FatalError("max_total must be >= 1", {"max_total": limit})

        result = WalkResult(from_block=from_block, to_block=to_block)
        self._result = result
        if from_block > to_block:
            log.debug("Empty walk span [%d, %d]", from_block, to_block)
            return result

        cfg = self._cfg
        span = to_block - from_block + 1
        batch = min(max(cfg.initial_batch, cfg.min_batch), cfg.max_batch, span)
        cursor = ScanCursor(next_block=from_block, end_block=to_block, batch_size=batch)
        self._cursor = cursor
        log.info(
            "Backfilling blocks %d-%d (%d blocks, initial batch %d)",
            from_block, to_block, span, batch,
        )

        try:
            await self._run(cursor, result, limit)
        finally:
            self._cursor = None

        log.info(
            "Backfill %s: %d logs in %d calls (%d range retries, %d ranges skipped)",
            "failed" if result.error else ("stopped at limit" if result.truncated else "complete"),
            len(result.logs), result.chunk_calls, result.range_retries,
            len(result.skipped_ranges),
        )
        return result

    async def _run(self, cursor: ScanCursor, result: WalkResult, limit: int) -> None:
        cfg = self._cfg
        while not cursor.done:
            start = cursor.next_block
            end = cursor.chunk_end()
            result.chunk_calls += 1
            try:
                logs = await self._source.fetch(self._address, self._signatures, start, end)
            except RangeTooLargeError:
                result.range_retries += 1
                cursor.retries += 1
                halved = (end - start + 1) // 2
                if halved < cfg.min_batch:
                    self._skip(cursor, result, f"batch below minimum of {cfg.min_batch}")
                elif cursor.retries >= cfg.max_retries_per_cursor:
                    self._skip(cursor, result, f"{cursor.retries} retries at block {start}")
                else:
                    log.debug(
                        "Range [%d, %d] too large, shrinking batch %d -> %d",
                        start, end, cursor.batch_size, halved,
                    )
                    cursor.batch_size = halved
                continue
            except Exception as exc:
                log.warning("Backfill aborted at block %d: %s", start, exc)
                result.error = exc
                return

            result.logs.extend(logs)
            result.scanned_ranges.append((start, end))
            log.debug("Fetched %d logs from [%d, %d]", len(logs), start, end)

            cursor.batch_size = min(cursor.batch_size + cfg.batch_growth_step, cfg.max_batch)
            cursor.advance_to(end + 1)

            if len(result.logs) >= limit:
                result.truncated = not cursor.done
                return

    def _skip(self, cursor: ScanCursor, result: WalkResult, reason: str) -> None:
        start = cursor.next_block
        end = min(start + self._cfg.min_batch - 1, cursor.end_block)
        warning = WalkWarning(
            kind="range_skipped",
            from_block=start,
            to_block=end,
            message=f"Skipped blocks {start}-{end}: {reason}",
        )
        log.warning(warning.message)
        result.skipped_ranges.append((start, end))
        result.warnings.append(warning)
        cursor.advance_to(end + 1)
        cursor.batch_size = self._cfg.min_batch

        if self._on_warning:
            try:
                self._on_warning(warning)
            except Exception as exc:
                log.error("Walk warning callback failed: %s", exc, exc_info=True)
