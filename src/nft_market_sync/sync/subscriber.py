"""Live subscriber - standing log subscription for one market event kind."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from nft_market_sync.chain.decoder import EventDecoder, EventSpec
from nft_market_sync.interfaces.node import LogSubscription, NodeClient
from nft_market_sync.models.events import MarketEvent, RawLog
from nft_market_sync.models.records import LiveState

log = logging.getLogger(__name__)

OnEvents = Callable[[list[MarketEvent]], Awaitable[None]]
OnSubscriptionError = Callable[[Exception], None]


class LiveSubscriber:
    """Decodes each pushed batch and hands it on in push order.

    Transport errors are reported but never end the subscription; only
    stop() does.
    """

    def __init__(
        self,
        node: NodeClient,
        decoder: EventDecoder,
        spec: EventSpec,
        address: str,
        on_events: OnEvents,
        on_error: OnSubscriptionError | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._node = node
        self._decoder = decoder
        self._spec = spec
        self._address = address
        self._on_events = on_events
        self._on_error = on_error
        self._clock = clock
        self._subscription: LogSubscription | None = None
        self.state = LiveState.NOT_STARTED
        self.error_count = 0
        self.last_error: Exception | None = None
        self.delivered = 0

    @property
    def kind(self) -> str:
        return self._spec.kind.value

    async def start(self) -> None:
        if self.state != LiveState.NOT_STARTED:
            return
        self._subscription = await self._node.subscribe_logs(
            self._address, self._spec.topic0, self._handle_batch, self._handle_error,
        )
        self.state = LiveState.SUBSCRIBED
        log.info("Subscribed to %s events on %s", self.kind, self._address)

    async def stop(self) -> None:
        await self._close()
        self.state = LiveState.STOPPED

    async def reset(self) -> None:
        """Close the subscription but allow start() to register again."""
        await self._close()
        self.state = LiveState.NOT_STARTED

    async def _close(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        if self.state == LiveState.SUBSCRIBED:
            log.info("Unsubscribed from %s events", self.kind)

    async def _handle_batch(self, logs: list[RawLog]) -> None:
        if self.state != LiveState.SUBSCRIBED:
            return
        events = self._decoder.decode_batch(logs, self._clock())
        if not events:
            return
        for event in events:
            log.debug(
                "Live %s: nft=%s token=%d price=%d actor=%s",
                self.kind, event.nft_address, event.token_id, event.price, event.actor,
            )
        self.delivered += len(events)
        await self._on_events(events)

    def _handle_error(self, exc: Exception) -> None:
        self.error_count += 1
        self.last_error = exc
        log.warning("%s subscription error (%d so far): %s", self.kind, self.error_count, exc)
        if self._on_error:
            self._on_error(exc)
