"""JSON-serializable snapshot models for CLI output and other consumers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from nft_market_sync.models.events import MarketEvent
from nft_market_sync.models.records import EngineStatus


def event_to_dict(event: MarketEvent) -> dict[str, Any]:
    """Flatten a market event into a plain dict with a ``type`` tag.

    uint256 values are rendered as decimal strings so JSON consumers in
    other languages do not lose precision.
    """
    raw = asdict(event)
    raw["type"] = event.kind.value
    raw["actor"] = event.actor
    raw["token_id"] = str(event.token_id)
    raw["price"] = str(event.price)
    return raw


def status_to_dict(status: EngineStatus) -> dict[str, Any]:
    raw = asdict(status)
    raw["historical"] = status.historical.value
    raw["live"] = status.live.value
    return raw


@dataclass
class FeedSnapshot:
    """Feed contents plus engine status."""

    status: EngineStatus
    events: list[MarketEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": status_to_dict(self.status),
            "events": [event_to_dict(e) for e in self.events],
        }
