"""ABI-driven decoding of Listed/Bought logs into market events."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, encode_hex, keccak, to_checksum_address

from nft_market_sync.exceptions import ConfigError, DecodeError
from nft_market_sync.models.events import (
    BoughtEvent,
    EventKind,
    ListedEvent,
    MarketEvent,
    RawLog,
    Unrecognized,
)

log = logging.getLogger(__name__)


def _event_abi(name: str, actor: str) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": "nft", "type": "address", "indexed": True},
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": actor, "type": "address", "indexed": True},
            {"name": "price", "type": "uint256", "indexed": False},
            {"name": "paymentToken", "type": "address", "indexed": False},
        ],
    }


# Event fragments of the NFT market contract
DEFAULT_MARKET_ABI: list[dict[str, Any]] = [
    _event_abi("Listed", "seller"),
    _event_abi("Bought", "buyer"),
]

_ACTOR_ARG = {
    EventKind.LISTED: "seller",
    EventKind.BOUGHT: "buyer",
}


@dataclass(frozen=True)
class EventInput:
    name: str
    type: str
    indexed: bool


@dataclass(frozen=True)
class EventSpec:
    """One event fragment of the contract ABI."""

    kind: EventKind
    inputs: tuple[EventInput, ...]

    @property
    def signature(self) -> str:
        return f"{self.kind.value}({','.join(i.type for i in self.inputs)})"

    @property
    def topic0(self) -> str:
        return encode_hex(keccak(text=self.signature))


def load_abi(path: str | Path) -> list[dict[str, Any]]:
    """Load an ABI from a JSON list or a compiler artifact with an "abi" key."""
    p = Path(path).expanduser()
    try:
        with open(p) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read ABI file: {exc}", {"path": str(p)}) from exc

    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ConfigError("ABI file must contain a list of fragments", {"path": str(p)})
    return data


class EventDecoder:
    """Maps raw logs to typed market events, keyed by topic0.

    Only ``Listed`` and ``Bought`` fragments are picked up from the ABI;
    every other log decodes to ``Unrecognized``.
    """

    def __init__(self, abi: Sequence[dict[str, Any]] | None = None) -> None:
        self._by_topic: dict[str, EventSpec] = {}
        for entry in abi if abi is not None else DEFAULT_MARKET_ABI:
            if entry.get("type") != "event":
                continue
            try:
                kind = EventKind(entry.get("name"))
            except ValueError:
                continue
            spec = EventSpec(
                kind=kind,
                inputs=tuple(
                    EventInput(
                        name=i["name"],
                        type=i["type"],
                        indexed=bool(i.get("indexed", False)),
                    )
                    for i in entry.get("inputs", [])
                ),
            )
            self._by_topic[spec.topic0] = spec

        if not self._by_topic:
            raise ConfigError("ABI declares neither a Listed nor a Bought event")

    @property
    def specs(self) -> list[EventSpec]:
        return list(self._by_topic.values())

    @property
    def topics(self) -> list[str]:
        return list(self._by_topic)

    def spec_for(self, kind: EventKind) -> EventSpec | None:
        for spec in self._by_topic.values():
            if spec.kind == kind:
                return spec
        return None

    def decode(self, raw: RawLog, observed_at: float) -> MarketEvent | Unrecognized:
        """Decode one log.

        Raises DecodeError when the topic is known but the payload is
        malformed or lacks a required argument.
        """
        spec = self._by_topic.get(raw.topic0 or "")
        if spec is None:
            return Unrecognized(raw)

        args = self._decode_args(spec, raw)
        actor_arg = _ACTOR_ARG[spec.kind]
        missing = [
            name for name in ("nft", "tokenId", "price", "paymentToken", actor_arg)
            if name not in args
        ]
        if missing:
            raise DecodeError(
                f"{spec.kind.value} log lacks arguments",
                {"missing": ",".join(missing), "tx": raw.transaction_hash},
            )

        common = dict(
            nft_address=to_checksum_address(args["nft"]),
            token_id=int(args["tokenId"]),
            price=int(args["price"]),
            payment_token=to_checksum_address(args["paymentToken"]),
            observed_at=observed_at,
            transaction_hash=raw.transaction_hash,
            block_number=raw.block_number,
        )
        if spec.kind == EventKind.LISTED:
            return ListedEvent(seller=to_checksum_address(args["seller"]), **common)
        return BoughtEvent(buyer=to_checksum_address(args["buyer"]), **common)

    def decode_batch(self, logs: Sequence[RawLog], observed_at: float) -> list[MarketEvent]:
        """Decode a batch in order, skipping unknown and malformed logs."""
        events: list[MarketEvent] = []
        for raw in logs:
            try:
                result = self.decode(raw, observed_at)
            except DecodeError as exc:
                log.warning(
                    "Skipping undecodable log at block %d index %d: %s",
                    raw.block_number, raw.log_index, exc,
                )
                continue
            if isinstance(result, Unrecognized):
                log.debug("Ignoring unrecognized log topic %s", raw.topic0)
                continue
            log.debug(
                "Decoded %s token=%d price=%d at block %d",
                result.kind.value, result.token_id, result.price, raw.block_number,
            )
            events.append(result)
        return events

    def _decode_args(self, spec: EventSpec, raw: RawLog) -> dict[str, Any]:
        indexed = [i for i in spec.inputs if i.indexed]
        plain = [i for i in spec.inputs if not i.indexed]
        if len(raw.topics) != len(indexed) + 1:
            raise DecodeError(
                f"{spec.kind.value} log has {len(raw.topics)} topics, expected {len(indexed) + 1}",
                {"tx": raw.transaction_hash},
            )

        args: dict[str, Any] = {}
        try:
            for inp, topic in zip(indexed, raw.topics[1:]):
                args[inp.name] = abi_decode([inp.type], decode_hex(topic))[0]
            if plain:
                values = abi_decode([i.type for i in plain], decode_hex(raw.data))
                for inp, value in zip(plain, values):
                    args[inp.name] = value
        except (DecodingError, ValueError, TypeError) as exc:
            raise DecodeError(
                f"Malformed {spec.kind.value} payload: {exc}",
                {"tx": raw.transaction_hash},
            ) from exc
        return args
