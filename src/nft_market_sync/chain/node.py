"""Web3 node client - async JSON-RPC access to an EVM node."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from nft_market_sync.chain.subscription import PollingLogSubscription
from nft_market_sync.interfaces.node import OnError, OnLogs
from nft_market_sync.models.events import RawLog

log = logging.getLogger(__name__)


def _hex(value: Any) -> str:
    """Render bytes/HexBytes/str as a lowercase 0x-prefixed hex string."""
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return Web3.to_hex(value)


def to_raw_log(entry: Mapping[str, Any]) -> RawLog:
    """Normalize a web3 log AttributeDict (or plain dict) into a RawLog."""
    tx_hash = entry.get("transactionHash")
    return RawLog(
        address=str(entry["address"]),
        topics=tuple(_hex(t) for t in entry.get("topics", ())),
        data=_hex(entry.get("data") or b""),
        block_number=int(entry["blockNumber"]),
        log_index=int(entry["logIndex"]),
        transaction_hash=_hex(tx_hash) if tx_hash is not None else None,
    )


class Web3NodeClient:
    """NodeClient over web3's AsyncHTTPProvider.

    Subscriptions poll the head over HTTP; no websocket is required.
    """

    def __init__(
        self,
        rpc_url: str,
        poll_interval: float = 4.0,
        request_timeout: float = 30.0,
    ) -> None:
        self._rpc_url = rpc_url
        self._poll_interval = poll_interval
        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=request_timeout)},
            )
        )

    async def get_latest_block_number(self) -> int:
        return int(await self._w3.eth.block_number)

    async def get_logs(
        self, address: str, topic0: str, from_block: int, to_block: int,
    ) -> list[RawLog]:
        entries = await self._w3.eth.get_logs({
            "address": Web3.to_checksum_address(address),
            "topics": [topic0],
            "fromBlock": from_block,
            "toBlock": to_block,
        })
        return [to_raw_log(e) for e in entries]

    async def subscribe_logs(
        self, address: str, topic0: str, on_batch: OnLogs, on_error: OnError,
    ) -> PollingLogSubscription:
        sub = PollingLogSubscription(
            self, address, topic0, on_batch, on_error, poll_interval=self._poll_interval,
        )
        await sub.start()
        return sub

    async def close(self) -> None:
        """Release the provider's HTTP session, if it keeps one."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is None:
            return
        try:
            await disconnect()
        except Exception as exc:
            log.debug("Provider disconnect failed: %s", exc)
