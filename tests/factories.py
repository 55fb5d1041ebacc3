"""Synthetic log and event factories for testing."""

from __future__ import annotations

from eth_abi import encode as abi_encode
from eth_utils import encode_hex, to_checksum_address

from nft_market_sync.chain.decoder import EventDecoder
from nft_market_sync.models.events import BoughtEvent, EventKind, ListedEvent, RawLog

MARKET = "0x4b78DcD21Edb2A51881Cb4B0328fFfa3A8dA9FB0"
NFT = to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")
SELLER = to_checksum_address("0x70997970c51812dc3a010c7d01b50e0d17dc79c8")
BUYER = to_checksum_address("0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc")
PAYMENT_TOKEN = to_checksum_address("0xe7f1725e7734ce288f8367e1bb143e90bb3f0512")

OBSERVED_AT = 1_700_000_000.0

_DECODER = EventDecoder()
LISTED_TOPIC = _DECODER.spec_for(EventKind.LISTED).topic0
BOUGHT_TOPIC = _DECODER.spec_for(EventKind.BOUGHT).topic0


def _topic(abi_type: str, value) -> str:
    return encode_hex(abi_encode([abi_type], [value]))


def _tx_hash(block_number: int, log_index: int) -> str:
    return "0x" + f"{block_number:032x}{log_index:032x}"


def make_listed_log(
    token_id: int = 1,
    price: int = 10**18,
    block_number: int = 100,
    log_index: int = 0,
    nft: str = NFT,
    seller: str = SELLER,
    payment_token: str = PAYMENT_TOKEN,
) -> RawLog:
    return RawLog(
        address=MARKET,
        topics=(
            LISTED_TOPIC,
            _topic("address", nft),
            _topic("uint256", token_id),
            _topic("address", seller),
        ),
        data=encode_hex(abi_encode(["uint256", "address"], [price, payment_token])),
        block_number=block_number,
        log_index=log_index,
        transaction_hash=_tx_hash(block_number, log_index),
    )


def make_bought_log(
    token_id: int = 1,
    price: int = 10**18,
    block_number: int = 101,
    log_index: int = 0,
    nft: str = NFT,
    buyer: str = BUYER,
    payment_token: str = PAYMENT_TOKEN,
) -> RawLog:
    return RawLog(
        address=MARKET,
        topics=(
            BOUGHT_TOPIC,
            _topic("address", nft),
            _topic("uint256", token_id),
            _topic("address", buyer),
        ),
        data=encode_hex(abi_encode(["uint256", "address"], [price, payment_token])),
        block_number=block_number,
        log_index=log_index,
        transaction_hash=_tx_hash(block_number, log_index),
    )


def make_plain_log(block_number: int, log_index: int = 0) -> RawLog:
    """Opaque log for walker tests; contents are never decoded."""
    return RawLog(
        address=MARKET,
        topics=(LISTED_TOPIC,),
        data="0x",
        block_number=block_number,
        log_index=log_index,
    )


def make_listed_event(
    token_id: int = 1,
    price: int = 10**18,
    observed_at: float = OBSERVED_AT,
    block_number: int | None = 100,
) -> ListedEvent:
    return ListedEvent(
        nft_address=NFT,
        token_id=token_id,
        price=price,
        payment_token=PAYMENT_TOKEN,
        seller=SELLER,
        observed_at=observed_at,
        block_number=block_number,
    )


def make_bought_event(
    token_id: int = 1,
    price: int = 10**18,
    observed_at: float = OBSERVED_AT,
    block_number: int | None = 101,
) -> BoughtEvent:
    return BoughtEvent(
        nft_address=NFT,
        token_id=token_id,
        price=price,
        payment_token=PAYMENT_TOKEN,
        buyer=BUYER,
        observed_at=observed_at,
        block_number=block_number,
    )
