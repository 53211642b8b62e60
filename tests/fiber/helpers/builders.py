"""Builders for signed transactions and feed payloads used across tests."""

from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric import ec

from fiber.codec import encode_transaction
from fiber.crypto import private_key_from_int
from fiber.eth import (
    AccessListTransaction,
    AccessTuple,
    DynamicFeeTransaction,
    LegacyTransaction,
)
from fiber.types import Address, Bytes32, Uint64, Uint256
from fiber.wire import WireBeaconBlock, WireExecutionPayload, WireExecutionPayloadHeader

TEST_CHAIN_ID = 1

TEST_SECRET = 0x4C0883A69102937D6231471B5DBB6204FE5129617082792AE468D01A3F362318
"""Well-known test key; its address is 0x2c7536e3605d9c16a7a3d7b1898e529396a65c23."""

RECIPIENT = Address(b"\x35" * 20)

GWEI = 10**9
ETHER = 10**18


def make_private_key(secret: int = TEST_SECRET) -> ec.EllipticCurvePrivateKey:
    """secp256k1 key for `secret`."""
    return private_key_from_int(secret)


def make_legacy_tx(
    nonce: int = 5,
    *,
    chain_id: int | None = TEST_CHAIN_ID,
    gas_price: int = GWEI,
    value: int = ETHER,
    data: bytes = b"",
    to: Address | None = RECIPIENT,
) -> LegacyTransaction:
    """Signed legacy transfer; EIP-155 protected unless `chain_id` is None."""
    tx = LegacyTransaction(
        nonce=Uint64(nonce),
        gas_price=Uint256(gas_price),
        gas=Uint64(21_000),
        to=to,
        value=Uint256(value),
        data=data,
    )
    return tx.sign(make_private_key(), chain_id)


def make_access_list_tx(
    nonce: int = 1,
    *,
    chain_id: int = TEST_CHAIN_ID,
    access_list: tuple[AccessTuple, ...] = (),
) -> AccessListTransaction:
    """Signed EIP-2930 transaction."""
    tx = AccessListTransaction(
        chain_id=Uint256(chain_id),
        nonce=Uint64(nonce),
        gas_price=Uint256(2 * GWEI),
        gas=Uint64(30_000),
        to=RECIPIENT,
        value=Uint256(7),
        data=b"\x01\x02",
        access_list=access_list,
    )
    return tx.sign(make_private_key())  # type: ignore[return-value]


def make_dynamic_fee_tx(
    nonce: int = 2,
    *,
    chain_id: int = TEST_CHAIN_ID,
    max_fee: int = 30 * GWEI,
    priority_fee: int = 2 * GWEI,
    to: Address | None = RECIPIENT,
    data: bytes = b"\xde\xad\xbe\xef",
) -> DynamicFeeTransaction:
    """Signed EIP-1559 transaction."""
    tx = DynamicFeeTransaction(
        chain_id=Uint256(chain_id),
        nonce=Uint64(nonce),
        max_priority_fee_per_gas=Uint256(priority_fee),
        max_fee_per_gas=Uint256(max_fee),
        gas=Uint64(50_000),
        to=to,
        value=Uint256(ETHER // 2),
        data=data,
    )
    return tx.sign(make_private_key())  # type: ignore[return-value]


def make_access_tuple() -> AccessTuple:
    """Access list entry with two storage keys."""
    return AccessTuple(
        address=Address(b"\x11" * 20),
        storage_keys=(Bytes32(b"\x00" * 32), Bytes32(b"\x01" * 32)),
    )


def make_wire_header(block_number: int = 100) -> WireExecutionPayloadHeader:
    """Wire execution payload header with distinct field values."""
    return WireExecutionPayloadHeader(
        parent_hash=b"\x01" * 32,
        fee_recipient=b"\x02" * 20,
        state_root=b"\x03" * 32,
        receipts_root=b"\x04" * 32,
        logs_bloom=b"\x00" * 256,
        prev_randao=b"\x05" * 32,
        block_number=Uint64(block_number),
        gas_limit=Uint64(30_000_000),
        gas_used=Uint64(12_345_678),
        timestamp=Uint64(1_700_000_000),
        extra_data=b"builder",
        base_fee_per_gas=(7 * GWEI).to_bytes(5, "big"),
        block_hash=block_number.to_bytes(32, "big"),
    )


def make_wire_payload(block_number: int = 100) -> WireExecutionPayload:
    """Wire execution payload carrying one transaction of each type."""
    txs = (make_legacy_tx(), make_access_list_tx(), make_dynamic_fee_tx())
    return WireExecutionPayload(
        header=make_wire_header(block_number),
        transactions=tuple(encode_transaction(tx, TEST_CHAIN_ID) for tx in txs),
    )


def make_wire_beacon_block(slot: int = 9) -> WireBeaconBlock:
    """Wire compact beacon block."""
    return WireBeaconBlock(
        slot=Uint64(slot),
        proposer_index=Uint64(42),
        parent_root=b"\x0a" * 32,
        state_root=b"\x0b" * 32,
        body_root=b"\x0c" * 32,
        randao_reveal=b"\x0d" * 96,
        graffiti=b"\x0e" * 32,
        execution_block_hash=b"\x0f" * 32,
    )
