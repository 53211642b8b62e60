"""
Conversions between domain objects and wire messages.

The functions here are pure: no state, no I/O.

Transactions
------------
`encode_transaction` needs the sender, which the wire form carries
explicitly. It is recovered from the signature under the London rules for
the configured chain, so a transaction signed for another chain, or with a
malformed signature, fails before anything is sent.

Fixed-width wire fields (fee fields are uint64, the chain id is uint32) are
a precision boundary. Values that do not fit raise `EncodeError` rather than
being truncated.

`decode_transaction` drops access lists: the wire form does not carry them.
The recomputed hash of a decoded typed transaction therefore only matches
`WireTransaction.hash` when the original access list was empty.
"""

from __future__ import annotations

from typing import TypeVar

from typing_extensions import assert_never

from fiber.crypto import SignatureError
from fiber.errors import DecodeError, EncodeError, InvalidSignatureError, UnsupportedTransactionTypeError
from fiber.eth import (
    AccessListTransaction,
    BeaconBlock,
    DynamicFeeTransaction,
    ExecutionPayload,
    ExecutionPayloadHeader,
    LegacyTransaction,
    Transaction,
    TransactionType,
)
from fiber.types import Address, BaseUint, Bloom, Bytes32, Bytes96, Uint32, Uint64, Uint256
from fiber.wire import (
    WireBeaconBlock,
    WireExecutionPayload,
    WireExecutionPayloadHeader,
    WireTransaction,
)

_U = TypeVar("_U", bound=BaseUint)


def _narrow(value: int, uint_type: type[_U], field: str) -> _U:
    """Fit `value` into a wire integer or fail with `EncodeError`."""
    if not uint_type.fits(value):
        raise EncodeError(f"{field}={value} exceeds the {uint_type.BITS}-bit wire field")
    return uint_type(value)


def encode_transaction(tx: Transaction, chain_id: int) -> WireTransaction:
    """
    Convert a signed transaction to its wire form.

    Args:
        tx: Signed transaction.
        chain_id: Chain whose signing rules are used to recover the sender.

    Raises:
        InvalidSignatureError: If the sender cannot be recovered.
        EncodeError: If a field does not fit its wire width.
    """
    try:
        sender = tx.sender(chain_id)
    except SignatureError as e:
        raise InvalidSignatureError(f"Cannot recover sender: {e}") from e

    gas_price = max_fee = priority_fee = 0
    match tx:
        case LegacyTransaction():
            gas_price = tx.gas_price
        case AccessListTransaction():
            gas_price = tx.gas_price
        case DynamicFeeTransaction():
            max_fee = tx.max_fee_per_gas
            priority_fee = tx.max_priority_fee_per_gas
        case _:
            assert_never(tx)

    return WireTransaction(
        chain_id=_narrow(tx.chain_id, Uint32, "chain_id"),
        to=b"" if tx.to is None else bytes(tx.to),
        gas=Uint64(tx.gas),
        gas_price=_narrow(gas_price, Uint64, "gas_price"),
        max_fee=_narrow(max_fee, Uint64, "max_fee_per_gas"),
        priority_fee=_narrow(priority_fee, Uint64, "max_priority_fee_per_gas"),
        hash=bytes(tx.hash()),
        input=tx.data,
        nonce=Uint64(tx.nonce),
        value=tx.value.to_be_bytes(),
        sender=bytes(sender),
        type=Uint32(tx.type),
        v=_narrow(tx.v, Uint64, "v"),
        r=tx.r.to_be_bytes(),
        s=tx.s.to_be_bytes(),
    )


def decode_transaction(wire: WireTransaction) -> Transaction:
    """
    Rebuild a signed transaction from its wire form.

    Raises:
        UnsupportedTransactionTypeError: If the type tag is not one of the
            three supported variants.
        DecodeError: If a field is malformed (e.g. a 19-byte recipient).
    """
    try:
        common = dict(
            nonce=wire.nonce,
            gas=wire.gas,
            to=Address(wire.to) if wire.to else None,
            value=Uint256.from_be_bytes(wire.value),
            data=wire.input,
            v=Uint256(wire.v),
            r=Uint256.from_be_bytes(wire.r),
            s=Uint256.from_be_bytes(wire.s),
        )

        match wire.type:
            case TransactionType.LEGACY:
                return LegacyTransaction(gas_price=Uint256(wire.gas_price), **common)
            case TransactionType.ACCESS_LIST:
                return AccessListTransaction(
                    chain_id=Uint256(wire.chain_id),
                    gas_price=Uint256(wire.gas_price),
                    **common,
                )
            case TransactionType.DYNAMIC_FEE:
                return DynamicFeeTransaction(
                    chain_id=Uint256(wire.chain_id),
                    max_fee_per_gas=Uint256(wire.max_fee),
                    max_priority_fee_per_gas=Uint256(wire.priority_fee),
                    **common,
                )
    except (OverflowError, ValueError) as e:
        raise DecodeError(f"Malformed wire transaction: {e}") from e

    raise UnsupportedTransactionTypeError(int(wire.type))


def decode_execution_payload_header(wire: WireExecutionPayloadHeader) -> ExecutionPayloadHeader:
    """
    Rebuild an execution payload header from its wire form.

    Raises:
        DecodeError: If a fixed-length field has the wrong length.
    """
    try:
        return ExecutionPayloadHeader(
            parent_hash=Bytes32(wire.parent_hash),
            fee_recipient=Address(wire.fee_recipient),
            state_root=Bytes32(wire.state_root),
            receipts_root=Bytes32(wire.receipts_root),
            logs_bloom=Bloom(wire.logs_bloom),
            prev_randao=Bytes32(wire.prev_randao),
            block_number=wire.block_number,
            gas_limit=wire.gas_limit,
            gas_used=wire.gas_used,
            timestamp=wire.timestamp,
            extra_data=wire.extra_data,
            base_fee_per_gas=Uint256.from_be_bytes(wire.base_fee_per_gas),
            block_hash=Bytes32(wire.block_hash),
        )
    except (OverflowError, ValueError) as e:
        raise DecodeError(f"Malformed execution payload header: {e}") from e


def decode_execution_payload(wire: WireExecutionPayload) -> ExecutionPayload:
    """
    Rebuild an execution payload, decoding every contained transaction.

    Raises:
        DecodeError: If the header or any transaction fails to decode.
    """
    header = decode_execution_payload_header(wire.header)
    transactions = tuple(decode_transaction(tx) for tx in wire.transactions)
    return ExecutionPayload(header=header, transactions=transactions)


def decode_beacon_block(wire: WireBeaconBlock) -> BeaconBlock:
    """
    Rebuild a compact beacon block from its wire form.

    Raises:
        DecodeError: If a fixed-length field has the wrong length.
    """
    try:
        return BeaconBlock(
            slot=wire.slot,
            proposer_index=wire.proposer_index,
            parent_root=Bytes32(wire.parent_root),
            state_root=Bytes32(wire.state_root),
            body_root=Bytes32(wire.body_root),
            randao_reveal=Bytes96(wire.randao_reveal),
            graffiti=Bytes32(wire.graffiti),
            execution_block_hash=Bytes32(wire.execution_block_hash),
        )
    except ValueError as e:
        raise DecodeError(f"Malformed beacon block: {e}") from e
