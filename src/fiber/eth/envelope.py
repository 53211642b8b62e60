"""
EIP-2718 transaction envelopes.

Raw transactions, as submitted through `send_raw_transaction`, are the
envelope bytes: a legacy transaction is a bare RLP list (first byte >= 0xc0);
a typed transaction is its type byte followed by an RLP list.
"""

from __future__ import annotations

from fiber.types import Address, Bytes32, RLPDecodingError, RLPItem, decode_rlp
from fiber.types.rlp import LIST_OFFSET, decode_uint

from .transaction import (
    AccessListTransaction,
    AccessTuple,
    DynamicFeeTransaction,
    LegacyTransaction,
    Transaction,
    TransactionType,
)


class EnvelopeDecodingError(ValueError):
    """Raised when bytes are not a valid transaction envelope."""


def encode_transaction_envelope(tx: Transaction) -> bytes:
    """Return the EIP-2718 envelope bytes of a signed transaction."""
    return tx.encode()


def decode_transaction_envelope(raw: bytes) -> Transaction:
    """
    Parse EIP-2718 envelope bytes.

    Raises:
        EnvelopeDecodingError: If the bytes are malformed or the type is unknown.
    """
    if not raw:
        raise EnvelopeDecodingError("Empty transaction envelope")

    try:
        if raw[0] >= LIST_OFFSET:
            return _decode_legacy(_fields(decode_rlp(raw), 9))

        tx_type = raw[0]
        if tx_type == TransactionType.ACCESS_LIST:
            return _decode_access_list(_fields(decode_rlp(raw[1:]), 11))
        if tx_type == TransactionType.DYNAMIC_FEE:
            return _decode_dynamic_fee(_fields(decode_rlp(raw[1:]), 12))
    except (RLPDecodingError, ValueError) as e:
        raise EnvelopeDecodingError(f"Malformed transaction envelope: {e}") from e

    raise EnvelopeDecodingError(f"Unsupported transaction type: {raw[0]:#04x}")


def _fields(item: RLPItem, count: int) -> list[RLPItem]:
    if not isinstance(item, list) or len(item) != count:
        raise EnvelopeDecodingError(f"Expected RLP list of {count} fields")
    return item


def _bytes(item: RLPItem) -> bytes:
    if not isinstance(item, bytes):
        raise EnvelopeDecodingError("Expected byte string, got list")
    return item


def _to(item: RLPItem) -> Address | None:
    data = _bytes(item)
    return Address(data) if data else None


def _access_list(item: RLPItem) -> tuple[AccessTuple, ...]:
    if not isinstance(item, list):
        raise EnvelopeDecodingError("Access list must be a list")
    entries = []
    for entry in item:
        if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[1], list):
            raise EnvelopeDecodingError("Malformed access list entry")
        address, keys = entry
        entries.append(
            AccessTuple(
                address=Address(_bytes(address)),
                storage_keys=tuple(Bytes32(_bytes(key)) for key in keys),
            )
        )
    return tuple(entries)


def _decode_legacy(f: list[RLPItem]) -> LegacyTransaction:
    return LegacyTransaction(
        nonce=decode_uint(f[0], 64),
        gas_price=decode_uint(f[1]),
        gas=decode_uint(f[2], 64),
        to=_to(f[3]),
        value=decode_uint(f[4]),
        data=_bytes(f[5]),
        v=decode_uint(f[6]),
        r=decode_uint(f[7]),
        s=decode_uint(f[8]),
    )


def _decode_access_list(f: list[RLPItem]) -> AccessListTransaction:
    return AccessListTransaction(
        chain_id=decode_uint(f[0]),
        nonce=decode_uint(f[1], 64),
        gas_price=decode_uint(f[2]),
        gas=decode_uint(f[3], 64),
        to=_to(f[4]),
        value=decode_uint(f[5]),
        data=_bytes(f[6]),
        access_list=_access_list(f[7]),
        v=decode_uint(f[8]),
        r=decode_uint(f[9]),
        s=decode_uint(f[10]),
    )


def _decode_dynamic_fee(f: list[RLPItem]) -> DynamicFeeTransaction:
    return DynamicFeeTransaction(
        chain_id=decode_uint(f[0]),
        nonce=decode_uint(f[1], 64),
        max_priority_fee_per_gas=decode_uint(f[2]),
        max_fee_per_gas=decode_uint(f[3]),
        gas=decode_uint(f[4], 64),
        to=_to(f[5]),
        value=decode_uint(f[6]),
        data=_bytes(f[7]),
        access_list=_access_list(f[8]),
        v=decode_uint(f[9]),
        r=decode_uint(f[10]),
        s=decode_uint(f[11]),
    )
