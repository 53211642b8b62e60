"""
Wire messages exchanged with the relay.

Every message is a single RLP list whose elements are the message fields in
definition order, the same way an SSZ container serializes its fields:

- `BaseUint` fields: minimal big-endian byte strings (width checked on decode)
- `bytes` fields: raw byte strings
- `str` fields: UTF-8 byte strings
- nested `WireMessage` fields: nested lists
- `tuple[...]` fields: lists of the element encoding

This framing is not the protobuf encoding other clients of the `api.API`
service send on the same method paths. It only interoperates with a relay
that speaks RLP framing.

Example::

    >>> TransactionResponse(hash="0xab", timestamp=Uint64(7)).encode_bytes()
    b'\\xc6\\x840xab\\x07'
"""

from __future__ import annotations

from typing import Any, get_args, get_origin

from typing_extensions import Self

from fiber.errors import DecodeError
from fiber.types import (
    BaseUint,
    RLPDecodingError,
    RLPItem,
    StrictBaseModel,
    Uint32,
    Uint64,
    decode_rlp,
    encode_rlp,
)
from fiber.types.rlp import decode_uint


class WireDecodingError(DecodeError):
    """Raised when bytes do not decode into the expected wire message."""


class WireMessage(StrictBaseModel):
    """Base class of every message sent to or received from the relay."""

    def to_rlp(self) -> list[RLPItem]:
        """Return the message as an RLP list item."""
        return [_encode_value(getattr(self, name)) for name in type(self).model_fields]

    @classmethod
    def from_rlp(cls, item: RLPItem) -> Self:
        """
        Build the message from a decoded RLP list.

        Raises:
            WireDecodingError: On arity or field type mismatch.
        """
        fields = cls.model_fields
        if not isinstance(item, list):
            raise WireDecodingError(f"{cls.__name__} must be an RLP list")
        if len(item) != len(fields):
            raise WireDecodingError(
                f"{cls.__name__} expects {len(fields)} fields, got {len(item)}"
            )

        values = {
            name: _decode_value(info.annotation, element, f"{cls.__name__}.{name}")
            for (name, info), element in zip(fields.items(), item, strict=True)
        }
        return cls(**values)

    def encode_bytes(self) -> bytes:
        """Serialize to wire bytes."""
        return encode_rlp(self.to_rlp())

    @classmethod
    def decode_bytes(cls, data: bytes) -> Self:
        """
        Parse wire bytes.

        Raises:
            WireDecodingError: If the bytes are not a valid encoding of this message.
        """
        try:
            return cls.from_rlp(decode_rlp(data))
        except WireDecodingError:
            raise
        except (RLPDecodingError, ValueError) as e:
            raise WireDecodingError(f"Failed to decode {cls.__name__}: {e}") from e


def _encode_value(value: Any) -> RLPItem:
    if isinstance(value, WireMessage):
        return value.to_rlp()
    if isinstance(value, BaseUint):
        return value.to_be_bytes()
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bytes):
        return bytes(value)
    if isinstance(value, tuple):
        return [_encode_value(element) for element in value]
    raise TypeError(f"Unsupported wire field type: {type(value).__name__}")


def _decode_value(annotation: Any, item: RLPItem, where: str) -> Any:
    if get_origin(annotation) is tuple:
        element_type = get_args(annotation)[0]
        if not isinstance(item, list):
            raise WireDecodingError(f"{where}: expected list")
        return tuple(_decode_value(element_type, element, where) for element in item)

    if isinstance(annotation, type) and issubclass(annotation, WireMessage):
        return annotation.from_rlp(item)

    if not isinstance(item, bytes):
        raise WireDecodingError(f"{where}: expected byte string, got list")
    if annotation is bytes:
        return item
    if annotation is str:
        return item.decode("utf-8")
    if isinstance(annotation, type) and issubclass(annotation, BaseUint):
        return annotation(decode_uint(item, annotation.BITS))
    raise TypeError(f"{where}: unsupported wire field type {annotation!r}")


# -----------------------------------------------------------------------------
# Transactions
# -----------------------------------------------------------------------------


class WireTransaction(WireMessage):
    """
    A signed transaction in wire form.

    Fee fields are mutually exclusive by `type`: legacy and access-list
    transactions set `gas_price`, dynamic-fee transactions set `max_fee` and
    `priority_fee`. The inapplicable fields are zero.
    """

    chain_id: Uint32
    to: bytes
    """Recipient address; empty for contract creation."""
    gas: Uint64
    gas_price: Uint64
    max_fee: Uint64
    priority_fee: Uint64
    hash: bytes
    input: bytes
    nonce: Uint64
    value: bytes
    """Big-endian wei amount."""
    sender: bytes
    type: Uint32
    v: Uint64
    r: bytes
    s: bytes


class RawTransactionMsg(WireMessage):
    """Request carrying one EIP-2718 envelope."""

    raw_tx: bytes


class TransactionSequenceMsg(WireMessage):
    """Request carrying an ordered bundle of transactions."""

    sequence: tuple[WireTransaction, ...]


class RawTransactionSequenceMsg(WireMessage):
    """Request carrying an ordered bundle of EIP-2718 envelopes."""

    raw_txs: tuple[bytes, ...]


class BackrunMsg(WireMessage):
    """Request to place `tx` directly behind the already-seen transaction `hash`."""

    hash: str
    tx: WireTransaction


class TransactionResponse(WireMessage):
    """Acknowledgement of one transaction."""

    hash: str
    """Transaction hash as `0x`-prefixed hex."""

    timestamp: Uint64
    """Time the relay received the transaction, in microseconds since the epoch."""


class TransactionSequenceResponse(WireMessage):
    """Acknowledgement of a bundle, one entry per item in request order."""

    responses: tuple[TransactionResponse, ...]


# -----------------------------------------------------------------------------
# Subscriptions
# -----------------------------------------------------------------------------


class TxFilter(WireMessage):
    """New-transaction filter; an empty payload matches everything."""

    encoded: bytes = b""


class SubscribeRequest(WireMessage):
    """Request body of the unfiltered subscriptions."""


class WireExecutionPayloadHeader(WireMessage):
    """Execution payload header in wire form."""

    parent_hash: bytes
    fee_recipient: bytes
    state_root: bytes
    receipts_root: bytes
    logs_bloom: bytes
    prev_randao: bytes
    block_number: Uint64
    gas_limit: Uint64
    gas_used: Uint64
    timestamp: Uint64
    extra_data: bytes
    base_fee_per_gas: bytes
    """Big-endian uint256."""
    block_hash: bytes


class WireExecutionPayload(WireMessage):
    """Execution payload in wire form."""

    header: WireExecutionPayloadHeader
    transactions: tuple[WireTransaction, ...]


class WireBeaconBlock(WireMessage):
    """Compact beacon block in wire form."""

    slot: Uint64
    proposer_index: Uint64
    parent_root: bytes
    state_root: bytes
    body_root: bytes
    randao_reveal: bytes
    graffiti: bytes
    execution_block_hash: bytes
