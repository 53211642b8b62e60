"""
Recursive Length Prefix (RLP) Encoding
======================================

RLP is Ethereum's serialization format for nested byte strings. Transactions
are hashed and signed over their RLP encoding, and every message exchanged
with the relay is a single RLP list.

Prefix Ranges
-------------

+-------------+---------------------------------------------------------+
| Prefix      | Meaning                                                 |
+=============+=========================================================+
| [0x00-0x7f] | Single byte, value is the byte itself                   |
+-------------+---------------------------------------------------------+
| [0x80-0xb7] | String of 0-55 bytes, length = prefix - 0x80            |
+-------------+---------------------------------------------------------+
| [0xb8-0xbf] | Longer string, prefix - 0xb7 = byte length of length    |
+-------------+---------------------------------------------------------+
| [0xc0-0xf7] | List with 0-55 payload bytes, length = prefix - 0xc0    |
+-------------+---------------------------------------------------------+
| [0xf8-0xff] | Longer list, prefix - 0xf7 = byte length of length      |
+-------------+---------------------------------------------------------+

Integers are encoded as their minimal big-endian byte string (zero is the
empty string). Decoding is strict: non-canonical forms are rejected.

References:
----------
- Ethereum Yellow Paper, Appendix B
- https://ethereum.org/en/developers/docs/data-structures-and-encoding/rlp/
"""

from __future__ import annotations

from typing import TypeAlias

RLPItem: TypeAlias = bytes | list["RLPItem"]
"""Either a byte string or a (possibly nested) list of RLP items."""

SINGLE_BYTE_MAX = 0x7F
"""Largest byte that encodes as itself."""

STRING_OFFSET = 0x80
"""Prefix base for byte strings."""

LIST_OFFSET = 0xC0
"""Prefix base for lists."""

SHORT_PAYLOAD_MAX = 55
"""Longest payload that fits a single-byte prefix."""


class RLPDecodingError(Exception):
    """Raised when bytes are not a canonical RLP encoding."""


def encode_rlp(item: RLPItem) -> bytes:
    """
    Encode an item using RLP.

    Raises:
        TypeError: If item is neither bytes nor a list.
    """
    if isinstance(item, bytes):
        if len(item) == 1 and item[0] <= SINGLE_BYTE_MAX:
            return item
        return _prefix(len(item), STRING_OFFSET) + item
    if isinstance(item, list):
        payload = b"".join(encode_rlp(child) for child in item)
        return _prefix(len(payload), LIST_OFFSET) + payload
    raise TypeError(f"Cannot RLP encode type: {type(item).__name__}")


def _prefix(length: int, offset: int) -> bytes:
    if length <= SHORT_PAYLOAD_MAX:
        return bytes([offset + length])
    length_bytes = encode_uint(length)
    return bytes([offset + SHORT_PAYLOAD_MAX + len(length_bytes)]) + length_bytes


def encode_uint(value: int) -> bytes:
    """
    Encode a non-negative integer as a minimal big-endian byte string.

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"Cannot RLP encode negative integer: {value}")
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def decode_uint(data: RLPItem, bits: int = 256) -> int:
    """
    Decode a canonical big-endian integer of at most `bits` bits.

    Raises:
        RLPDecodingError: On lists, leading zeros, or overflow.
    """
    if not isinstance(data, bytes):
        raise RLPDecodingError("Expected integer, got list")
    if data[:1] == b"\x00":
        raise RLPDecodingError("Non-canonical integer: leading zero byte")
    value = int.from_bytes(data, "big")
    if value.bit_length() > bits:
        raise RLPDecodingError(f"Integer exceeds {bits} bits")
    return value


def decode_rlp(data: bytes) -> RLPItem:
    """
    Decode a complete RLP encoding.

    Raises:
        RLPDecodingError: If data is empty, malformed, or has trailing bytes.
    """
    if not data:
        raise RLPDecodingError("Empty RLP data")

    item, end = _decode_item(data, 0)
    if end != len(data):
        raise RLPDecodingError(f"Trailing data: decoded {end} of {len(data)} bytes")
    return item


def decode_rlp_list(data: bytes) -> list[RLPItem]:
    """
    Decode data that must encode a list.

    Raises:
        RLPDecodingError: If the top-level item is a byte string.
    """
    item = decode_rlp(data)
    if not isinstance(item, list):
        raise RLPDecodingError("Expected RLP list")
    return item


def _decode_item(data: bytes, offset: int) -> tuple[RLPItem, int]:
    """Decode one item at `offset`; return it and the offset just past it."""
    if offset >= len(data):
        raise RLPDecodingError("Unexpected end of data")

    prefix = data[offset]
    if prefix <= SINGLE_BYTE_MAX:
        return data[offset : offset + 1], offset + 1

    is_list = prefix >= LIST_OFFSET
    start, length = _read_length(data, offset, LIST_OFFSET if is_list else STRING_OFFSET)
    end = start + length
    if end > len(data):
        raise RLPDecodingError(f"Data too short: need {end}, have {len(data)}")

    if not is_list:
        if length == 1 and data[start] <= SINGLE_BYTE_MAX:
            raise RLPDecodingError("Non-canonical: single byte encoded as string")
        return data[start:end], end

    items: list[RLPItem] = []
    cursor = start
    while cursor < end:
        child, cursor = _decode_item(data, cursor)
        items.append(child)
    if cursor != end:
        raise RLPDecodingError("List payload length mismatch")
    return items, end


def _read_length(data: bytes, offset: int, base: int) -> tuple[int, int]:
    """Return (payload_start, payload_length) for the prefix at `offset`."""
    short = data[offset] - base
    if short <= SHORT_PAYLOAD_MAX:
        return offset + 1, short

    len_of_len = short - SHORT_PAYLOAD_MAX
    start = offset + 1
    if start + len_of_len > len(data):
        raise RLPDecodingError(f"Data too short: need {start + len_of_len}, have {len(data)}")
    if data[start] == 0:
        raise RLPDecodingError("Non-canonical: leading zeros in length encoding")

    length = int.from_bytes(data[start : start + len_of_len], "big")
    if length <= SHORT_PAYLOAD_MAX:
        raise RLPDecodingError("Non-canonical: long form used for short payload")
    return start + len_of_len, length
