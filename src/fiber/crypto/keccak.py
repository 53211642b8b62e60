"""Keccak-256, the pre-standard SHA-3 variant used throughout Ethereum."""

from __future__ import annotations

from Crypto.Hash import keccak

from fiber.types import Bytes32


def keccak256(data: bytes) -> Bytes32:
    """Return the 32-byte Keccak-256 digest of `data`."""
    h = keccak.new(digest_bits=256)
    h.update(data)
    return Bytes32(h.digest())
