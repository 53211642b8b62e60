"""Hashing and secp256k1 primitives for transaction signing and sender recovery."""

from .keccak import keccak256
from .secp256k1 import (
    SignatureError,
    address_of,
    private_key_from_int,
    recover_address,
    recover_public_key,
    sign_hash,
)

__all__ = [
    "SignatureError",
    "address_of",
    "keccak256",
    "private_key_from_int",
    "recover_address",
    "recover_public_key",
    "sign_hash",
]
