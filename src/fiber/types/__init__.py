"""Primitive types shared by the domain model and the wire protocol."""

from .base import CamelModel, StrictBaseModel
from .byte_arrays import ZERO_HASH, Address, BaseBytes, Bloom, Bytes32, Bytes96
from .rlp import RLPDecodingError, RLPItem, decode_rlp, decode_rlp_list, encode_rlp
from .uint import BaseUint, Uint8, Uint32, Uint64, Uint256

__all__ = [
    # Models
    "CamelModel",
    "StrictBaseModel",
    # Integers
    "BaseUint",
    "Uint8",
    "Uint32",
    "Uint64",
    "Uint256",
    # Byte arrays
    "Address",
    "BaseBytes",
    "Bloom",
    "Bytes32",
    "Bytes96",
    "ZERO_HASH",
    # RLP
    "RLPDecodingError",
    "RLPItem",
    "decode_rlp",
    "decode_rlp_list",
    "encode_rlp",
]
