"""
Fixed-length byte array types.

Each subclass of `BaseBytes` is an immutable `bytes` with an exact length,
validated on construction and when used as a pydantic field.
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, SupportsIndex

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self


def _coerce_to_bytes(value: Any) -> bytes:
    """
    Coerce a variety of inputs to raw bytes.

    Accepts `bytes` / `bytearray`, hex strings with or without a `0x` prefix,
    and iterables of integers in [0, 255].
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    if isinstance(value, Iterable):
        return bytes(bytearray(value))
    return bytes(value)


class BaseBytes(bytes):
    """
    A `bytes` subclass with an exact length.

    Subclasses set `LENGTH`.
    """

    LENGTH: ClassVar[int]
    """The exact number of bytes (overridden by subclasses)."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Create and validate a new instance.

        Raises:
            ValueError: If the coerced value is not exactly `LENGTH` bytes.
        """
        if not hasattr(cls, "LENGTH"):
            raise TypeError(f"{cls.__name__} must define LENGTH")

        b = _coerce_to_bytes(value)
        if len(b) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(b)}")
        return super().__new__(cls, b)

    @classmethod
    def zero(cls) -> Self:
        """Return an all-zero instance."""
        return cls(b"\x00" * cls.LENGTH)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Hook into Pydantic's validation system.

        Instances pass through unchanged, raw bytes of the right length are
        wrapped, and values serialize to `0x`-prefixed hex.
        """
        python_schema = core_schema.chain_schema(
            [
                core_schema.bytes_schema(min_length=cls.LENGTH, max_length=cls.LENGTH),
                core_schema.no_info_plain_validator_function(cls),
            ]
        )

        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                python_schema,
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(lambda x: x.to_hex()),
        )

    def to_hex(self) -> str:
        """Return the `0x`-prefixed hex form."""
        return "0x" + bytes(self).hex()

    def __repr__(self) -> str:
        """Return a string representation of the bytes."""
        return f"{type(self).__name__}({self.to_hex()})"

    def __hash__(self) -> int:
        """Return the hash of the bytes."""
        return hash((type(self), bytes(self)))

    def hex(self, sep: str | bytes | None = None, bytes_per_sep: SupportsIndex = 1) -> str:
        """Return the hexadecimal string representation of the underlying bytes."""
        return bytes(self).hex() if sep is None else bytes(self).hex(sep, bytes_per_sep)


class Address(BaseBytes):
    """20-byte Ethereum account address."""

    LENGTH = 20


class Bytes32(BaseBytes):
    """32-byte value: hashes, roots, storage keys."""

    LENGTH = 32


class Bytes96(BaseBytes):
    """96-byte value: BLS signatures."""

    LENGTH = 96


class Bloom(BaseBytes):
    """256-byte logs bloom filter."""

    LENGTH = 256


ZERO_HASH: Bytes32 = Bytes32.zero()
"""The all-zero 32-byte hash."""
