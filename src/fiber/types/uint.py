"""Fixed-width unsigned integer types."""

from __future__ import annotations

from typing import Any, ClassVar, SupportsInt

from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema
from typing_extensions import Self


class BaseUint(int):
    """An `int` constrained to the range [0, 2**BITS - 1]."""

    BITS: ClassVar[int]
    """The number of bits in the integer (overridden by subclasses)."""

    def __new__(cls, value: SupportsInt) -> Self:
        """
        Create and validate a new instance.

        Raises:
            OverflowError: If `value` does not fit in `BITS` unsigned bits.
            TypeError: If `value` is a bool or not integral.
        """
        if isinstance(value, bool):
            raise TypeError(f"{cls.__name__} does not accept bool")
        int_value = int(value)
        if not 0 <= int_value <= cls.max_value():
            raise OverflowError(f"{int_value} is out of range for {cls.__name__}")
        return super().__new__(cls, int_value)

    @classmethod
    def max_value(cls) -> int:
        """Largest representable value."""
        return (1 << cls.BITS) - 1

    @classmethod
    def fits(cls, value: int) -> bool:
        """Whether `value` is representable without loss."""
        return 0 <= value <= cls.max_value()

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Hook into Pydantic's validation system."""

        def validate(value: Any) -> BaseUint:
            try:
                return cls(value)
            except (OverflowError, TypeError) as e:
                raise ValueError(str(e)) from e

        return core_schema.json_or_python_schema(
            json_schema=core_schema.int_schema(ge=0, le=cls.max_value()),
            python_schema=core_schema.no_info_plain_validator_function(validate),
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda instance: int(instance)
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: GetJsonSchemaHandler
    ) -> JsonSchemaValue:
        """Annotate the JSON schema with the bit width."""
        json_schema = handler(schema)
        json_schema.update(format=f"uint{cls.BITS}")
        return json_schema

    def to_be_bytes(self) -> bytes:
        """Minimal big-endian encoding; zero encodes as the empty string."""
        return int(self).to_bytes((self.bit_length() + 7) // 8, "big")

    @classmethod
    def from_be_bytes(cls, data: bytes) -> Self:
        """Parse a big-endian byte string, enforcing the bit width."""
        return cls(int.from_bytes(data, "big"))

    def __repr__(self) -> str:
        """Return a string representation including the type name."""
        return f"{type(self).__name__}({int(self)})"


class Uint8(BaseUint):
    """Unsigned 8-bit integer."""

    BITS = 8


class Uint32(BaseUint):
    """Unsigned 32-bit integer."""

    BITS = 32


class Uint64(BaseUint):
    """Unsigned 64-bit integer."""

    BITS = 64


class Uint256(BaseUint):
    """Unsigned 256-bit integer, the EVM word size."""

    BITS = 256
