"""Strict, immutable pydantic base models shared by the domain and wire layers."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that serializes field names in camel case.

    `gas_price` becomes `gasPrice` in `model_dump(by_alias=True)`, matching the
    field naming of Ethereum JSON-RPC objects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )

    def replace(self: Self, **changes: Any) -> Self:
        """Return a validated copy with `changes` applied."""
        return self.__class__(**(dict(self) | changes))


class StrictBaseModel(CamelModel):
    """A strict, frozen model that rejects unknown fields."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }
