"""
Signed Ethereum transactions.

Three transaction variants are supported, selected by the EIP-2718 type tag:

+------+---------------+------------------------------------------------+
| Tag  | Variant       | Fee fields                                     |
+======+===============+================================================+
| 0x00 | Legacy        | gas_price (chain id folded into v, EIP-155)    |
+------+---------------+------------------------------------------------+
| 0x01 | Access list   | gas_price, explicit chain_id (EIP-2930)        |
+------+---------------+------------------------------------------------+
| 0x02 | Dynamic fee   | max_fee_per_gas, max_priority_fee_per_gas      |
|      |               | (EIP-1559)                                     |
+------+---------------+------------------------------------------------+

`Transaction` is the union of the three models. Code that branches on the
variant matches on the class and ends with `assert_never`, so a new variant
cannot be silently ignored.

Signature Values
----------------
- Legacy, unprotected: v = 27 + y_parity.
- Legacy, EIP-155: v = chain_id * 2 + 35 + y_parity.
- Typed: v = y_parity.
"""

from __future__ import annotations

from enum import IntEnum
from typing import ClassVar, TypeAlias

from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import Field
from typing_extensions import assert_never

from fiber.crypto import SignatureError, keccak256, recover_address, sign_hash
from fiber.types import Address, Bytes32, RLPItem, StrictBaseModel, Uint64, Uint256, encode_rlp
from fiber.types.rlp import encode_uint

LEGACY_V_OFFSET = 27
"""v offset of unprotected legacy signatures."""

EIP155_V_OFFSET = 35
"""v offset of EIP-155 replay-protected legacy signatures."""


class TransactionType(IntEnum):
    """EIP-2718 transaction type tags."""

    LEGACY = 0
    ACCESS_LIST = 1
    DYNAMIC_FEE = 2


class AccessTuple(StrictBaseModel):
    """One EIP-2930 access list entry."""

    address: Address
    """Account the transaction intends to touch."""

    storage_keys: tuple[Bytes32, ...] = ()
    """Storage slots of that account the transaction intends to touch."""

    def to_rlp(self) -> RLPItem:
        """RLP item form: [address, [storage_key, ...]]."""
        return [bytes(self.address), [bytes(key) for key in self.storage_keys]]


class _TransactionBase(StrictBaseModel):
    """Fields and behaviour shared by every variant."""

    TYPE: ClassVar[TransactionType]

    nonce: Uint64
    """Sender account nonce."""

    gas: Uint64
    """Gas limit."""

    to: Address | None = None
    """Recipient; `None` for contract creation."""

    value: Uint256 = Uint256(0)
    """Wei transferred to the recipient."""

    data: bytes = b""
    """Call data or init code."""

    v: Uint256 = Uint256(0)
    """Signature v (see module docstring)."""

    r: Uint256 = Uint256(0)
    """Signature r."""

    s: Uint256 = Uint256(0)
    """Signature s."""

    @property
    def type(self) -> TransactionType:
        """EIP-2718 type tag."""
        return self.TYPE

    @property
    def is_signed(self) -> bool:
        """Whether signature values are present."""
        return self.r != 0 and self.s != 0

    def _to_rlp(self) -> RLPItem:
        return b"" if self.to is None else bytes(self.to)

    def _unsigned_fields(self) -> list[RLPItem]:
        raise NotImplementedError

    def _signature_fields(self) -> list[RLPItem]:
        return [encode_uint(self.v), encode_uint(self.r), encode_uint(self.s)]

    def recovery_id(self) -> int:
        """y parity of the signature, derived from `v`."""
        raise NotImplementedError

    def signing_hash(self, chain_id: int | None = None) -> Bytes32:
        """Digest the sender signed."""
        raise NotImplementedError

    def encode(self) -> bytes:
        """EIP-2718 envelope: RLP list for legacy, `type || RLP list` otherwise."""
        payload = encode_rlp(self._unsigned_fields() + self._signature_fields())
        if self.TYPE == TransactionType.LEGACY:
            return payload
        return bytes([self.TYPE]) + payload

    def hash(self) -> Bytes32:
        """Transaction hash: keccak256 of the envelope."""
        return keccak256(self.encode())

    def sender(self, chain_id: int) -> Address:
        """
        Recover the sender under the London signing rules for `chain_id`.

        Raises:
            SignatureError: If the signature is invalid or was made for
                another chain.
        """
        raise NotImplementedError


class LegacyTransaction(_TransactionBase):
    """Pre-EIP-2718 transaction, optionally replay protected by EIP-155."""

    TYPE: ClassVar[TransactionType] = TransactionType.LEGACY

    gas_price: Uint256
    """Price per unit of gas in wei."""

    @property
    def chain_id(self) -> int:
        """Chain id folded into `v`; 0 for unprotected signatures."""
        if self.v >= EIP155_V_OFFSET:
            return (self.v - EIP155_V_OFFSET) // 2
        return 0

    @property
    def is_protected(self) -> bool:
        """Whether the signature is bound to a chain id (EIP-155)."""
        return self.v not in (LEGACY_V_OFFSET, LEGACY_V_OFFSET + 1)

    def _unsigned_fields(self) -> list[RLPItem]:
        return [
            encode_uint(self.nonce),
            encode_uint(self.gas_price),
            encode_uint(self.gas),
            self._to_rlp(),
            encode_uint(self.value),
            self.data,
        ]

    def recovery_id(self) -> int:
        if self.is_protected:
            return self.v - EIP155_V_OFFSET - 2 * self.chain_id
        return self.v - LEGACY_V_OFFSET

    def signing_hash(self, chain_id: int | None = None) -> Bytes32:
        """
        Homestead digest when `chain_id` is None, EIP-155 digest otherwise.

        When omitted, `chain_id` is taken from `v` for protected signatures.
        """
        if chain_id is None and self.is_signed and self.is_protected:
            chain_id = self.chain_id
        fields = self._unsigned_fields()
        if chain_id is not None:
            fields += [encode_uint(chain_id), b"", b""]
        return keccak256(encode_rlp(fields))

    def sender(self, chain_id: int) -> Address:
        if not self.is_protected:
            return recover_address(self.signing_hash(), self.recovery_id(), self.r, self.s)
        if self.chain_id != chain_id:
            raise SignatureError(f"Invalid chain id for signer: have {self.chain_id}, want {chain_id}")
        return recover_address(self.signing_hash(chain_id), self.recovery_id(), self.r, self.s)

    def sign(self, private_key: ec.EllipticCurvePrivateKey, chain_id: int | None) -> LegacyTransaction:
        """Return a copy signed with EIP-155 for `chain_id`, or unprotected when None."""
        recovery_id, r, s = sign_hash(private_key, self.signing_hash(chain_id))
        v = (
            LEGACY_V_OFFSET + recovery_id
            if chain_id is None
            else EIP155_V_OFFSET + 2 * chain_id + recovery_id
        )
        return self.replace(v=Uint256(v), r=Uint256(r), s=Uint256(s))


class _TypedTransaction(_TransactionBase):
    """Shared behaviour of EIP-2718 typed transactions."""

    chain_id: Uint256
    """Chain the transaction is valid on."""

    access_list: tuple[AccessTuple, ...] = Field(default=())
    """Pre-declared accounts and storage slots."""

    def _access_list_rlp(self) -> RLPItem:
        return [entry.to_rlp() for entry in self.access_list]

    def recovery_id(self) -> int:
        return int(self.v)

    def signing_hash(self, chain_id: int | None = None) -> Bytes32:
        """Digest of `type || RLP(unsigned fields)`; the chain id is part of the fields."""
        return keccak256(bytes([self.TYPE]) + encode_rlp(self._unsigned_fields()))

    def sender(self, chain_id: int) -> Address:
        if self.chain_id != chain_id:
            raise SignatureError(f"Invalid chain id for signer: have {self.chain_id}, want {chain_id}")
        return recover_address(self.signing_hash(), self.recovery_id(), self.r, self.s)

    def sign(self, private_key: ec.EllipticCurvePrivateKey) -> _TypedTransaction:
        """Return a copy signed for its own `chain_id`."""
        recovery_id, r, s = sign_hash(private_key, self.signing_hash())
        return self.replace(v=Uint256(recovery_id), r=Uint256(r), s=Uint256(s))


class AccessListTransaction(_TypedTransaction):
    """EIP-2930 transaction."""

    TYPE: ClassVar[TransactionType] = TransactionType.ACCESS_LIST

    gas_price: Uint256
    """Price per unit of gas in wei."""

    def _unsigned_fields(self) -> list[RLPItem]:
        return [
            encode_uint(self.chain_id),
            encode_uint(self.nonce),
            encode_uint(self.gas_price),
            encode_uint(self.gas),
            self._to_rlp(),
            encode_uint(self.value),
            self.data,
            self._access_list_rlp(),
        ]


class DynamicFeeTransaction(_TypedTransaction):
    """EIP-1559 transaction."""

    TYPE: ClassVar[TransactionType] = TransactionType.DYNAMIC_FEE

    max_priority_fee_per_gas: Uint256
    """Tip cap: maximum priority fee per gas paid to the block builder."""

    max_fee_per_gas: Uint256
    """Fee cap: maximum total fee per gas."""

    def _unsigned_fields(self) -> list[RLPItem]:
        return [
            encode_uint(self.chain_id),
            encode_uint(self.nonce),
            encode_uint(self.max_priority_fee_per_gas),
            encode_uint(self.max_fee_per_gas),
            encode_uint(self.gas),
            self._to_rlp(),
            encode_uint(self.value),
            self.data,
            self._access_list_rlp(),
        ]


Transaction: TypeAlias = LegacyTransaction | AccessListTransaction | DynamicFeeTransaction
"""A signed transaction of any supported type."""


def sign_transaction(
    tx: Transaction, private_key: ec.EllipticCurvePrivateKey, chain_id: int
) -> Transaction:
    """
    Sign `tx` for `chain_id` using the London rules.

    Legacy transactions get an EIP-155 signature. Typed transactions must
    already carry `chain_id`.

    Raises:
        ValueError: If a typed transaction carries a different chain id.
    """
    match tx:
        case LegacyTransaction():
            return tx.sign(private_key, chain_id)
        case AccessListTransaction() | DynamicFeeTransaction():
            if tx.chain_id != chain_id:
                raise ValueError(f"Transaction chain id {tx.chain_id} does not match {chain_id}")
            return tx.sign(private_key)  # type: ignore[return-value]
        case _:
            assert_never(tx)
