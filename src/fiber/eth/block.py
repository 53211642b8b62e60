"""Execution and consensus layer block objects delivered by the relay feeds."""

from __future__ import annotations

from pydantic import Field

from fiber.types import Address, Bloom, Bytes32, Bytes96, StrictBaseModel, Uint64, Uint256

from .transaction import Transaction


class ExecutionPayloadHeader(StrictBaseModel):
    """
    Header of an execution payload as seen by the consensus layer.

    Pushed as soon as the relay observes a new payload, ahead of the full body.
    """

    parent_hash: Bytes32
    fee_recipient: Address
    state_root: Bytes32
    receipts_root: Bytes32
    logs_bloom: Bloom
    prev_randao: Bytes32
    block_number: Uint64
    gas_limit: Uint64
    gas_used: Uint64
    timestamp: Uint64
    extra_data: bytes = Field(default=b"", max_length=32)
    base_fee_per_gas: Uint256
    block_hash: Bytes32


class ExecutionPayload(StrictBaseModel):
    """A full execution payload: header plus its decoded transactions."""

    header: ExecutionPayloadHeader
    """Payload header."""

    transactions: tuple[Transaction, ...] = ()
    """Transactions in block order."""

    @property
    def block_number(self) -> int:
        """Shortcut for `header.block_number`."""
        return int(self.header.block_number)

    @property
    def block_hash(self) -> Bytes32:
        """Shortcut for `header.block_hash`."""
        return self.header.block_hash


class BeaconBlock(StrictBaseModel):
    """Compact beacon block: the header fields plus what searchers need from the body."""

    slot: Uint64
    """Slot the block was proposed in."""

    proposer_index: Uint64
    """Validator index of the proposer."""

    parent_root: Bytes32
    """Root of the parent beacon block."""

    state_root: Bytes32
    """Post-state root."""

    body_root: Bytes32
    """Hash tree root of the block body."""

    randao_reveal: Bytes96
    """Proposer's RANDAO reveal."""

    graffiti: Bytes32
    """Proposer-chosen graffiti."""

    execution_block_hash: Bytes32
    """Hash of the execution payload carried in the body."""
