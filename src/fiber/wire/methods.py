"""
RPC method paths of the relay API and the stream classes that use them.

Each transaction class owns one persistent bidirectional stream. Each
subscription kind is a server-streaming call. Backrun is a unary call.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

SERVICE: Final = "api.API"
"""Fully qualified gRPC service name."""

BACKRUN: Final = f"/{SERVICE}/Backrun"
"""Unary backrun submission."""


class TransactionClass(str, Enum):
    """Transaction classes, each bound to its own persistent stream."""

    SINGLE = "transaction"
    RAW = "raw_transaction"
    SEQUENCE = "transaction_sequence"
    RAW_SEQUENCE = "raw_transaction_sequence"

    @property
    def method(self) -> str:
        """gRPC method path of the class's bidirectional stream."""
        return _STREAM_METHODS[self]


class SubscriptionKind(str, Enum):
    """Server-streaming subscription kinds."""

    NEW_TRANSACTIONS = "new_transactions"
    EXECUTION_PAYLOAD_HEADERS = "execution_payload_headers"
    EXECUTION_PAYLOADS = "execution_payloads"
    BEACON_BLOCKS = "beacon_blocks"

    @property
    def method(self) -> str:
        """gRPC method path of the subscription."""
        return _SUBSCRIPTION_METHODS[self]


_STREAM_METHODS: Final = {
    TransactionClass.SINGLE: f"/{SERVICE}/SendTransactionStream",
    TransactionClass.RAW: f"/{SERVICE}/SendRawTransactionStream",
    TransactionClass.SEQUENCE: f"/{SERVICE}/SendTransactionSequenceStream",
    TransactionClass.RAW_SEQUENCE: f"/{SERVICE}/SendRawTransactionSequenceStream",
}

_SUBSCRIPTION_METHODS: Final = {
    SubscriptionKind.NEW_TRANSACTIONS: f"/{SERVICE}/SubscribeNewTxs",
    SubscriptionKind.EXECUTION_PAYLOAD_HEADERS: f"/{SERVICE}/SubscribeExecutionHeaders",
    SubscriptionKind.EXECUTION_PAYLOADS: f"/{SERVICE}/SubscribeExecutionPayloads",
    SubscriptionKind.BEACON_BLOCKS: f"/{SERVICE}/SubscribeBeaconBlocks",
}
