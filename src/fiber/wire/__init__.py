"""
Relay wire protocol.

Message shapes (RLP lists, see `message`) and RPC method paths (see `methods`).
"""

from .message import (
    BackrunMsg,
    RawTransactionMsg,
    RawTransactionSequenceMsg,
    SubscribeRequest,
    TransactionResponse,
    TransactionSequenceMsg,
    TransactionSequenceResponse,
    TxFilter,
    WireBeaconBlock,
    WireDecodingError,
    WireExecutionPayload,
    WireExecutionPayloadHeader,
    WireMessage,
    WireTransaction,
)
from .methods import BACKRUN, SERVICE, SubscriptionKind, TransactionClass

__all__ = [
    # Base
    "WireDecodingError",
    "WireMessage",
    # Requests
    "BackrunMsg",
    "RawTransactionMsg",
    "RawTransactionSequenceMsg",
    "SubscribeRequest",
    "TransactionSequenceMsg",
    "TxFilter",
    # Responses
    "TransactionResponse",
    "TransactionSequenceResponse",
    # Feed payloads
    "WireBeaconBlock",
    "WireExecutionPayload",
    "WireExecutionPayloadHeader",
    "WireTransaction",
    # Methods
    "BACKRUN",
    "SERVICE",
    "SubscriptionKind",
    "TransactionClass",
]
