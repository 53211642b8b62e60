"""
Streaming client for a transaction-relay service.

Submits signed Ethereum transactions over persistent gRPC streams and
delivers relay-pushed events (new transactions, execution payloads, beacon
blocks) into caller-owned feeds.
"""

from .client import Client, ClientConfig, Feed, SequenceResult, TransactionResult
from .errors import (
    CallError,
    ConnectError,
    DecodeError,
    EncodeError,
    FeedClosedError,
    FiberError,
    InvalidSignatureError,
    NotConnectedError,
    ReceiveError,
    SendError,
    StreamEndedError,
    StreamOpenError,
    SubscriptionError,
    UnsupportedTransactionTypeError,
)

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "Feed",
    "SequenceResult",
    "TransactionResult",
    # Errors
    "CallError",
    "ConnectError",
    "DecodeError",
    "EncodeError",
    "FeedClosedError",
    "FiberError",
    "InvalidSignatureError",
    "NotConnectedError",
    "ReceiveError",
    "SendError",
    "StreamEndedError",
    "StreamOpenError",
    "SubscriptionError",
    "UnsupportedTransactionTypeError",
]
