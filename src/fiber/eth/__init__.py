"""
Ethereum domain objects.

Signed transactions (legacy, access-list, dynamic-fee), their EIP-2718
envelopes, and the block objects delivered by the subscription feeds.
"""

from .block import BeaconBlock, ExecutionPayload, ExecutionPayloadHeader
from .envelope import (
    EnvelopeDecodingError,
    decode_transaction_envelope,
    encode_transaction_envelope,
)
from .transaction import (
    AccessListTransaction,
    AccessTuple,
    DynamicFeeTransaction,
    LegacyTransaction,
    Transaction,
    TransactionType,
    sign_transaction,
)

__all__ = [
    # Transactions
    "AccessListTransaction",
    "AccessTuple",
    "DynamicFeeTransaction",
    "LegacyTransaction",
    "Transaction",
    "TransactionType",
    "sign_transaction",
    # Envelopes
    "EnvelopeDecodingError",
    "decode_transaction_envelope",
    "encode_transaction_envelope",
    # Blocks
    "BeaconBlock",
    "ExecutionPayload",
    "ExecutionPayloadHeader",
]
