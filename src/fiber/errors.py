"""
Exception hierarchy for the relay client.

::

    FiberError
    ├── ConnectError
    │   └── StreamOpenError
    ├── NotConnectedError
    ├── EncodeError
    │   └── InvalidSignatureError
    ├── DecodeError
    │   ├── UnsupportedTransactionTypeError
    │   └── WireDecodingError (fiber.wire)
    ├── CallError
    │   ├── SendError
    │   └── ReceiveError
    │       └── StreamEndedError
    ├── SubscriptionError
    └── FeedClosedError

Per-call errors (`EncodeError`, `SendError`, `ReceiveError`) are terminal for
that call only and are never retried internally.
"""

from __future__ import annotations


class FiberError(Exception):
    """Base exception for all client errors."""


class ConnectError(FiberError):
    """Dialing the relay or completing the handshake failed."""


class StreamOpenError(ConnectError):
    """
    A persistent transaction stream failed to open during connect.

    Attributes:
        stream: Name of the stream that failed.
    """

    def __init__(self, stream: str, detail: str) -> None:
        self.stream = stream
        super().__init__(f"Failed to open {stream} stream: {detail}")


class NotConnectedError(FiberError):
    """An operation needs a connected client."""


class EncodeError(FiberError):
    """A domain object could not be converted to its wire form."""


class InvalidSignatureError(EncodeError):
    """The sender of a transaction could not be recovered from its signature."""


class DecodeError(FiberError):
    """A wire message could not be converted to its domain form."""


class UnsupportedTransactionTypeError(DecodeError):
    """
    A wire transaction carries a type tag this client does not know.

    Attributes:
        type_tag: The unrecognised tag.
    """

    def __init__(self, type_tag: int) -> None:
        self.type_tag = type_tag
        super().__init__(f"Unsupported transaction type: {type_tag}")


class CallError(FiberError):
    """
    Transport failure during one call on a stream.

    Attributes:
        stream: Name of the stream the call ran on.
    """

    def __init__(self, stream: str, detail: str) -> None:
        self.stream = stream
        self.detail = detail
        super().__init__(f"{stream}: {detail}")


class SendError(CallError):
    """Writing to the stream failed."""


class ReceiveError(CallError):
    """Reading from the stream failed."""


class StreamEndedError(ReceiveError):
    """The peer closed the stream; no more messages will arrive."""


class SubscriptionError(FiberError):
    """
    A subscription failed to open or terminated with an error.

    Attributes:
        kind: Name of the subscription kind.
    """

    def __init__(self, kind: str, detail: str) -> None:
        self.kind = kind
        super().__init__(f"{kind} subscription: {detail}")


class FeedClosedError(FiberError):
    """The feed was used after it had been closed."""
