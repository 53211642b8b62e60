"""
Subscriptions: server streams pumped into caller-owned feeds.

The caller creates a `Feed`, hands it to a subscribe call, and consumes it
from another task. The subscribe call blocks while events flow and returns
when the relay ends the stream, or raises `SubscriptionError` when it fails.

Router State Machine
--------------------
::

    OPENING ──(call accepted)──> STREAMING ──(end / error / cancel)──> CLOSED
       │
       └──(open fails)──> raise SubscriptionError, feed untouched

Leaving STREAMING closes the feed exactly once, whatever the reason. The
terminating error is raised from the subscribe call, never put on the feed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum, auto
from typing import Any, Generic, TypeVar

import grpc
from typing_extensions import assert_never

from fiber.codec import (
    decode_beacon_block,
    decode_execution_payload,
    decode_execution_payload_header,
    decode_transaction,
)
from fiber.errors import DecodeError, FeedClosedError, ReceiveError, StreamEndedError, SubscriptionError
from fiber.metrics import active_subscriptions, subscription_events
from fiber.wire import (
    SubscriptionKind,
    WireBeaconBlock,
    WireExecutionPayload,
    WireExecutionPayloadHeader,
    WireMessage,
    WireTransaction,
)

from .session import TRANSPORT_ERRORS, Metadata, ServerStreamSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _EndOfFeed:
    """Marker queued by `Feed.close`."""


_END = _EndOfFeed()


class Feed(Generic[T]):
    """
    Caller-owned channel of decoded events.

    Unbounded unless `maxsize` is positive, in which case `put` waits while
    `maxsize` events are buffered. After `close`, buffered events can still be
    drained; then `get` raises `FeedClosedError` and `async for` stops.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.maxsize = maxsize
        self._queue: asyncio.Queue[T | _EndOfFeed] = asyncio.Queue()
        self._slots = asyncio.Semaphore(maxsize) if maxsize > 0 else None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of buffered events."""
        return self._queue.qsize() - (1 if self._closed else 0)

    async def put(self, item: T) -> None:
        """
        Append an event, waiting for space on a bounded feed.

        Raises:
            FeedClosedError: If the feed is closed.
        """
        if self._closed:
            raise FeedClosedError("put on a closed feed")
        if self._slots is not None:
            await self._slots.acquire()
            if self._closed:
                # Pass the wake-up from `close` on to the next blocked putter.
                self._slots.release()
                raise FeedClosedError("feed closed while waiting for space")
        self._queue.put_nowait(item)

    def close(self) -> None:
        """
        Mark the end of the feed.

        Writers blocked on a full feed are woken and fail with
        `FeedClosedError`.

        Raises:
            FeedClosedError: If the feed is already closed.
        """
        if self._closed:
            raise FeedClosedError("feed already closed")
        self._closed = True
        self._queue.put_nowait(_END)
        if self._slots is not None:
            self._slots.release()

    async def get(self) -> T:
        """
        Next event in order.

        Raises:
            FeedClosedError: Once the feed is closed and drained.
        """
        item = await self._queue.get()
        if isinstance(item, _EndOfFeed):
            # Leave the marker for any other consumer.
            self._queue.put_nowait(item)
            raise FeedClosedError("feed is closed")
        if self._slots is not None:
            self._slots.release()
        return item

    def __aiter__(self) -> Feed[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except FeedClosedError:
            raise StopAsyncIteration from None


class RouterState(Enum):
    """Lifecycle of one subscription."""

    OPENING = auto()
    STREAMING = auto()
    CLOSED = auto()


class SubscriptionRouter(Generic[T]):
    """
    Pumps one server stream into a feed.

    The four subscription kinds differ only in method path, response type,
    and decode function. `for_kind` builds the matching router.
    """

    def __init__(
        self,
        kind: SubscriptionKind,
        response_type: type[WireMessage],
        decode: Callable[[Any], T],
    ) -> None:
        self.kind = kind
        self.response_type = response_type
        self.decode = decode
        self.state = RouterState.OPENING

    @classmethod
    def for_kind(cls, kind: SubscriptionKind) -> SubscriptionRouter[Any]:
        """Router for `kind` with its response type and decoder."""
        match kind:
            case SubscriptionKind.NEW_TRANSACTIONS:
                return cls(kind, WireTransaction, decode_transaction)
            case SubscriptionKind.EXECUTION_PAYLOAD_HEADERS:
                return cls(kind, WireExecutionPayloadHeader, decode_execution_payload_header)
            case SubscriptionKind.EXECUTION_PAYLOADS:
                return cls(kind, WireExecutionPayload, decode_execution_payload)
            case SubscriptionKind.BEACON_BLOCKS:
                return cls(kind, WireBeaconBlock, decode_beacon_block)
            case _:
                assert_never(kind)

    async def run(
        self,
        channel: grpc.aio.Channel,
        metadata: Metadata,
        request: WireMessage,
        feed: Feed[T],
    ) -> None:
        """
        Open the subscription and pump events until it terminates.

        Returns when the relay ends the stream. The feed is closed on every
        exit after a successful open, including cancellation.

        Raises:
            SubscriptionError: If opening fails, or the stream or decoding
                fails while streaming.
        """
        name = self.kind.value
        try:
            session = await ServerStreamSession.open(
                channel, name, self.kind.method, request, metadata, self.response_type
            )
        except TRANSPORT_ERRORS as e:
            self.state = RouterState.CLOSED
            raise SubscriptionError(name, f"failed to open: {e}") from e

        self.state = RouterState.STREAMING
        gauge = active_subscriptions.labels(name)
        gauge.inc()
        try:
            while True:
                event = self.decode(await session.receive())
                await feed.put(event)
                subscription_events.labels(name).inc()
        except StreamEndedError:
            logger.info("%s subscription ended by relay", name)
        except (ReceiveError, DecodeError, FeedClosedError) as e:
            logger.warning("%s subscription failed: %s", name, e)
            raise SubscriptionError(name, str(e)) from e
        finally:
            self.state = RouterState.CLOSED
            gauge.dec()
            await session.close()
            if not feed.closed:
                feed.close()
