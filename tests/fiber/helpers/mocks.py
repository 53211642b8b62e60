"""
Fakes of the grpc.aio channel and call objects.

The fakes move raw bytes exactly as a channel without serializers does, so
every message passes through the real wire codec on both sides.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import grpc

from fiber.crypto import keccak256
from fiber.wire import (
    RawTransactionMsg,
    RawTransactionSequenceMsg,
    TransactionClass,
    TransactionResponse,
    TransactionSequenceMsg,
    TransactionSequenceResponse,
    WireMessage,
    WireTransaction,
)

Responder = Callable[[bytes], list[bytes]]
"""Maps one written request to the raw responses it produces."""


def rpc_error(
    code: grpc.StatusCode = grpc.StatusCode.UNAVAILABLE, details: str = "connection reset"
) -> grpc.aio.AioRpcError:
    """An RPC error as raised by grpc.aio calls."""
    return grpc.aio.AioRpcError(code, grpc.aio.Metadata(), grpc.aio.Metadata(), details=details)


class _Cancelled:
    """Marker queued by `cancel` so a pending `read` fails like grpc.aio does."""


class FakeCall:
    """
    Scripted gRPC call usable as a bidirectional or server-streaming call.

    Responses are queued with `push` or produced by `responder` for every
    write. Reads block until something is queued.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder
        self.written: list[bytes] = []
        self.done_writing_called = False
        self.cancelled = False
        self.fail_on_connect: BaseException | None = None
        self.fail_on_write: BaseException | None = None
        self.fail_on_done_writing: BaseException | None = None
        self.write_gate: asyncio.Event | None = None
        """When set, writes wait for the event before completing."""
        self._inbox: asyncio.Queue[object] = asyncio.Queue()

    def push(self, item: bytes | WireMessage | BaseException | object) -> None:
        """Queue a raw response, a message, an exception, or `grpc.aio.EOF`."""
        if isinstance(item, WireMessage):
            item = item.encode_bytes()
        self._inbox.put_nowait(item)

    def finish(self) -> None:
        """End the stream from the server side."""
        self.push(grpc.aio.EOF)

    async def wait_for_connection(self) -> None:
        if self.fail_on_connect is not None:
            raise self.fail_on_connect

    async def write(self, request: bytes) -> None:
        if self.cancelled:
            raise asyncio.InvalidStateError("RPC already finished")
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.fail_on_write is not None:
            raise self.fail_on_write
        self.written.append(request)
        if self.responder is not None:
            for response in self.responder(request):
                self.push(response)

    async def read(self) -> object:
        item = await self._inbox.get()
        if isinstance(item, _Cancelled):
            raise asyncio.CancelledError()
        if isinstance(item, BaseException):
            raise item
        return item

    async def done_writing(self) -> None:
        self.done_writing_called = True
        if self.fail_on_done_writing is not None:
            raise self.fail_on_done_writing

    def cancel(self) -> bool:
        if self.cancelled:
            return False
        self.cancelled = True
        self._inbox.put_nowait(_Cancelled())
        return True


@dataclass
class FakeChannel:
    """Fake grpc.aio channel recording every call it creates."""

    responders: dict[str, Responder] = field(default_factory=dict)
    """Responder per bidirectional method path."""

    stream_calls: dict[str, FakeCall] = field(default_factory=dict)
    """Bidirectional calls created, by method path."""

    subscription_calls: dict[str, FakeCall] = field(default_factory=dict)
    """Server-streaming calls, by method path; pre-register to script them."""

    subscription_requests: dict[str, bytes] = field(default_factory=dict)
    """Raw request sent with each server-streaming call."""

    unary_requests: list[tuple[str, bytes]] = field(default_factory=list)
    """Raw requests of unary calls."""

    unary_responder: Callable[[bytes], bytes] | None = None

    unary_error: BaseException | None = None

    metadata: list[tuple[str, object]] = field(default_factory=list)
    """(method, metadata) of every call, in creation order."""

    open_failures: dict[str, BaseException] = field(default_factory=dict)
    """Error raised by `wait_for_connection` per method path."""

    ready: bool = True
    """When False, `channel_ready` never completes."""

    closed: bool = False

    async def channel_ready(self) -> None:
        if not self.ready:
            await asyncio.Event().wait()

    def stream_stream(self, method: str, *args: object, **kwargs: object) -> Callable[..., FakeCall]:
        def start(metadata: object = None, **_: object) -> FakeCall:
            call = FakeCall(self.responders.get(method))
            call.fail_on_connect = self.open_failures.get(method)
            self.stream_calls[method] = call
            self.metadata.append((method, metadata))
            return call

        return start

    def unary_stream(self, method: str, *args: object, **kwargs: object) -> Callable[..., FakeCall]:
        def start(request: bytes, metadata: object = None, **_: object) -> FakeCall:
            call = self.subscription_calls.setdefault(method, FakeCall())
            call.fail_on_connect = call.fail_on_connect or self.open_failures.get(method)
            self.subscription_requests[method] = request
            self.metadata.append((method, metadata))
            return call

        return start

    def unary_unary(self, method: str, *args: object, **kwargs: object) -> Callable[..., object]:
        async def invoke(request: bytes, metadata: object = None, **_: object) -> bytes:
            self.metadata.append((method, metadata))
            self.unary_requests.append((method, request))
            if self.unary_error is not None:
                raise self.unary_error
            assert self.unary_responder is not None
            return self.unary_responder(request)

        return invoke

    async def close(self) -> None:
        self.closed = True


def _hash_of_raw(raw: bytes) -> str:
    return keccak256(raw).to_hex()


def relay_responder(tx_class: TransactionClass, clock: Iterator[int] | None = None) -> Responder:
    """
    Responder acknowledging every request like the relay does.

    Hashes are taken from the request; timestamps come from `clock`
    (one per acknowledged item).
    """
    ticks = clock if clock is not None else itertools.count(1_000)

    def respond(request: bytes) -> list[bytes]:
        match tx_class:
            case TransactionClass.SINGLE:
                tx = WireTransaction.decode_bytes(request)
                response: WireMessage = TransactionResponse(hash="0x" + tx.hash.hex(), timestamp=next(ticks))
            case TransactionClass.RAW:
                raw = RawTransactionMsg.decode_bytes(request).raw_tx
                response = TransactionResponse(hash=_hash_of_raw(raw), timestamp=next(ticks))
            case TransactionClass.SEQUENCE:
                seq = TransactionSequenceMsg.decode_bytes(request).sequence
                response = TransactionSequenceResponse(
                    responses=tuple(
                        TransactionResponse(hash="0x" + tx.hash.hex(), timestamp=next(ticks)) for tx in seq
                    )
                )
            case TransactionClass.RAW_SEQUENCE:
                raws = RawTransactionSequenceMsg.decode_bytes(request).raw_txs
                response = TransactionSequenceResponse(
                    responses=tuple(
                        TransactionResponse(hash=_hash_of_raw(raw), timestamp=next(ticks)) for raw in raws
                    )
                )
        return [response.encode_bytes()]

    return respond


def relay_channel(clock: Iterator[int] | None = None) -> FakeChannel:
    """Channel whose four transaction streams acknowledge every request."""
    ticks = clock if clock is not None else itertools.count(1_000)
    return FakeChannel(
        responders={tx_class.method: relay_responder(tx_class, ticks) for tx_class in TransactionClass}
    )
