"""
Stream sessions: one persistent gRPC call each.

A session owns exactly one call for exactly one transaction class or
subscription kind. It frames outgoing messages, parses incoming ones, and
turns transport failures into `SendError` / `ReceiveError`.

Session Lifecycle
-----------------
::

    open() ──> OPEN ──(send/receive failure, close())──> CLOSED

Once CLOSED, every `send` and `receive` fails immediately. The first failure
also cancels the underlying call so a broken stream is never reused.

Calls are created without serializers: gRPC moves raw bytes and the session
runs the wire codec itself, so decode failures surface as `ReceiveError`
instead of being lost inside the transport.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Any, Generic, Protocol, Sequence, TypeVar

import grpc

from fiber.errors import ReceiveError, SendError, StreamEndedError
from fiber.wire import WireDecodingError, WireMessage

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    grpc.RpcError,
    asyncio.InvalidStateError,
    OSError,
)
"""Exceptions a gRPC call raises when the stream breaks."""

Metadata = Sequence[tuple[str, str]]

ResponseT = TypeVar("ResponseT", bound=WireMessage)


class ServerStreamCall(Protocol):
    """Receive side of a gRPC call, as used by sessions."""

    async def read(self) -> Any:
        """Next raw message, or `grpc.aio.EOF` once the server is done."""
        ...

    async def wait_for_connection(self) -> None:
        """Wait until the server has accepted the call."""
        ...

    def cancel(self) -> bool:
        """Cancel the call."""
        ...


class BidiCall(ServerStreamCall, Protocol):
    """Bidirectional gRPC call."""

    async def write(self, request: bytes) -> None:
        """Send one raw message."""
        ...

    async def done_writing(self) -> None:
        """Half-close the send side."""
        ...


class SessionState(Enum):
    """Lifecycle state of a session."""

    OPEN = auto()
    CLOSED = auto()


def _cancelled_from_outside() -> bool:
    """
    Whether a `CancelledError` came from the call rather than our own task.

    grpc.aio raises `CancelledError` from `read`/`write` on a cancelled call.
    That is a stream failure, not a request to stop the current task.
    """
    task = asyncio.current_task()
    return task is not None and task.cancelling() == 0


class _Session(Generic[ResponseT]):
    """Receive-side behaviour shared by both session kinds."""

    def __init__(self, name: str, call: ServerStreamCall, response_type: type[ResponseT]) -> None:
        self.name = name
        self.response_type = response_type
        self._call = call
        self._state = SessionState.OPEN

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def _fail(self) -> None:
        if self._state is SessionState.OPEN:
            logger.debug("Session %s failed; cancelling call", self.name)
        self._state = SessionState.CLOSED
        self._call.cancel()

    async def receive(self) -> ResponseT:
        """
        Read and parse the next message.

        Raises:
            StreamEndedError: If the peer finished the stream.
            ReceiveError: On transport or parse failure, or if already closed.
        """
        if self.closed:
            raise ReceiveError(self.name, "session is closed")

        try:
            raw = await self._call.read()
        except asyncio.CancelledError:
            if not _cancelled_from_outside():
                raise
            self._fail()
            raise ReceiveError(self.name, "call was cancelled") from None
        except TRANSPORT_ERRORS as e:
            self._fail()
            raise ReceiveError(self.name, str(e)) from e

        if raw is grpc.aio.EOF:
            self._fail()
            raise StreamEndedError(self.name, "stream ended by peer")

        try:
            return self.response_type.decode_bytes(raw)
        except WireDecodingError as e:
            self._fail()
            raise ReceiveError(self.name, str(e)) from e


class StreamSession(_Session[ResponseT]):
    """
    Session over a persistent bidirectional stream.

    `lock` admits one request/response exchange at a time. Responses carry
    no request id, so pairing relies on this.
    """

    def __init__(self, name: str, call: BidiCall, response_type: type[ResponseT]) -> None:
        super().__init__(name, call, response_type)
        self._bidi = call
        self.lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        channel: grpc.aio.Channel,
        name: str,
        method: str,
        metadata: Metadata,
        response_type: type[ResponseT],
    ) -> StreamSession[ResponseT]:
        """
        Start the bidirectional call and wait for the server to accept it.

        Raises whatever the transport raises; the caller decides which error
        that is in its context.
        """
        call = channel.stream_stream(method)(metadata=metadata)
        try:
            await call.wait_for_connection()
        except BaseException:
            call.cancel()
            raise
        logger.debug("Opened %s stream (%s)", name, method)
        return cls(name, call, response_type)

    async def send(self, message: WireMessage) -> None:
        """
        Frame and write one message.

        Raises:
            SendError: On transport failure, or if already closed.
        """
        if self.closed:
            raise SendError(self.name, "session is closed")

        try:
            await self._bidi.write(message.encode_bytes())
        except asyncio.CancelledError:
            if not _cancelled_from_outside():
                raise
            self._fail()
            raise SendError(self.name, "call was cancelled") from None
        except TRANSPORT_ERRORS as e:
            self._fail()
            raise SendError(self.name, str(e)) from e

    async def close(self) -> None:
        """
        Half-close the send side, then cancel the call.

        Best effort: failures are logged, never raised. Idempotent.
        """
        if self.closed:
            return
        self._state = SessionState.CLOSED

        try:
            await self._bidi.done_writing()
        except Exception as e:
            logger.warning("Error half-closing %s stream: %s", self.name, e)
        finally:
            self._call.cancel()
        logger.debug("Closed %s stream", self.name)


class ServerStreamSession(_Session[ResponseT]):
    """Receive-only session over a server-streaming call."""

    @classmethod
    async def open(
        cls,
        channel: grpc.aio.Channel,
        name: str,
        method: str,
        request: WireMessage,
        metadata: Metadata,
        response_type: type[ResponseT],
    ) -> ServerStreamSession[ResponseT]:
        """Issue the call with `request` and wait for the server to accept it."""
        call = channel.unary_stream(method)(request.encode_bytes(), metadata=metadata)
        try:
            await call.wait_for_connection()
        except BaseException:
            call.cancel()
            raise
        logger.debug("Opened %s subscription (%s)", name, method)
        return cls(name, call, response_type)

    async def close(self) -> None:
        """Cancel the call. Idempotent."""
        if self.closed:
            return
        self._state = SessionState.CLOSED
        self._call.cancel()
