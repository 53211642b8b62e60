"""Tests for stream sessions."""

from __future__ import annotations

import logging

import grpc
import pytest

from fiber.client import ServerStreamSession, SessionState, StreamSession
from fiber.errors import ReceiveError, SendError, StreamEndedError
from fiber.types import Uint64
from fiber.wire import RawTransactionMsg, SubscribeRequest, TransactionResponse
from tests.fiber.helpers import FakeCall, FakeChannel, rpc_error

METHOD = "/api.API/SendRawTransactionStream"


def make_session(call: FakeCall | None = None) -> tuple[StreamSession[TransactionResponse], FakeCall]:
    """Session named 'raw' over a fake call."""
    call = call or FakeCall()
    return StreamSession("raw", call, TransactionResponse), call


class TestSend:
    """Outgoing messages."""

    @pytest.mark.anyio
    async def test_writes_framed_message(self) -> None:
        """The call receives the message's wire bytes."""
        session, call = make_session()
        message = RawTransactionMsg(raw_tx=b"\x02\xc0")
        await session.send(message)
        assert call.written == [message.encode_bytes()]

    @pytest.mark.anyio
    async def test_transport_failure(self) -> None:
        """Write errors become SendError and close the session."""
        session, call = make_session()
        call.fail_on_write = rpc_error()
        with pytest.raises(SendError) as exc_info:
            await session.send(RawTransactionMsg(raw_tx=b"\x01"))
        assert exc_info.value.stream == "raw"
        assert isinstance(exc_info.value.__cause__, grpc.RpcError)
        assert session.state is SessionState.CLOSED
        assert call.cancelled

    @pytest.mark.anyio
    async def test_closed_session_fails_fast(self) -> None:
        """Nothing is written once the session is closed."""
        session, call = make_session()
        await session.close()
        with pytest.raises(SendError, match="closed"):
            await session.send(RawTransactionMsg(raw_tx=b"\x01"))
        assert call.written == []


class TestReceive:
    """Incoming messages."""

    @pytest.mark.anyio
    async def test_decodes_response(self) -> None:
        """Raw bytes are parsed into the session's response type."""
        session, call = make_session()
        call.push(TransactionResponse(hash="0x01", timestamp=Uint64(5)))
        response = await session.receive()
        assert response == TransactionResponse(hash="0x01", timestamp=Uint64(5))

    @pytest.mark.anyio
    async def test_end_of_stream(self) -> None:
        """EOF raises StreamEndedError, a ReceiveError."""
        session, call = make_session()
        call.finish()
        with pytest.raises(StreamEndedError):
            await session.receive()
        assert session.closed

    @pytest.mark.anyio
    async def test_transport_failure(self) -> None:
        """Read errors become ReceiveError; later reads fail fast."""
        session, call = make_session()
        call.push(rpc_error(grpc.StatusCode.INTERNAL, "boom"))
        with pytest.raises(ReceiveError, match="boom"):
            await session.receive()
        with pytest.raises(ReceiveError, match="closed"):
            await session.receive()

    @pytest.mark.anyio
    async def test_undecodable_response(self) -> None:
        """Garbage from the peer is a ReceiveError, not a crash."""
        session, call = make_session()
        call.push(b"\xc1\xc0\x00")
        with pytest.raises(ReceiveError):
            await session.receive()
        assert session.closed

    @pytest.mark.anyio
    async def test_cancelled_call(self) -> None:
        """A call cancelled underneath a read surfaces as ReceiveError."""
        session, call = make_session()
        call.cancel()
        with pytest.raises(ReceiveError, match="cancelled"):
            await session.receive()


class TestClose:
    """Teardown."""

    @pytest.mark.anyio
    async def test_half_closes_then_cancels(self) -> None:
        """close() ends the send side and cancels the call."""
        session, call = make_session()
        await session.close()
        assert call.done_writing_called
        assert call.cancelled
        assert session.closed

    @pytest.mark.anyio
    async def test_idempotent(self) -> None:
        """A second close does nothing."""
        session, call = make_session()
        await session.close()
        call.done_writing_called = False
        await session.close()
        assert not call.done_writing_called

    @pytest.mark.anyio
    async def test_errors_are_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        """Best-effort close never raises."""
        session, call = make_session()
        call.fail_on_done_writing = rpc_error()
        with caplog.at_level(logging.WARNING, logger="fiber.client.session"):
            await session.close()
        assert call.cancelled
        assert "half-closing raw stream" in caplog.text


class TestOpen:
    """Session construction from a channel."""

    @pytest.mark.anyio
    async def test_stream_open_passes_metadata(self) -> None:
        """The call is created on the method with the given metadata."""
        channel = FakeChannel()
        metadata = (("x-api-key", "secret"),)
        session = await StreamSession.open(channel, "raw", METHOD, metadata, TransactionResponse)
        assert session.state is SessionState.OPEN
        assert channel.metadata == [(METHOD, metadata)]

    @pytest.mark.anyio
    async def test_stream_open_failure_cancels_call(self) -> None:
        """A call that never connects is cancelled and the error propagates."""
        channel = FakeChannel(open_failures={METHOD: rpc_error()})
        with pytest.raises(grpc.RpcError):
            await StreamSession.open(channel, "raw", METHOD, (), TransactionResponse)
        assert channel.stream_calls[METHOD].cancelled

    @pytest.mark.anyio
    async def test_server_stream_sends_request(self) -> None:
        """The subscription request is sent with the call."""
        channel = FakeChannel()
        method = "/api.API/SubscribeBeaconBlocks"
        session = await ServerStreamSession.open(
            channel, "beacon_blocks", method, SubscribeRequest(), (), TransactionResponse
        )
        assert channel.subscription_requests[method] == SubscribeRequest().encode_bytes()
        await session.close()
        assert channel.subscription_calls[method].cancelled
