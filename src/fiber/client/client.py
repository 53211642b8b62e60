"""
Relay client.

Holds one gRPC channel and four persistent transaction streams, one per
transaction class. The streams are opened together by `connect` and closed
together by `close`.

Usage::

    async with Client("relay.example:8080", api_key) as client:
        result = await client.send_transaction(signed_tx)

`close` must run once at shutdown. The relay accounts usage per open stream,
so leaked streams are billed.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Final

import grpc
from typing_extensions import Self

from fiber.codec import encode_transaction
from fiber.errors import (
    ConnectError,
    EncodeError,
    NotConnectedError,
    ReceiveError,
    SendError,
    StreamOpenError,
)
from fiber.eth import Transaction
from fiber.metrics import call_failures, call_latency, connected_clients, transactions_sent
from fiber.types import BaseBytes
from fiber.wire import (
    BACKRUN,
    BackrunMsg,
    RawTransactionMsg,
    RawTransactionSequenceMsg,
    SubscribeRequest,
    SubscriptionKind,
    TransactionClass,
    TransactionResponse,
    TransactionSequenceMsg,
    TransactionSequenceResponse,
    TxFilter,
    WireDecodingError,
    WireMessage,
)

from .config import ClientConfig
from .correlator import (
    SequenceResult,
    TransactionResult,
    exchange,
    sequence_result,
    transaction_result,
)
from .session import TRANSPORT_ERRORS, ResponseT, StreamSession
from .subscription import Feed, SubscriptionRouter

logger = logging.getLogger(__name__)

_RESPONSE_TYPES: Final[dict[TransactionClass, type[WireMessage]]] = {
    TransactionClass.SINGLE: TransactionResponse,
    TransactionClass.RAW: TransactionResponse,
    TransactionClass.SEQUENCE: TransactionSequenceResponse,
    TransactionClass.RAW_SEQUENCE: TransactionSequenceResponse,
}

_BACKRUN_STREAM: Final = "backrun"


class Client:
    """
    Client of the transaction relay.

    A pre-built `channel` may be injected (e.g. with custom credentials or
    interceptors). The client takes ownership of it and closes it in `close`.
    """

    def __init__(
        self,
        target: str,
        api_key: str,
        config: ClientConfig | None = None,
        *,
        channel: grpc.aio.Channel | None = None,
    ) -> None:
        self.target = target
        self.config = config or ClientConfig()
        self._api_key = api_key
        self._channel = channel
        self._sessions: dict[TransactionClass, StreamSession[Any]] = {}
        self._closed = False

    @property
    def connected(self) -> bool:
        """Whether every transaction stream is open."""
        return bool(self._sessions) and not any(session.closed for session in self._sessions.values())

    @property
    def metadata(self) -> tuple[tuple[str, str], ...]:
        """Call metadata attached to every stream and call."""
        return ((self.config.api_key_header, self._api_key),)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _dial(self) -> grpc.aio.Channel:
        options = self.config.channel_options()
        compression = grpc.Compression.Gzip if self.config.enable_compression else None
        if self.config.use_tls:
            return grpc.aio.secure_channel(
                self.target,
                grpc.ssl_channel_credentials(),
                options=options,
                compression=compression,
            )
        return grpc.aio.insecure_channel(self.target, options=options, compression=compression)

    async def connect(self, timeout: float | None = None) -> None:
        """
        Wait for the channel and open all four transaction streams.

        Either every stream opens or none stays open: on any failure the
        opened streams and the channel are closed and the client stays
        unconnected. Calling `connect` on a connected client does nothing.

        Args:
            timeout: Bound on the whole sequence; defaults to
                `config.connect_timeout`.

        Raises:
            ConnectError: If the channel does not become ready in time, or
                the client was closed.
            StreamOpenError: If a transaction stream fails to open.
        """
        if self._closed:
            raise ConnectError("Client has been closed")
        if self._sessions:
            return

        if self._channel is None:
            self._channel = self._dial()
        channel = self._channel
        timeout = self.config.connect_timeout if timeout is None else timeout

        logger.info("Connecting to %s", self.target)
        opened: dict[TransactionClass, StreamSession] = {}
        pending: TransactionClass | None = None
        try:
            async with asyncio.timeout(timeout):
                await channel.channel_ready()
                for tx_class in TransactionClass:
                    pending = tx_class
                    opened[tx_class] = await StreamSession.open(
                        channel,
                        tx_class.value,
                        tx_class.method,
                        self.metadata,
                        _RESPONSE_TYPES[tx_class],
                    )
        except (TimeoutError, *TRANSPORT_ERRORS) as e:
            await self._abort_connect(opened)
            detail = str(e) or f"timed out after {timeout}s"
            if pending is None:
                raise ConnectError(f"Channel to {self.target} not ready: {detail}") from e
            raise StreamOpenError(pending.value, detail) from e
        except asyncio.CancelledError:
            await self._abort_connect(opened)
            raise

        self._sessions = opened
        connected_clients.inc()
        logger.info("Connected to %s", self.target)

    async def _abort_connect(self, opened: dict[TransactionClass, StreamSession]) -> None:
        for session in opened.values():
            await session.close()
        await self._close_channel()

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await channel.close()
        except Exception as e:
            logger.warning("Error closing channel to %s: %s", self.target, e)

    async def close(self) -> None:
        """
        Close every stream, then the channel.

        In-flight calls get up to `config.close_timeout` to finish. Errors
        while closing individual streams are logged and do not stop the
        sequence. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        sessions, self._sessions = self._sessions, {}
        logger.info("Closing connection to %s", self.target)

        try:
            await asyncio.wait_for(self._drain(sessions), self.config.close_timeout)
        except TimeoutError:
            logger.warning(
                "In-flight calls still running after %.1fs; closing anyway",
                self.config.close_timeout,
            )

        for session in sessions.values():
            await session.close()
        await self._close_channel()
        if sessions:
            connected_clients.dec()

    @staticmethod
    async def _drain(sessions: dict[TransactionClass, StreamSession]) -> None:
        """Wait until no exchange holds a session lock."""
        for session in sessions.values():
            async with session.lock:
                pass

    def _session(self, tx_class: TransactionClass) -> StreamSession[Any]:
        try:
            return self._sessions[tx_class]
        except KeyError:
            raise NotConnectedError("Client is not connected") from None

    def _require_channel(self) -> grpc.aio.Channel:
        if not self._sessions or self._channel is None:
            raise NotConnectedError("Client is not connected")
        return self._channel

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def _exchange(self, session: StreamSession[ResponseT], request: WireMessage) -> ResponseT:
        label = session.name
        try:
            with call_latency.labels(label).time():
                response = await exchange(session, request)
        except SendError:
            call_failures.labels(label, "send").inc()
            raise
        except ReceiveError:
            call_failures.labels(label, "receive").inc()
            raise
        transactions_sent.labels(label).inc()
        return response

    async def send_transaction(self, tx: Transaction) -> TransactionResult:
        """
        Submit one signed transaction.

        Raises:
            EncodeError: If the transaction cannot be encoded (nothing is sent).
            SendError: If writing to the stream failed.
            ReceiveError: If reading the acknowledgement failed.
        """
        session = self._session(TransactionClass.SINGLE)
        request = encode_transaction(tx, self.config.chain_id)
        response: TransactionResponse = await self._exchange(session, request)
        return transaction_result(response)

    async def send_raw_transaction(self, raw: bytes) -> TransactionResult:
        """Submit one EIP-2718 encoded transaction."""
        session = self._session(TransactionClass.RAW)
        response: TransactionResponse = await self._exchange(session, RawTransactionMsg(raw_tx=raw))
        return transaction_result(response)

    async def send_transaction_sequence(self, *txs: Transaction) -> SequenceResult:
        """
        Submit an ordered bundle of signed transactions.

        The result carries one hash per transaction in input order and the
        timestamp of the first.

        Raises:
            EncodeError: If the bundle is empty or a transaction cannot be encoded.
        """
        session = self._session(TransactionClass.SEQUENCE)
        if not txs:
            raise EncodeError("Transaction sequence is empty")
        chain_id = self.config.chain_id
        request = TransactionSequenceMsg(sequence=tuple(encode_transaction(tx, chain_id) for tx in txs))
        response: TransactionSequenceResponse = await self._exchange(session, request)
        return sequence_result(session.name, response)

    async def send_raw_transaction_sequence(self, *raws: bytes) -> SequenceResult:
        """Submit an ordered bundle of EIP-2718 encoded transactions."""
        session = self._session(TransactionClass.RAW_SEQUENCE)
        if not raws:
            raise EncodeError("Raw transaction sequence is empty")
        request = RawTransactionSequenceMsg(raw_txs=tuple(raws))
        response: TransactionSequenceResponse = await self._exchange(session, request)
        return sequence_result(session.name, response)

    async def backrun_transaction(self, target_hash: BaseBytes | str, tx: Transaction) -> TransactionResult:
        """
        Submit `tx` to be placed directly behind the transaction `target_hash`.

        Uses a unary call rather than a persistent stream.

        Raises:
            EncodeError: If `tx` cannot be encoded.
            SendError: If the call failed.
            ReceiveError: If the acknowledgement could not be parsed.
        """
        channel = self._require_channel()
        hash_hex = target_hash.to_hex() if isinstance(target_hash, BaseBytes) else target_hash
        request = BackrunMsg(hash=hash_hex, tx=encode_transaction(tx, self.config.chain_id))

        try:
            with call_latency.labels(_BACKRUN_STREAM).time():
                raw = await channel.unary_unary(BACKRUN)(request.encode_bytes(), metadata=self.metadata)
        except TRANSPORT_ERRORS as e:
            call_failures.labels(_BACKRUN_STREAM, "send").inc()
            raise SendError(_BACKRUN_STREAM, str(e)) from e

        try:
            response = TransactionResponse.decode_bytes(raw)
        except WireDecodingError as e:
            call_failures.labels(_BACKRUN_STREAM, "receive").inc()
            raise ReceiveError(_BACKRUN_STREAM, str(e)) from e

        transactions_sent.labels(_BACKRUN_STREAM).inc()
        return transaction_result(response)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def _subscribe(self, kind: SubscriptionKind, request: WireMessage, feed: Feed) -> None:
        channel = self._require_channel()
        router = SubscriptionRouter.for_kind(kind)
        await router.run(channel, self.metadata, request, feed)

    async def subscribe_new_transactions(self, feed: Feed, tx_filter: bytes | None = None) -> None:
        """
        Stream new transactions seen by the relay into `feed`.

        Blocks until the relay ends the stream. Run it in its own task and
        cancel that task to unsubscribe.

        Args:
            feed: Destination of decoded `Transaction` objects; closed when
                the subscription ends.
            tx_filter: Encoded filter expression; `None` receives everything.

        Raises:
            SubscriptionError: If opening or streaming fails.
        """
        await self._subscribe(SubscriptionKind.NEW_TRANSACTIONS, TxFilter(encoded=tx_filter or b""), feed)

    async def subscribe_execution_payload_headers(self, feed: Feed) -> None:
        """Stream execution payload headers into `feed`. Blocks like `subscribe_new_transactions`."""
        await self._subscribe(SubscriptionKind.EXECUTION_PAYLOAD_HEADERS, SubscribeRequest(), feed)

    async def subscribe_execution_payloads(self, feed: Feed) -> None:
        """Stream full execution payloads into `feed`."""
        await self._subscribe(SubscriptionKind.EXECUTION_PAYLOADS, SubscribeRequest(), feed)

    async def subscribe_beacon_blocks(self, feed: Feed) -> None:
        """Stream compact beacon blocks into `feed`."""
        await self._subscribe(SubscriptionKind.BEACON_BLOCKS, SubscribeRequest(), feed)
