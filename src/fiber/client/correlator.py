"""
Request/response correlation on a persistent stream.

Responses on a transaction stream carry no request id. The n-th response
answers the n-th request, so a call must own the stream from its write until
its read. Each exchange therefore runs under the session's lock:

1. Acquire the lock.
2. Start the write and the read as sibling tasks.
3. Write fails: cancel the read, raise `SendError`.
4. Read fails: cancel the write, raise `ReceiveError`.
5. Read succeeds: the write has been joined too, so its failure is never lost.
6. Caller cancelled: cancel both tasks and close the session. A half-finished
   exchange would pair every later request with the wrong response.
"""

from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple

from fiber.errors import ReceiveError
from fiber.wire import TransactionResponse, TransactionSequenceResponse, WireMessage

from .session import ResponseT, StreamSession

logger = logging.getLogger(__name__)


class TransactionResult(NamedTuple):
    """Acknowledgement of one submitted transaction."""

    hash: str
    """Transaction hash as reported by the relay."""

    timestamp: int
    """Receive time at the relay, microseconds since the epoch."""


class SequenceResult(NamedTuple):
    """Acknowledgement of a submitted sequence."""

    hashes: tuple[str, ...]
    """Per-item hashes in request order."""

    timestamp: int
    """Receive time of the first item, microseconds since the epoch."""


async def _discard(task: asyncio.Task[object]) -> None:
    """Cancel `task` and wait for it to finish, ignoring its outcome."""
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def exchange(session: StreamSession[ResponseT], request: WireMessage) -> ResponseT:
    """
    Send `request` and return the response that answers it.

    Raises:
        SendError: If the write failed.
        ReceiveError: If the read failed or the stream ended.
    """
    async with session.lock:
        send_task = asyncio.create_task(session.send(request))
        receive_task = asyncio.create_task(session.receive())

        try:
            await asyncio.wait({send_task, receive_task}, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            logger.debug("Exchange on %s cancelled; closing session", session.name)
            await _discard(send_task)
            await _discard(receive_task)
            await session.close()
            raise

        if send_task.done() and send_task.exception() is not None:
            await _discard(receive_task)
            raise send_task.exception()  # type: ignore[misc]

        if receive_task.exception() is not None:
            await _discard(send_task)
            raise receive_task.exception()  # type: ignore[misc]

        return receive_task.result()


def transaction_result(response: TransactionResponse) -> TransactionResult:
    """Result of a single-transaction exchange."""
    return TransactionResult(hash=response.hash, timestamp=int(response.timestamp))


def sequence_result(stream: str, response: TransactionSequenceResponse) -> SequenceResult:
    """
    Result of a sequence exchange, timestamped by its first item.

    Raises:
        ReceiveError: If the relay acknowledged no items.
    """
    if not response.responses:
        raise ReceiveError(stream, "empty sequence response")
    return SequenceResult(
        hashes=tuple(item.hash for item in response.responses),
        timestamp=int(response.responses[0].timestamp),
    )
