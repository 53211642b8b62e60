"""Test helpers for fiber unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import (
    ETHER,
    GWEI,
    RECIPIENT,
    TEST_CHAIN_ID,
    TEST_SECRET,
    make_access_list_tx,
    make_access_tuple,
    make_dynamic_fee_tx,
    make_legacy_tx,
    make_private_key,
    make_wire_beacon_block,
    make_wire_header,
    make_wire_payload,
)
from .mocks import FakeCall, FakeChannel, relay_channel, relay_responder, rpc_error

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "make_access_list_tx",
    "make_access_tuple",
    "make_dynamic_fee_tx",
    "make_legacy_tx",
    "make_private_key",
    "make_wire_beacon_block",
    "make_wire_header",
    "make_wire_payload",
    # Mocks
    "FakeCall",
    "FakeChannel",
    "relay_channel",
    "relay_responder",
    "rpc_error",
    # Constants
    "ETHER",
    "GWEI",
    "RECIPIENT",
    "TEST_CHAIN_ID",
    "TEST_SECRET",
    # Async utilities
    "run_async",
]
