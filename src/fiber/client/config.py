"""
Client configuration.

All tunables live in one frozen dataclass. Defaults are module constants so
tests and callers can refer to them by name.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

DEFAULT_CHAIN_ID: Final = 1
"""Ethereum mainnet."""

DEFAULT_CONNECT_TIMEOUT: Final = 10.0
"""Seconds to wait for the channel to become ready during connect."""

DEFAULT_CLOSE_TIMEOUT: Final = 5.0
"""Seconds close waits for in-flight calls before tearing streams down."""

API_KEY_HEADER: Final = "x-api-key"
"""Metadata key carrying the API key on every call."""

MAX_MESSAGE_LENGTH: Final = 64 * 1024 * 1024
"""Largest message accepted in either direction; execution payloads can be large."""

KEEPALIVE_TIME_MS: Final = 10_000
"""Interval between HTTP/2 keepalive pings on an idle connection."""

KEEPALIVE_TIMEOUT_MS: Final = 5_000
"""Time to wait for a keepalive ack before the connection is considered dead."""

_TRUE_VALUES: Final = frozenset({"1", "true", "yes"})


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Configuration for a relay client."""

    chain_id: int = field(default=DEFAULT_CHAIN_ID)
    """
    Chain whose signing rules are used to recover senders.

    Transactions signed for another chain fail to encode.
    """

    connect_timeout: float = field(default=DEFAULT_CONNECT_TIMEOUT)
    """Upper bound on `connect` when the caller passes no timeout."""

    close_timeout: float = field(default=DEFAULT_CLOSE_TIMEOUT)
    """Upper bound on waiting for in-flight calls during `close`."""

    use_tls: bool = field(default=False)
    """Dial with TLS using the system root certificates."""

    api_key_header: str = field(default=API_KEY_HEADER)
    """Metadata key for the API key."""

    max_message_length: int = field(default=MAX_MESSAGE_LENGTH)

    keepalive_time_ms: int = field(default=KEEPALIVE_TIME_MS)

    keepalive_timeout_ms: int = field(default=KEEPALIVE_TIMEOUT_MS)

    enable_compression: bool = field(default=False)
    """Gzip-compress messages on the channel."""

    def __post_init__(self) -> None:
        """Reject values that cannot work on any channel."""
        if self.chain_id < 0:
            raise ValueError(f"chain_id must be non-negative, got {self.chain_id}")
        if self.connect_timeout <= 0 or self.close_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.max_message_length <= 0:
            raise ValueError("max_message_length must be positive")

    def channel_options(self) -> list[tuple[str, int]]:
        """gRPC channel arguments derived from this configuration."""
        return [
            ("grpc.max_send_message_length", self.max_message_length),
            ("grpc.max_receive_message_length", self.max_message_length),
            ("grpc.keepalive_time_ms", self.keepalive_time_ms),
            ("grpc.keepalive_timeout_ms", self.keepalive_timeout_ms),
            ("grpc.keepalive_permit_without_calls", 1),
        ]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """
        Build a configuration from `FIBER_*` environment variables.

        Recognised: `FIBER_CHAIN_ID`, `FIBER_CONNECT_TIMEOUT`,
        `FIBER_CLOSE_TIMEOUT`, `FIBER_USE_TLS` ("1"/"true"/"yes").
        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable does not parse.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        if "FIBER_CHAIN_ID" in env:
            overrides["chain_id"] = int(env["FIBER_CHAIN_ID"])
        if "FIBER_CONNECT_TIMEOUT" in env:
            overrides["connect_timeout"] = float(env["FIBER_CONNECT_TIMEOUT"])
        if "FIBER_CLOSE_TIMEOUT" in env:
            overrides["close_timeout"] = float(env["FIBER_CLOSE_TIMEOUT"])
        if "FIBER_USE_TLS" in env:
            overrides["use_tls"] = env["FIBER_USE_TLS"].strip().lower() in _TRUE_VALUES
        return cls(**overrides)  # type: ignore[arg-type]
