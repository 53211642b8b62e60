"""
Relay client: persistent transaction streams and event subscriptions.

- `Client`: connect/close and the public operations
- `Feed`: caller-owned destination of subscription events
- `ClientConfig`: tunables
"""

from .client import Client
from .config import ClientConfig
from .correlator import SequenceResult, TransactionResult, exchange
from .session import ServerStreamSession, SessionState, StreamSession
from .subscription import Feed, RouterState, SubscriptionRouter

__all__ = [
    "Client",
    "ClientConfig",
    "Feed",
    "RouterState",
    "SequenceResult",
    "ServerStreamSession",
    "SessionState",
    "StreamSession",
    "SubscriptionRouter",
    "TransactionResult",
    "exchange",
]
