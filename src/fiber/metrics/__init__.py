"""
Metrics for observability.

Counters, gauges, and histograms tracking submissions and subscriptions.
Exposed in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    active_subscriptions,
    call_failures,
    call_latency,
    connected_clients,
    generate_metrics,
    subscription_events,
    transactions_sent,
)

__all__ = [
    "REGISTRY",
    "active_subscriptions",
    "call_failures",
    "call_latency",
    "connected_clients",
    "generate_metrics",
    "subscription_events",
    "transactions_sent",
]
