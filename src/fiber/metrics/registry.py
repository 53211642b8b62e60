"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the relay client.
Callers that run an HTTP endpoint can expose `generate_metrics()` output.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Dedicated registry so embedding applications keep their own default one clean.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Connection
# -----------------------------------------------------------------------------

connected_clients = Gauge(
    "fiber_connected_clients",
    "Clients currently holding open transaction streams",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Transaction Submission
# -----------------------------------------------------------------------------

transactions_sent = Counter(
    "fiber_transactions_sent_total",
    "Acknowledged submissions by transaction class",
    ["tx_class"],
    registry=REGISTRY,
)

call_failures = Counter(
    "fiber_call_failures_total",
    "Failed submissions by transaction class and stage",
    ["tx_class", "stage"],
    registry=REGISTRY,
)

call_latency = Histogram(
    "fiber_call_latency_seconds",
    "Time from request write to matching response",
    ["tx_class"],
    buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Subscriptions
# -----------------------------------------------------------------------------

active_subscriptions = Gauge(
    "fiber_active_subscriptions",
    "Subscriptions currently streaming",
    ["kind"],
    registry=REGISTRY,
)

subscription_events = Counter(
    "fiber_subscription_events_total",
    "Events delivered to feeds by subscription kind",
    ["kind"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
