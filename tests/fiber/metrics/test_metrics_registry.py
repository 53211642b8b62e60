"""Tests for the metrics registry."""

from __future__ import annotations

from fiber.metrics import (
    REGISTRY,
    active_subscriptions,
    call_failures,
    generate_metrics,
    subscription_events,
    transactions_sent,
)


class TestRegistry:
    """Registry contents and exposition."""

    def test_metrics_are_registered(self) -> None:
        """Every client metric is exported by the dedicated registry."""
        output = generate_metrics().decode()
        for name in (
            "fiber_connected_clients",
            "fiber_transactions_sent_total",
            "fiber_call_failures_total",
            "fiber_call_latency_seconds",
            "fiber_active_subscriptions",
            "fiber_subscription_events_total",
        ):
            assert name in output

    def test_no_process_metrics(self) -> None:
        """The dedicated registry carries no default process collectors."""
        assert "process_cpu_seconds_total" not in generate_metrics().decode()

    def test_labels(self) -> None:
        """Labelled children count independently."""
        counter = call_failures.labels("raw_transaction", "send")
        before = counter._value.get()
        counter.inc()
        assert counter._value.get() == before + 1
        assert REGISTRY.get_sample_value(
            "fiber_call_failures_total", {"tx_class": "raw_transaction", "stage": "send"}
        ) == before + 1

    def test_gauge_up_and_down(self) -> None:
        """The subscription gauge tracks open subscriptions."""
        gauge = active_subscriptions.labels("beacon_blocks")
        before = gauge._value.get()
        gauge.inc()
        gauge.dec()
        assert gauge._value.get() == before

    def test_counters_start_unset_per_label(self) -> None:
        """A fresh label value starts at zero."""
        assert subscription_events.labels("unused")._value.get() == 0
        assert transactions_sent.labels("unused")._value.get() == 0
