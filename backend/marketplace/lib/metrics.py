"""
Prometheus-compatible metrics for the booking engine.

Tracks:
- Bookings created (by source, initial status)
- Allocation conflicts (by reason)
- Lifecycle transitions (by event type)
- Payment webhook outcomes
- Calendar projection and event dispatch failures

Usage:
    from marketplace.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_bookings_created(source="ONLINE", status="AWAITING_PAYMENT")
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style counter collector.

    Thread-safe for concurrent increments from the request pool and the
    background scheduler.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        sorted_labels = tuple(sorted(labels.items()))
        return (metric_name, sorted_labels)

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        """Thread-safe increment of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def _get_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    # ===== Booking Metrics =====

    def increment_bookings_created(self, source: str, status: str, amount: int = 1):
        """Increment bookings created counter."""
        labels = {
            "source": source.upper(),
            "status": status.upper(),
        }
        self._increment("bookings_created_total", labels, amount)

    def increment_conflicts(self, reason: str, amount: int = 1):
        """
        Increment allocation conflicts counter.

        Args:
            reason: Conflict reason (slot_unavailable, seat_at_capacity, ...)
            amount: Increment amount
        """
        self._increment("booking_conflicts_total", {"reason": reason.lower()}, amount)

    def increment_transitions(self, event: str, amount: int = 1):
        """Increment lifecycle transitions counter (labelled by event type)."""
        self._increment("booking_transitions_total", {"event": event.lower()}, amount)

    # ===== Payment Metrics =====

    def increment_webhooks(self, event: str, outcome: str, amount: int = 1):
        """
        Increment payment webhook counter.

        Args:
            event: Provider event name (charge.success, charge.failed, ...)
            outcome: Reconciler decision (confirmed, duplicate, mismatch, unknown_reference, ...)
            amount: Increment amount
        """
        labels = {
            "event": event.lower(),
            "outcome": outcome.lower(),
        }
        self._increment("payment_webhooks_total", labels, amount)

    # ===== Side-effect Failures =====

    def increment_calendar_sync_failures(self, amount: int = 1):
        self._increment("calendar_sync_failures_total", {}, amount)

    def increment_dispatch_failures(self, listener: str, amount: int = 1):
        self._increment("event_dispatch_failures_total", {"listener": listener}, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                if metric_name not in metrics_by_name:
                    metrics_by_name[metric_name] = []
                metrics_by_name[metric_name].append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name.keys()):
            help_text = self._get_help_text(metric_name)
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                if labels_dict:
                    labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                    output_lines.append(f"{metric_name}{{{labels_str}}} {value}")
                else:
                    output_lines.append(f"{metric_name} {value}")

            output_lines.append("")

        return "\n".join(output_lines)

    def _get_help_text(self, metric_name: str) -> str:
        help_texts = {
            "bookings_created_total": "Total number of bookings created",
            "booking_conflicts_total": "Total number of booking requests rejected as conflicts",
            "booking_transitions_total": "Total number of booking lifecycle transitions",
            "payment_webhooks_total": "Total number of payment webhook events processed",
            "calendar_sync_failures_total": "Total number of failed calendar projections",
            "event_dispatch_failures_total": "Total number of failed booking event deliveries",
        }
        return help_texts.get(metric_name, "Counter metric")

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """
        Get current value of a specific counter.

        Args:
            metric_name: Name of the metric
            labels: Label filters

        Returns:
            Current counter value
        """
        return self._get_value(metric_name, labels)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector singleton."""
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
