"""Prometheus metrics for webhook delivery observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- webhook_deliveries_total: Counter of deliveries by GitHub event and outcome
- webhook_handler_duration_seconds: Histogram of time spent in handlers

The event label only carries event types that have a registered handler.
Rejected and unregistered deliveries are counted under fixed labels so
unauthenticated requests cannot create new series.

The MetricsEventEmitter integrates with the event emission system to
update metrics from delivery events.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from .emitter import EventEmitter
from .models import DeliveryEvent, DeliveryEventType

logger = logging.getLogger(__name__)

# Event label for deliveries whose X-GitHub-Event header is not trusted or
# has no handler. Keeps the label set bounded by the registered handlers.
REJECTED_EVENT_LABEL = "unknown"
UNREGISTERED_EVENT_LABEL = "unregistered"


# Handlers mostly make a handful of REST calls; the deadline defaults to 10s
DEFAULT_DURATION_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)


class WebhookMetrics:
    """Container for all webhook Prometheus metrics.

    Supports custom registries for testing.

    Metrics:
        deliveries_total: Counter of deliveries.
            Labels: event (GitHub event type), outcome (DeliveryEventType)

        handler_duration_seconds: Histogram of handler execution time.
            Labels: event

    Example:
        >>> metrics = WebhookMetrics(registry=CollectorRegistry())
        >>> metrics.record_delivery("push", "accepted")
        >>> metrics.record_handler_duration("push", 0.2)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize webhook metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.deliveries_total = Counter(
            "webhook_deliveries_total",
            "Total number of webhook deliveries by event and outcome",
            labelnames=["event", "outcome"],
            registry=self.registry,
        )

        self.handler_duration_seconds = Histogram(
            "webhook_handler_duration_seconds",
            "Time spent in webhook handlers in seconds",
            labelnames=["event"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_delivery(self, event: str, outcome: str) -> None:
        self.deliveries_total.labels(event=event, outcome=outcome).inc()

    def record_handler_duration(self, event: str, duration_seconds: float) -> None:
        self.handler_duration_seconds.labels(event=event).observe(duration_seconds)


# Global metrics instance for the default registry
_default_metrics: Optional[WebhookMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> WebhookMetrics:
    """Get or create the webhook metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        WebhookMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return WebhookMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = WebhookMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus metrics output for the /metrics endpoint.

    Args:
        registry: Optional Prometheus registry. If None, uses the
                  default REGISTRY.

    Returns:
        bytes: Prometheus metrics in text format.
    """
    target_registry = registry or REGISTRY
    return generate_latest(target_registry)


def event_label(event: DeliveryEvent) -> str:
    """Return the `event` label value to record for a delivery event."""
    if event.event_type == DeliveryEventType.REJECTED:
        return REJECTED_EVENT_LABEL
    if event.event_type == DeliveryEventType.UNREGISTERED:
        return UNREGISTERED_EVENT_LABEL
    return event.github_event


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    Every event increments webhook_deliveries_total. Events that ran a
    handler also record the handler duration.
    """

    def __init__(
        self,
        metrics: Optional[WebhookMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        """Initialize the metrics event emitter.

        Args:
            metrics: Optional WebhookMetrics instance. If None, uses
                     the global metrics instance.
            registry: Optional Prometheus registry. Only used if metrics
                      is None.
        """
        if metrics is not None:
            self._metrics = metrics
        else:
            self._metrics = get_metrics(registry)

    @property
    def metrics(self) -> WebhookMetrics:
        return self._metrics

    async def emit(self, event: DeliveryEvent) -> None:
        """Update metrics based on the delivery event.

        Args:
            event: The delivery event to process.
        """
        try:
            self._metrics.record_delivery(
                event=event_label(event),
                outcome=event.event_type.value,
            )
            duration = event.details.get("duration_seconds")
            if event.details.get("handler") and duration is not None:
                self._metrics.record_handler_duration(
                    event=event.github_event,
                    duration_seconds=float(duration),
                )
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "delivery_id": event.delivery_id,
                },
            )
