"""Unit tests for delivery events, emitters and Prometheus metrics."""

import asyncio
import logging
from unittest.mock import AsyncMock

from prometheus_client import CollectorRegistry

from conftest import make_envelope
from hookrouter.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from hookrouter.events.metrics import (
    MetricsEventEmitter,
    WebhookMetrics,
    generate_metrics_output,
)
from hookrouter.events.models import DeliveryEvent, DeliveryEventType
from hookrouter.webhook.models import DispatchOutcome


def run_async(coro):
    return asyncio.run(coro)


def test_from_outcome_maps_statuses():
    envelope = make_envelope("push", {})

    cases = [
        (DispatchOutcome.accepted(envelope, handler="PushHandler"), DeliveryEventType.ACCEPTED),
        (DispatchOutcome.accepted(envelope, reason="no handler"), DeliveryEventType.UNREGISTERED),
        (DispatchOutcome.rejected("invalid_signature"), DeliveryEventType.REJECTED),
        (
            DispatchOutcome.handler_failed(envelope, "PushHandler", "KeyError: 'x'", 0.1),
            DeliveryEventType.HANDLER_FAILED,
        ),
        (DispatchOutcome.timed_out(envelope, "PushHandler", 10), DeliveryEventType.TIMEOUT),
    ]

    for outcome, expected in cases:
        assert DeliveryEvent.from_outcome(outcome).event_type == expected


def test_rejected_event_without_headers_uses_unknown_event():
    event = DeliveryEvent.from_outcome(DispatchOutcome.rejected("missing_signature"))

    assert event.github_event == "unknown"
    assert event.delivery_id == ""


def test_log_dict_is_flat():
    event = DeliveryEvent.from_outcome(
        DispatchOutcome.accepted(make_envelope("push", {}), handler="PushHandler", duration_seconds=0.5),
        repository="acme/widgets",
    )

    log_dict = event.to_log_dict()

    assert log_dict["event_type"] == "accepted"
    assert log_dict["github_event"] == "push"
    assert log_dict["repository"] == "acme/widgets"
    assert log_dict["handler"] == "PushHandler"
    assert log_dict["duration_seconds"] == 0.5


def test_logging_emitter_uses_level_per_event_type(caplog):
    emitter = LoggingEventEmitter(logger_name="hookrouter.test")
    event = DeliveryEvent(
        event_type=DeliveryEventType.HANDLER_FAILED,
        github_event="push",
        delivery_id="d1",
    )

    with caplog.at_level(logging.DEBUG, logger="hookrouter.test"):
        run_async(emitter.emit(event))

    assert caplog.records[0].levelno == logging.ERROR
    assert caplog.records[0].github_event == "push"


def test_composite_emitter_isolates_failing_child():
    failing = AsyncMock(spec=EventEmitter)
    failing.emit.side_effect = RuntimeError("down")
    healthy = AsyncMock(spec=EventEmitter)
    composite = CompositeEventEmitter([failing, healthy])
    event = DeliveryEvent(event_type=DeliveryEventType.ACCEPTED, github_event="push")

    run_async(composite.emit(event))

    healthy.emit.assert_awaited_once_with(event)


def test_metrics_emitter_counts_deliveries_and_durations():
    registry = CollectorRegistry()
    emitter = MetricsEventEmitter(metrics=WebhookMetrics(registry=registry))
    envelope = make_envelope("push", {})

    run_async(emitter.emit(DeliveryEvent.from_outcome(
        DispatchOutcome.accepted(envelope, handler="PushHandler", duration_seconds=0.2)
    )))
    run_async(emitter.emit(DeliveryEvent.from_outcome(
        DispatchOutcome.rejected("invalid_signature", event_type="push")
    )))

    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event": "push", "outcome": "accepted"}
    ) == 1.0
    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event": "unknown", "outcome": "rejected"}
    ) == 1.0
    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event": "push", "outcome": "rejected"}
    ) is None
    assert registry.get_sample_value(
        "webhook_handler_duration_seconds_count", {"event": "push"}
    ) == 1.0
    assert b"webhook_deliveries_total" in generate_metrics_output(registry)


def test_factory_builds_requested_sinks():
    assert isinstance(create_event_emitter(), LoggingEventEmitter)

    emitter = create_event_emitter(
        [EventSinkType.LOGGING, EventSinkType.METRICS],
        registry=CollectorRegistry(),
    )

    assert isinstance(emitter, CompositeEventEmitter)
    assert [type(e) for e in emitter.emitters] == [LoggingEventEmitter, MetricsEventEmitter]


def test_null_emitter_discards_events():
    run_async(NullEventEmitter().emit(
        DeliveryEvent(event_type=DeliveryEventType.ACCEPTED, github_event="push")
    ))


def test_unregistered_events_share_one_label():
    registry = CollectorRegistry()
    emitter = MetricsEventEmitter(metrics=WebhookMetrics(registry=registry))

    for event_type in ("ping", "star", "fork"):
        outcome = DispatchOutcome.accepted(make_envelope(event_type, {}), reason="no handler")
        run_async(emitter.emit(DeliveryEvent.from_outcome(outcome)))

    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event": "unregistered", "outcome": "unregistered"}
    ) == 3.0
    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event": "ping", "outcome": "unregistered"}
    ) is None
