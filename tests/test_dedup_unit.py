"""Unit tests for delivery deduplication."""

import asyncio

import pytest

from conftest import make_envelope
from hookrouter.handlers import build_handler_registrations
from hookrouter.handlers.base import EventHandler
from hookrouter.handlers.dedup import (
    DeduplicatingHandler,
    DeliveryDeduplicator,
    with_deduplication,
)


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingHandler(EventHandler):
    event_type = "push"

    def __init__(self, failures: int = 0):
        super().__init__()
        self.calls = 0
        self.failures = failures

    async def handle(self, envelope):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("transient")


def test_key_is_new_once_within_ttl():
    clock = FakeClock()
    dedup = DeliveryDeduplicator(ttl_seconds=60, clock=clock)

    assert dedup.mark_if_new("d1")
    assert not dedup.mark_if_new("d1")

    clock.now = 61
    assert dedup.mark_if_new("d1")


def test_oldest_keys_are_evicted_at_capacity():
    dedup = DeliveryDeduplicator(ttl_seconds=60, max_entries=2, clock=FakeClock())

    for key in ("a", "b", "c"):
        dedup.mark_if_new(key)

    assert len(dedup) == 2
    assert dedup.mark_if_new("a")


@pytest.mark.parametrize("ttl, max_entries", [(0, 10), (-1, 10), (10, 0)])
def test_invalid_limits_are_rejected(ttl, max_entries):
    with pytest.raises(ValueError):
        DeliveryDeduplicator(ttl_seconds=ttl, max_entries=max_entries)


def test_duplicate_delivery_is_handled_once():
    inner = CountingHandler()
    handler = DeduplicatingHandler(inner, DeliveryDeduplicator(ttl_seconds=60))
    envelope = make_envelope("push", {}, delivery_id="d1")

    run_async(handler.handle(envelope))
    run_async(handler.handle(envelope))

    assert inner.calls == 1
    assert handler.name == "CountingHandler"
    assert handler.event_type == "push"


def test_failed_delivery_is_processed_on_redelivery():
    inner = CountingHandler(failures=1)
    handler = DeduplicatingHandler(inner, DeliveryDeduplicator(ttl_seconds=60))
    envelope = make_envelope("push", {}, delivery_id="d1")

    with pytest.raises(RuntimeError):
        run_async(handler.handle(envelope))
    run_async(handler.handle(envelope))

    assert inner.calls == 2


def test_deliveries_without_id_are_never_deduplicated():
    inner = CountingHandler()
    handler = DeduplicatingHandler(inner, DeliveryDeduplicator(ttl_seconds=60))
    envelope = make_envelope("push", {}, delivery_id="")

    run_async(handler.handle(envelope))
    run_async(handler.handle(envelope))

    assert inner.calls == 2


def test_with_deduplication_is_identity_when_disabled():
    inner = CountingHandler()
    assert with_deduplication(inner, None) is inner


def test_registrations_are_wrapped_when_deduplicator_given():
    registrations = build_handler_registrations(
        deduplicator=DeliveryDeduplicator(ttl_seconds=60)
    )

    assert all(isinstance(h, DeduplicatingHandler) for h in registrations.values())
    assert set(registrations) == {
        "push",
        "pull_request",
        "release",
        "workflow_run",
        "issues",
        "repository",
    }
