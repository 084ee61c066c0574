"""Unit tests for the DispatchSupervisor.

Verifies that handler failures and timeouts are converted into outcomes,
that one failing delivery does not affect another, and that every
outcome is reported to the event emitter exactly once.
"""

import asyncio
from typing import List
from unittest.mock import AsyncMock

import pytest

from conftest import make_envelope
from hookrouter.events.emitter import EventEmitter
from hookrouter.events.models import DeliveryEvent, DeliveryEventType
from hookrouter.handlers.base import EventHandler
from hookrouter.webhook.models import OutcomeStatus
from hookrouter.webhook.supervisor import DispatchSupervisor


def run_async(coro):
    return asyncio.run(coro)


class RecordingEmitter(EventEmitter):
    def __init__(self):
        self.events: List[DeliveryEvent] = []

    async def emit(self, event: DeliveryEvent) -> None:
        self.events.append(event)


class RecordingHandler(EventHandler):
    event_type = "push"

    def __init__(self):
        super().__init__()
        self.received = []

    async def handle(self, envelope):
        self.received.append(envelope)


class FailingHandler(EventHandler):
    event_type = "push"

    async def handle(self, envelope):
        raise RuntimeError("boom")


class SlowHandler(EventHandler):
    event_type = "push"

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay
        self.cancelled = False

    async def handle(self, envelope):
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


# ---------------------------------------------------------------------------
# Dispatch outcomes
# ---------------------------------------------------------------------------


def test_successful_handler_is_accepted():
    emitter = RecordingEmitter()
    supervisor = DispatchSupervisor(event_emitter=emitter)
    handler = RecordingHandler()
    envelope = make_envelope("push", {"ref": "refs/heads/main"})

    outcome = run_async(supervisor.dispatch(envelope, handler))

    assert outcome.status == OutcomeStatus.ACCEPTED
    assert outcome.http_status == 200
    assert outcome.handler == "RecordingHandler"
    assert handler.received == [envelope]
    assert [e.event_type for e in emitter.events] == [DeliveryEventType.ACCEPTED]
    assert emitter.events[0].repository == "acme/widgets"


def test_raising_handler_becomes_handler_failed():
    emitter = RecordingEmitter()
    supervisor = DispatchSupervisor(event_emitter=emitter)

    outcome = run_async(
        supervisor.dispatch(make_envelope("push", {}), FailingHandler())
    )

    assert outcome.status == OutcomeStatus.HANDLER_FAILED
    assert outcome.http_status == 500
    assert outcome.response_body == {"error": "Internal server error"}
    assert outcome.error == "RuntimeError: boom"
    assert emitter.events[0].event_type == DeliveryEventType.HANDLER_FAILED
    assert emitter.events[0].details["error_message"] == "RuntimeError: boom"


class SocketTimeoutHandler(EventHandler):
    event_type = "push"

    async def handle(self, envelope):
        raise TimeoutError("socket read timed out")


@pytest.mark.parametrize("timeout_seconds", [None, 30])
def test_handler_raised_timeout_is_handler_failed(timeout_seconds):
    emitter = RecordingEmitter()
    supervisor = DispatchSupervisor(timeout_seconds=timeout_seconds, event_emitter=emitter)

    outcome = run_async(
        supervisor.dispatch(make_envelope("push", {}), SocketTimeoutHandler())
    )

    assert outcome.status == OutcomeStatus.HANDLER_FAILED
    assert outcome.error == "TimeoutError: socket read timed out"
    assert outcome.duration_seconds < 30
    assert outcome.response_body == {"error": "Internal server error"}
    assert [e.event_type for e in emitter.events] == [DeliveryEventType.HANDLER_FAILED]


def test_slow_handler_times_out_and_is_cancelled():
    supervisor = DispatchSupervisor(timeout_seconds=0.05)
    handler = SlowHandler(delay=5)

    outcome = run_async(supervisor.dispatch(make_envelope("push", {}), handler))

    assert outcome.status == OutcomeStatus.TIMED_OUT
    assert outcome.http_status == 500
    assert outcome.response_body == {"error": "Handler timed out"}
    assert handler.cancelled


def test_zero_timeout_disables_deadline():
    supervisor = DispatchSupervisor(timeout_seconds=0)
    handler = SlowHandler(delay=0.05)

    outcome = run_async(supervisor.dispatch(make_envelope("push", {}), handler))

    assert supervisor.timeout_seconds is None
    assert outcome.status == OutcomeStatus.ACCEPTED


def test_negative_timeout_is_rejected():
    with pytest.raises(ValueError):
        DispatchSupervisor(timeout_seconds=-1)


def test_failing_delivery_does_not_affect_concurrent_delivery():
    supervisor = DispatchSupervisor(timeout_seconds=1)
    good = RecordingHandler()

    async def dispatch_both():
        return await asyncio.gather(
            supervisor.dispatch(make_envelope("push", {}, delivery_id="a"), FailingHandler()),
            supervisor.dispatch(make_envelope("push", {}, delivery_id="b"), good),
        )

    failed, accepted = run_async(dispatch_both())

    assert failed.status == OutcomeStatus.HANDLER_FAILED
    assert accepted.status == OutcomeStatus.ACCEPTED
    assert len(good.received) == 1


# ---------------------------------------------------------------------------
# Non-handler outcomes
# ---------------------------------------------------------------------------


def test_unregistered_event_is_accepted_with_message():
    emitter = RecordingEmitter()
    supervisor = DispatchSupervisor(event_emitter=emitter)

    outcome = run_async(
        supervisor.accept_unregistered(make_envelope("unknown_event", {}))
    )

    assert outcome.http_status == 200
    assert outcome.response_body == {
        "message": "No handler registered for event 'unknown_event'"
    }
    assert emitter.events[0].event_type == DeliveryEventType.UNREGISTERED


@pytest.mark.parametrize(
    "reason, status, body",
    [
        ("missing_signature", 401, {"error": "Missing signature"}),
        ("invalid_signature", 401, {"error": "Invalid signature"}),
        ("malformed_payload", 400, {"error": "Malformed payload"}),
    ],
)
def test_rejections_map_to_status_and_body(reason, status, body):
    emitter = RecordingEmitter()
    supervisor = DispatchSupervisor(event_emitter=emitter)

    outcome = run_async(supervisor.reject(reason, event_type="push", delivery_id="d1"))

    assert outcome.status == OutcomeStatus.REJECTED
    assert outcome.http_status == status
    assert outcome.response_body == body
    assert emitter.events[0].details == {"reason": reason}


def test_emitter_failure_does_not_change_outcome():
    emitter = AsyncMock(spec=EventEmitter)
    emitter.emit.side_effect = RuntimeError("sink down")
    supervisor = DispatchSupervisor(event_emitter=emitter)

    outcome = run_async(supervisor.dispatch(make_envelope("push", {}), RecordingHandler()))

    assert outcome.status == OutcomeStatus.ACCEPTED
    emitter.emit.assert_awaited_once()
