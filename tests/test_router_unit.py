"""Unit tests for EventRouter."""

import pytest

from conftest import make_envelope
from hookrouter.handlers import build_handler_registrations
from hookrouter.handlers.base import EventHandler
from hookrouter.webhook.router import EventRouter


class StubHandler(EventHandler):
    event_type = "push"

    async def handle(self, envelope):
        pass


def test_routes_registered_event_type():
    handler = StubHandler()
    router = EventRouter({"push": handler})

    assert router.route(make_envelope("push", {})) is handler


def test_unregistered_event_type_routes_to_none():
    router = EventRouter({"push": StubHandler()})

    assert router.route(make_envelope("unknown_event", {})) is None


def test_routing_ignores_action():
    handler = StubHandler()
    router = EventRouter({"pull_request": handler})

    for action in ("opened", "closed", "some_future_action"):
        envelope = make_envelope("pull_request", {"action": action})
        assert router.route(envelope) is handler


def test_registrations_are_copied_and_read_only():
    table = {"push": StubHandler()}
    router = EventRouter(table)
    table["issues"] = StubHandler()

    assert router.registered_event_types == ("push",)
    with pytest.raises(TypeError):
        router.registrations["issues"] = StubHandler()


def test_empty_event_type_is_rejected():
    with pytest.raises(ValueError):
        EventRouter({"": StubHandler()})


def test_built_in_registrations_cover_all_event_types():
    registrations = build_handler_registrations()
    router = EventRouter(registrations)

    assert router.registered_event_types == (
        "issues",
        "pull_request",
        "push",
        "release",
        "repository",
        "workflow_run",
    )
    for event_type, handler in registrations.items():
        assert handler.event_type == event_type
