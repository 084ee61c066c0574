"""Unit and property tests for webhook envelope parsing."""

import json
from urllib.parse import urlencode

import pytest
from hypothesis import given, settings, strategies as st

from hookrouter.webhook.errors import MalformedPayloadError
from hookrouter.webhook.models import RawDelivery
from hookrouter.webhook.parser import parse_delivery, parse_envelope

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=20),
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=10), children, max_size=4),
    max_leaves=20,
)

event_types = st.sampled_from(
    ["push", "pull_request", "issues", "release", "workflow_run", "repository", "ping"]
)


@settings(max_examples=100)
@given(
    event_type=event_types,
    delivery_id=st.uuids().map(str),
    payload=st.dictionaries(st.text(max_size=10), json_values, max_size=6),
)
def test_envelope_carries_headers_and_payload(event_type, delivery_id, payload):
    """Event type and delivery id come from headers, payload from the body verbatim."""
    body = json.dumps(payload).encode("utf-8")
    headers = {"X-GitHub-Event": event_type, "X-GitHub-Delivery": delivery_id}

    envelope = parse_envelope(headers, body)

    assert envelope.event_type == event_type
    assert envelope.delivery_id == delivery_id
    assert envelope.payload == payload


def test_action_is_taken_from_payload():
    envelope = parse_envelope(
        {"x-github-event": "pull_request", "x-github-delivery": "d1"},
        b'{"action": "opened", "number": 7}',
    )
    assert envelope.action == "opened"


def test_absent_action_is_none():
    envelope = parse_envelope(
        {"x-github-event": "push", "x-github-delivery": "d1"},
        b'{"ref": "refs/heads/main"}',
    )
    assert envelope.action is None


def test_non_string_action_is_none():
    envelope = parse_envelope(
        {"x-github-event": "push"},
        b'{"action": 3}',
    )
    assert envelope.action is None


def test_missing_delivery_header_gives_empty_id():
    envelope = parse_envelope({"X-GitHub-Event": "push"}, b"{}")
    assert envelope.delivery_id == ""


def test_repository_full_name_is_exposed():
    envelope = parse_envelope(
        {"X-GitHub-Event": "push"},
        b'{"repository": {"full_name": "acme/widgets"}}',
    )
    assert envelope.repository == "acme/widgets"
    assert envelope.log_context()["repository"] == "acme/widgets"


def test_form_encoded_payload_is_decoded():
    payload = {"action": "opened", "issue": {"number": 1}}
    body = urlencode({"payload": json.dumps(payload)}).encode("ascii")
    delivery = RawDelivery(
        body=body,
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "X-GitHub-Event": "issues",
        },
    )

    envelope = parse_delivery(delivery)

    assert envelope.payload == payload
    assert envelope.action == "opened"


def test_missing_event_header_is_malformed():
    with pytest.raises(MalformedPayloadError):
        parse_envelope({"X-GitHub-Delivery": "d1"}, b"{}")


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"",
        b"[1, 2, 3]",
        b'"a string"',
        b"\xff\xfe\x00",
    ],
)
def test_undecodable_bodies_are_malformed(body):
    with pytest.raises(MalformedPayloadError) as exc_info:
        parse_envelope({"X-GitHub-Event": "push"}, body)

    assert exc_info.value.event_type == "push"


def test_form_body_without_payload_field_is_malformed():
    with pytest.raises(MalformedPayloadError):
        parse_envelope(
            {
                "X-GitHub-Event": "push",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            b"other=1",
        )
