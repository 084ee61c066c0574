"""Pytest configuration for all tests."""

import os
import sys

import pytest

# Add src directory to Python path for all tests
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from hookrouter.webhook.models import EventEnvelope  # noqa: E402

WEBHOOK_SECRET = "It's a Secret to Everybody"


def repository_payload(owner: str = "acme", name: str = "widgets") -> dict:
    return {
        "id": 1296269,
        "name": name,
        "full_name": f"{owner}/{name}",
        "owner": {"login": owner},
    }


def make_envelope(
    event_type: str,
    payload: dict,
    delivery_id: str = "72d3162e-cc78-11e3-81ab-4c9367dc0958",
) -> EventEnvelope:
    payload = {"repository": repository_payload(), **payload}
    action = payload.get("action")
    return EventEnvelope(
        event_type=event_type,
        action=action if isinstance(action, str) else None,
        delivery_id=delivery_id,
        payload=payload,
    )


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET
