"""Parse verified GitHub deliveries into EventEnvelopes.

The event type comes from the X-GitHub-Event header rather than the body:
the body's schema depends on the event type, so it cannot be trusted for
routing before it is known what it should look like.

GitHub Webhook Payload Structure (pull_request event):
{
  "action": "opened",
  "pull_request": {"number": 1, "title": "...", "user": {"login": "..."}},
  "repository": {"full_name": "owner/repo", "name": "repo",
                 "owner": {"login": "owner"}}
}

Push events carry no "action" field. That is a normal routing case, so
the envelope's action is simply None.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs

from .errors import MalformedPayloadError
from .models import DELIVERY_HEADER, EVENT_HEADER, EventEnvelope, RawDelivery

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_envelope(headers: Mapping[str, str], body: bytes) -> EventEnvelope:
    """Build an EventEnvelope from request headers and the raw body.

    Args:
        headers: Request headers. Names are matched case-insensitively.
        body: Raw request body bytes.

    Returns:
        The parsed EventEnvelope.

    Raises:
        MalformedPayloadError: If the event type header is missing or the
            body is not a JSON object.
    """
    normalized = {str(k).lower(): v for k, v in headers.items()}

    event_type = (normalized.get(EVENT_HEADER) or "").strip()
    if not event_type:
        raise MalformedPayloadError("Missing X-GitHub-Event header")

    delivery_id = (normalized.get(DELIVERY_HEADER) or "").strip()
    if not delivery_id:
        logger.debug(
            "Delivery has no X-GitHub-Delivery header",
            extra={"event_type": event_type},
        )

    payload = _decode_body(body, normalized.get("content-type", ""), event_type)

    return EventEnvelope(
        event_type=event_type,
        action=_extract_action(payload),
        delivery_id=delivery_id,
        payload=payload,
    )


def parse_delivery(delivery: RawDelivery) -> EventEnvelope:
    """Parse a RawDelivery. See parse_envelope()."""
    return parse_envelope(delivery.headers, delivery.body)


def _decode_body(body: bytes, content_type: str, event_type: str) -> Dict[str, Any]:
    """Decode the body as a JSON object.

    Supports raw JSON and application/x-www-form-urlencoded (payload=...),
    the two content types GitHub can be configured to send.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayloadError(
            f"Body is not valid UTF-8: {e}", event_type=event_type
        ) from e

    if FORM_CONTENT_TYPE in content_type.lower():
        fields = parse_qs(text, keep_blank_values=True)
        raw = (fields.get("payload") or [None])[0]
        if raw is None:
            raise MalformedPayloadError(
                "Form-encoded body has no 'payload' field", event_type=event_type
            )
        text = raw

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(
            f"Body is not valid JSON: {e.msg}", event_type=event_type
        ) from e

    if not isinstance(payload, dict):
        raise MalformedPayloadError(
            f"Expected a JSON object, got {type(payload).__name__}",
            event_type=event_type,
        )

    return payload


def _extract_action(payload: Dict[str, Any]) -> Optional[str]:
    action = payload.get("action")
    if isinstance(action, str):
        return action
    return None
