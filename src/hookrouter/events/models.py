"""Delivery event models for observability.

This module defines the data models for delivery events:
- DeliveryEventType: Enum of all event types emitted by the router
- DeliveryEvent: Structured event with the delivery's correlation fields

One DeliveryEvent is emitted per HTTP delivery, after its outcome is known.
Events feed the logging and metrics sinks in emitter.py and metrics.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..webhook.models import DispatchOutcome, NO_HANDLER, OutcomeStatus


class DeliveryEventType(str, Enum):
    """Types of events emitted by the webhook router.

    Attributes:
        ACCEPTED: A handler ran to completion.
        UNREGISTERED: No handler is registered for the event type.
        REJECTED: Signature or payload checks failed; no handler ran.
        HANDLER_FAILED: The handler raised an exception.
        TIMEOUT: The handler exceeded the per-delivery deadline.
    """

    ACCEPTED = "accepted"
    UNREGISTERED = "unregistered"
    REJECTED = "rejected"
    HANDLER_FAILED = "handler_failed"
    TIMEOUT = "timeout"


class DeliveryEvent(BaseModel):
    """Structured event describing the outcome of one delivery.

    Attributes:
        event_type: The category of event (accepted, rejected, etc.).
        github_event: The X-GitHub-Event value, or "unknown" if the
                      delivery was rejected before it was parsed.
        delivery_id: The X-GitHub-Delivery value, possibly empty.
        repository: Full repository name ("owner/repo"), when present.
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For ACCEPTED events:
            - handler: Handler class name
            - duration_seconds: Time spent in the handler

        For REJECTED events:
            - reason: missing_signature, invalid_signature or malformed_payload

        For HANDLER_FAILED and TIMEOUT events:
            - handler: Handler class name
            - error_message: Error description
            - duration_seconds: Time spent before the failure
    """

    event_type: DeliveryEventType = Field(
        ...,
        description="The category of event being emitted",
    )

    github_event: str = Field(
        default="unknown",
        description="The GitHub event type of the delivery",
    )

    delivery_id: str = Field(
        default="",
        description="The GitHub delivery id, empty when not sent",
    )

    repository: Optional[str] = Field(
        default=None,
        description='Full repository path in format "{owner}/{repo}"',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    @classmethod
    def from_outcome(
        cls,
        outcome: DispatchOutcome,
        repository: Optional[str] = None,
    ) -> "DeliveryEvent":
        """Build the event describing a dispatch outcome.

        Args:
            outcome: The outcome of the delivery.
            repository: Repository full name, if known.

        Returns:
            DeliveryEvent for the outcome.
        """
        if outcome.status == OutcomeStatus.ACCEPTED:
            if outcome.reason == NO_HANDLER:
                event_type = DeliveryEventType.UNREGISTERED
            else:
                event_type = DeliveryEventType.ACCEPTED
        elif outcome.status == OutcomeStatus.REJECTED:
            event_type = DeliveryEventType.REJECTED
        elif outcome.status == OutcomeStatus.TIMED_OUT:
            event_type = DeliveryEventType.TIMEOUT
        else:
            event_type = DeliveryEventType.HANDLER_FAILED

        details: Dict[str, Any] = {}
        if outcome.reason:
            details["reason"] = outcome.reason
        if outcome.handler:
            details["handler"] = outcome.handler
            details["duration_seconds"] = outcome.duration_seconds
        if outcome.error:
            details["error_message"] = outcome.error

        return cls(
            event_type=event_type,
            github_event=outcome.event_type or "unknown",
            delivery_id=outcome.delivery_id or "",
            repository=repository,
            details=details,
        )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary suitable for structured logging.

        Returns:
            Dict[str, Any]: Flat dictionary representation of the event.
        """
        return {
            "event_type": self.event_type.value,
            "github_event": self.github_event,
            "delivery_id": self.delivery_id,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
