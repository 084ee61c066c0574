"""Data models for inbound GitHub webhook deliveries.

A delivery moves through three shapes on its way to a handler:

- RawDelivery: the unprocessed body and headers of one HTTP request
- VerifiedDelivery: a RawDelivery plus the signature verification result
- EventEnvelope: the parsed event type, action, delivery id and payload

DispatchOutcome records what happened to the delivery and decides the
HTTP response. None of these models outlive the request that created them.

The models use Pydantic for validation, consistent with the configuration
approach in config.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"


class SignatureFailure(str, Enum):
    """Reason codes for a failed signature check.

    Attributes:
        MISSING_SIGNATURE: No X-Hub-Signature-256 header was sent. Usually
            a webhook configured without a secret.
        INVALID_SIGNATURE: A signature was sent but does not match the
            body. Possibly a forged or tampered request.
    """

    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE = "invalid_signature"


class OutcomeStatus(str, Enum):
    """Final status of a single delivery."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    HANDLER_FAILED = "handler_failed"
    TIMED_OUT = "timed_out"


MALFORMED_PAYLOAD = "malformed_payload"
NO_HANDLER = "no handler"


class RawDelivery(BaseModel):
    """The unprocessed request as received by the HTTP endpoint.

    Header names are lower-cased on construction so every lookup through
    ``header()`` is case-insensitive.

    Attributes:
        body: Exact request body bytes. Signatures are computed over these.
        headers: Request headers keyed by lower-case name.
        received_at: When the request was received (UTC).
    """

    model_config = ConfigDict(frozen=True)

    body: bytes = b""
    headers: Dict[str, str] = Field(default_factory=dict)
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @field_validator("headers", mode="before")
    @classmethod
    def lowercase_header_names(cls, v: Any) -> Dict[str, str]:
        """Normalise header names to lower case."""
        if v is None:
            return {}
        return {str(name).lower(): str(value) for name, value in dict(v).items()}

    def header(self, name: str) -> Optional[str]:
        """Look up a header value by case-insensitive name."""
        return self.headers.get(name.lower())


class SignatureVerification(BaseModel):
    """Result of checking a delivery's HMAC signature."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: Optional[SignatureFailure] = None


class VerifiedDelivery(BaseModel):
    """A RawDelivery paired with its signature verification outcome."""

    model_config = ConfigDict(frozen=True)

    delivery: RawDelivery
    verification: SignatureVerification

    @property
    def is_verified(self) -> bool:
        return self.verification.valid


class EventEnvelope(BaseModel):
    """Parsed representation of one GitHub event delivery.

    Attributes:
        event_type: Value of the X-GitHub-Event header (e.g. "push").
        action: The payload's ``action`` field. None for event types that
                have no notion of an action, such as push.
        delivery_id: Value of the X-GitHub-Delivery header, or "" when the
                     header was absent. GitHub reuses the id when it
                     redelivers, so it identifies an event, not an attempt.
        payload: The decoded JSON body.
    """

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(..., min_length=1)
    action: Optional[str] = None
    delivery_id: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def repository(self) -> Optional[str]:
        """Full name ("owner/repo") of the repository, when present."""
        repo = self.payload.get("repository")
        if isinstance(repo, dict):
            full_name = repo.get("full_name")
            if isinstance(full_name, str) and full_name:
                return full_name
        return None

    def log_context(self) -> Dict[str, Any]:
        """Fields used to correlate log lines for this delivery."""
        return {
            "event_type": self.event_type,
            "action": self.action,
            "delivery_id": self.delivery_id,
            "repository": self.repository,
        }


class DispatchOutcome(BaseModel):
    """What happened to one delivery.

    Only used to shape the HTTP response and the log line; never stored.

    Attributes:
        status: Final status of the delivery.
        reason: Annotation for accepted or rejected deliveries, e.g.
                "no handler" or a SignatureFailure value.
        error: Error description for failed or timed-out handlers.
        event_type: The delivery's event type, when known.
        delivery_id: The delivery's id, when known.
        handler: Class name of the handler that ran, if any.
        duration_seconds: Time spent in the handler.
    """

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    reason: Optional[str] = None
    error: Optional[str] = None
    event_type: Optional[str] = None
    delivery_id: Optional[str] = None
    handler: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def accepted(
        cls,
        envelope: EventEnvelope,
        handler: Optional[str] = None,
        reason: Optional[str] = None,
        duration_seconds: float = 0.0,
    ) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.ACCEPTED,
            reason=reason,
            event_type=envelope.event_type,
            delivery_id=envelope.delivery_id,
            handler=handler,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def rejected(
        cls,
        reason: str,
        event_type: Optional[str] = None,
        delivery_id: Optional[str] = None,
    ) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.REJECTED,
            reason=reason,
            event_type=event_type,
            delivery_id=delivery_id,
        )

    @classmethod
    def handler_failed(
        cls,
        envelope: EventEnvelope,
        handler: str,
        error: str,
        duration_seconds: float,
    ) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.HANDLER_FAILED,
            error=error,
            event_type=envelope.event_type,
            delivery_id=envelope.delivery_id,
            handler=handler,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def timed_out(
        cls,
        envelope: EventEnvelope,
        handler: str,
        timeout_seconds: float,
    ) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.TIMED_OUT,
            error=f"Handler exceeded {timeout_seconds:g}s deadline",
            event_type=envelope.event_type,
            delivery_id=envelope.delivery_id,
            handler=handler,
            duration_seconds=timeout_seconds,
        )

    @property
    def http_status(self) -> int:
        """HTTP status code the endpoint answers with."""
        if self.status == OutcomeStatus.ACCEPTED:
            return 200
        if self.status == OutcomeStatus.REJECTED:
            if self.reason == MALFORMED_PAYLOAD:
                return 400
            return 401
        return 500

    @property
    def response_body(self) -> Dict[str, str]:
        """JSON body the endpoint answers with.

        Never includes handler error details; those go to the log.
        """
        if self.status == OutcomeStatus.ACCEPTED:
            if self.reason == NO_HANDLER:
                return {
                    "message": f"No handler registered for event '{self.event_type}'"
                }
            return {"message": "Webhook processed successfully"}
        if self.status == OutcomeStatus.REJECTED:
            if self.reason == SignatureFailure.MISSING_SIGNATURE.value:
                return {"error": "Missing signature"}
            if self.reason == SignatureFailure.INVALID_SIGNATURE.value:
                return {"error": "Invalid signature"}
            return {"error": "Malformed payload"}
        if self.status == OutcomeStatus.TIMED_OUT:
            return {"error": "Handler timed out"}
        return {"error": "Internal server error"}
