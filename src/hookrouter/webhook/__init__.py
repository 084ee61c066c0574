"""GitHub webhook ingestion: signature verification and envelope parsing.

The router (router.py) and dispatch supervisor (supervisor.py) depend on
the handler and event packages and are imported from their modules.
"""

from .errors import (
    AuthenticationError,
    ConfigurationError,
    HandlerError,
    HandlerTimeoutError,
    MalformedPayloadError,
    WebhookError,
)
from .models import (
    DispatchOutcome,
    EventEnvelope,
    OutcomeStatus,
    RawDelivery,
    SignatureFailure,
    SignatureVerification,
    VerifiedDelivery,
)
from .parser import parse_delivery, parse_envelope
from .signature import authenticate, check_signature, sign, verify, verify_delivery

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DispatchOutcome",
    "EventEnvelope",
    "HandlerError",
    "HandlerTimeoutError",
    "MalformedPayloadError",
    "OutcomeStatus",
    "RawDelivery",
    "SignatureFailure",
    "SignatureVerification",
    "VerifiedDelivery",
    "WebhookError",
    "authenticate",
    "check_signature",
    "parse_delivery",
    "parse_envelope",
    "sign",
    "verify",
    "verify_delivery",
]
