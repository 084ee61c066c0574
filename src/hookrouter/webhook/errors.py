"""Exception taxonomy for webhook ingestion.

Authentication and payload errors are terminal for the delivery they
belong to: no handler runs. Handler errors never escape the dispatch
supervisor; the classes below exist so handlers and callers can raise
something more specific than ``Exception`` when they want to.
"""

from typing import Optional

from .models import SignatureFailure


class WebhookError(Exception):
    """Base class for all webhook ingestion errors."""


class AuthenticationError(WebhookError):
    """Raised when a delivery's signature is missing or does not match.

    Attributes:
        reason: Why verification failed. Missing signatures usually mean a
                misconfigured webhook, mismatches may indicate forgery.
    """

    def __init__(self, reason: SignatureFailure):
        self.reason = reason
        super().__init__(reason.value)


class MalformedPayloadError(WebhookError):
    """Raised when a verified delivery cannot be decoded into an envelope.

    Attributes:
        message: Human-readable description of the decoding failure.
        event_type: Raw ``X-GitHub-Event`` header value, if one was sent.
    """

    def __init__(self, message: str, event_type: Optional[str] = None):
        self.message = message
        self.event_type = event_type
        super().__init__(message)


class HandlerError(WebhookError):
    """Raised by a handler to signal a domain failure for one delivery."""


class HandlerTimeoutError(HandlerError):
    """Raised when a handler exceeds the per-delivery deadline."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Handler exceeded {timeout_seconds:g}s deadline")


class ConfigurationError(WebhookError):
    """Raised at startup when the service cannot run safely.

    A missing webhook secret is the canonical case: serving without one
    would leave the endpoint as an unauthenticated write surface.
    """
