"""HMAC-SHA256 signature verification for GitHub webhook deliveries.

GitHub signs every delivery with the webhook secret and sends the result
in the ``X-Hub-Signature-256`` header as ``sha256=<hex digest>``.

Security contract:
- The digest is computed over the exact raw body bytes, never over a
  re-serialised payload
- Comparison uses hmac.compare_digest() (constant-time); a length mismatch
  returns False instead of raising
- A missing header and a mismatched header produce different reason codes
- Neither the secret nor the computed digest is ever logged
"""

import hashlib
import hmac
import logging
from typing import Optional

from .errors import AuthenticationError
from .models import (
    SIGNATURE_HEADER,
    RawDelivery,
    SignatureFailure,
    SignatureVerification,
    VerifiedDelivery,
)

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def sign(secret: str, body: bytes) -> str:
    """Compute the X-Hub-Signature-256 value for a body.

    Args:
        secret: The shared webhook secret.
        body: Raw request body bytes.

    Returns:
        Signature in the form ``sha256=<hex digest>``.
    """
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify(secret: str, body: bytes, provided_signature: Optional[str]) -> bool:
    """Check a provided signature against the body.

    Args:
        secret: The shared webhook secret.
        body: Raw request body bytes.
        provided_signature: Value of the X-Hub-Signature-256 header.

    Returns:
        True if the signature matches the body.
    """
    return check_signature(secret, body, provided_signature).valid


def check_signature(
    secret: str,
    body: bytes,
    provided_signature: Optional[str],
) -> SignatureVerification:
    """Verify a signature and report why it failed, if it did.

    Args:
        secret: The shared webhook secret.
        body: Raw request body bytes.
        provided_signature: Value of the X-Hub-Signature-256 header.

    Returns:
        SignatureVerification with ``valid`` set, and a reason code when
        verification failed.
    """
    if not provided_signature:
        return SignatureVerification(
            valid=False,
            reason=SignatureFailure.MISSING_SIGNATURE,
        )

    expected = sign(secret, body).encode("ascii")
    try:
        provided = provided_signature.strip().encode("ascii")
    except UnicodeEncodeError:
        # A real hex digest is always ASCII.
        provided = b""

    if hmac.compare_digest(expected, provided):
        return SignatureVerification(valid=True)

    return SignatureVerification(
        valid=False,
        reason=SignatureFailure.INVALID_SIGNATURE,
    )


def verify_delivery(secret: str, delivery: RawDelivery) -> VerifiedDelivery:
    """Verify a raw delivery using its X-Hub-Signature-256 header.

    Args:
        secret: The shared webhook secret.
        delivery: The raw delivery to verify.

    Returns:
        VerifiedDelivery wrapping the delivery and the verification result.
    """
    verification = check_signature(
        secret,
        delivery.body,
        delivery.header(SIGNATURE_HEADER),
    )
    if not verification.valid:
        logger.warning(
            "Webhook signature verification failed",
            extra={
                "reason": verification.reason.value,
                "body_length": len(delivery.body),
            },
        )
    return VerifiedDelivery(delivery=delivery, verification=verification)


def authenticate(secret: str, delivery: RawDelivery) -> VerifiedDelivery:
    """Verify a raw delivery and refuse it if the signature does not hold.

    Raises:
        AuthenticationError: If the signature is missing or invalid.
    """
    verified = verify_delivery(secret, delivery)
    if not verified.is_verified:
        raise AuthenticationError(verified.verification.reason)
    return verified
