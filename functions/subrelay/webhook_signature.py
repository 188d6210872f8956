"""
Webhook signature verification.

Stripe signs the exact bytes it sends. The payload must reach this module
untouched: any JSON parse and re-encode before verification changes the bytes
and invalidates the signature.
"""

import json
import logging
from typing import Optional

import stripe

from subrelay.constants import WEBHOOK_TOLERANCE_SECONDS
from subrelay.errors import InvalidPayloadError, SignatureInvalidError, SignatureMissingError
from subrelay.models import VerifiedEvent

logger = logging.getLogger(__name__)


def verify_webhook(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
) -> VerifiedEvent:
    """Verify a Stripe webhook payload and parse it into a VerifiedEvent.

    Args:
        raw_body: Request body bytes exactly as received
        signature_header: Value of the Stripe-Signature header
        secret: Webhook signing secret (whsec_...)
        tolerance: Maximum age of the signed timestamp in seconds

    Raises:
        SignatureMissingError: header absent or secret not configured
        SignatureInvalidError: signature does not match the payload
        InvalidPayloadError: payload is signed but is not an event object
    """
    if not secret:
        logger.error("Webhook signing secret not configured")
        raise SignatureMissingError("Webhook secret is required")
    if not signature_header:
        logger.warning("Missing Stripe signature")
        raise SignatureMissingError()

    try:
        payload = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Webhook payload is not valid UTF-8")
        raise SignatureInvalidError()

    # Constant-time HMAC comparison with timestamp tolerance
    try:
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Invalid Stripe signature: {e}")
        raise SignatureInvalidError()

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Signed webhook payload is not valid JSON")
        raise InvalidPayloadError()

    if not isinstance(data, dict):
        raise InvalidPayloadError()

    event_type = data.get("type")
    event_data = data.get("data")
    if not isinstance(event_type, str) or not isinstance(event_data, dict):
        logger.warning("Signed webhook payload has no type/data")
        raise InvalidPayloadError()

    return VerifiedEvent(
        id=str(data.get("id") or ""),
        type=event_type,
        data=event_data,
        created=data.get("created"),
        livemode=bool(data.get("livemode", False)),
    )
