"""
Webhook signature validation - verify incoming Stripe deliveries are authentic.

Two trust modes:
- VERIFIED: secret and Stripe-Signature header both present. The header
  (t=<timestamp>,v1=<hex hmac-sha256>) is checked by the Stripe SDK with a
  constant-time comparison and a timestamp tolerance.
- UNVERIFIED: either is missing. The body is parsed as-is. Intended for
  local/manual testing only - callers must treat the result as untrusted.
"""
import hashlib
import hmac
import json
import logging
import time
from enum import Enum
from typing import Optional

import stripe

from payrelay.schemas.webhook_events import VerifiedEvent
from payrelay.utils.errors import MalformedPayload, SignatureMismatch

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
DEFAULT_TOLERANCE_SECONDS = 300


class TrustMode(str, Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


def resolve_trust_mode(secret: Optional[str], signature: Optional[str]) -> TrustMode:
    """VERIFIED only when both a secret and a signature header are present."""
    if secret and signature:
        return TrustMode.VERIFIED
    return TrustMode.UNVERIFIED


def _decode_body(raw_body: bytes) -> str:
    try:
        return raw_body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayload(f"Body is not valid UTF-8: {e}") from e


def parse_event(body: str) -> VerifiedEvent:
    """Parse a JSON event body. Raises MalformedPayload."""
    try:
        event = json.loads(body)
    except ValueError as e:
        raise MalformedPayload(f"Invalid JSON payload: {e}") from e
    if not isinstance(event, dict):
        raise MalformedPayload("Invalid payload: expected a JSON object")
    return VerifiedEvent.from_event(event)


def verify_event(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    trust_mode: TrustMode,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> VerifiedEvent:
    """
    Turn a raw delivery into a VerifiedEvent.

    The signature is checked before the body is parsed, so a bad signature
    (including one sent with a body that is not UTF-8) is always reported as
    SignatureMismatch. MalformedPayload is raised only for bodies that
    passed (or skipped) verification and are not a UTF-8 JSON object.
    """
    if trust_mode is TrustMode.VERIFIED:
        if not secret or not signature_header:
            raise SignatureMismatch("Verified mode requires a secret and a signature header")
        try:
            # Stripe signs the UTF-8 text of the event; other bytes cannot match
            signed_text = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureMismatch(f"No signatures found matching the payload: {e}") from e
        try:
            stripe.WebhookSignature.verify_header(signed_text, signature_header, secret, tolerance)
        except stripe.SignatureVerificationError as e:
            raise SignatureMismatch(str(e)) from e

    return parse_event(_decode_body(raw_body))


def sign_payload(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for payload (for tests and local simulation)."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"
