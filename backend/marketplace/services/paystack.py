"""
Paystack integration helpers: webhook signatures and checkout payloads.
"""
import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import PaymentIntent


logger = get_logger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"
PLACEHOLDER_EMAIL = "no-email@marketplace.invalid"


@dataclass
class CheckoutPayload:
    """Everything a client needs to open the Paystack checkout."""
    public_key: str
    reference: str
    amount_minor: int
    currency: str
    email: str
    channels: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: Optional[bytes], signature: Optional[str], secret: Optional[str] = None) -> bool:
    """
    Verify a webhook signature in constant time.

    A missing body, signature or configured secret always fails.
    """
    secret = settings.paystack_secret_key if secret is None else secret
    if not secret:
        logger.warning("PAYSTACK_SECRET_KEY is not configured; rejecting webhook")
        return False
    if not signature or raw_body is None:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def build_channels(currency: str) -> Optional[List[str]]:
    # Mobile money first for Ghana
    if currency.upper() == "GHS":
        return ["mobile_money", "card"]
    return None


def build_checkout_payload(
    intent: PaymentIntent,
    email: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
) -> CheckoutPayload:
    if not email:
        logger.warning(f"Payment intent {intent.provider_ref} has no payer email; using placeholder")
    return CheckoutPayload(
        public_key=settings.paystack_public_key,
        reference=intent.provider_ref,
        amount_minor=intent.amount_minor,
        currency=intent.currency,
        email=email or PLACEHOLDER_EMAIL,
        channels=build_channels(intent.currency),
        metadata=metadata or {},
    )
