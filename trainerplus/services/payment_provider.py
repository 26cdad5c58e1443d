# -*- coding: utf-8 -*-
"""
Stripe gateway.

Thin wrapper around the two provider calls the reconciler needs: opening a
hosted checkout session and authenticating an incoming webhook. Provider
exceptions never escape this module; they are re-raised as ``CoreError``.
"""
import json
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe

from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.structured_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOLERANCE = 300


@dataclass
class CheckoutSession:
    id: str
    url: str
    payment_intent: Optional[str] = None


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeProvider:

    def __init__(self, secret_key: str, webhook_secret: str, tolerance: int = DEFAULT_TOLERANCE):
        self.secret_key = (secret_key or "").strip()
        self.webhook_secret = (webhook_secret or "").strip()
        self.tolerance = tolerance

    @classmethod
    def from_config(cls, config) -> "StripeProvider":
        return cls(
            config.get("STRIPE_SECRET_KEY", ""),
            config.get("STRIPE_WEBHOOK_SECRET", ""),
            int(config.get("STRIPE_WEBHOOK_TOLERANCE", DEFAULT_TOLERANCE)),
        )

    def create_checkout(self,
                        amount,
                        currency: str,
                        product_name: str,
                        success_url: str,
                        cancel_url: str,
                        metadata: Dict[str, str],
                        customer_email: Optional[str] = None) -> CheckoutSession:
        """Open a one-off hosted checkout for ``amount`` in ``currency``."""
        if not self.secret_key:
            raise CoreError(ErrorKind.PROVIDER_ERROR, "STRIPE_SECRET_KEY missing")
        stripe.api_key = self.secret_key

        params: Dict[str, Any] = dict(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency.lower(),
                    "unit_amount": to_minor_units(amount),
                    "product_data": {"name": product_name},
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            msg = getattr(e, "user_message", None) or str(e)
            logger.log_payment_event("checkout_create", success=False, error=msg)
            raise CoreError(ErrorKind.PROVIDER_ERROR, f"Stripe error: {msg}")

        return CheckoutSession(
            id=session.id,
            url=session.url,
            payment_intent=getattr(session, "payment_intent", None),
        )

    def verify_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Authenticate a webhook body against the shared secret and decode it.

        Raises UNVERIFIED for a missing or bad signature and BAD_REQUEST for a
        body that is not a JSON object or lacks a ``data.object`` mapping.
        """
        if not self.webhook_secret:
            raise CoreError(ErrorKind.UNVERIFIED, "webhook secret not configured")
        if not signature_header:
            raise CoreError(ErrorKind.UNVERIFIED, "missing signature header")

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature_header, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError:
            logger.log_security_event("webhook_signature_invalid", severity="warning")
            raise CoreError(ErrorKind.UNVERIFIED, "invalid signature")

        try:
            event = json.loads(payload)
        except ValueError:
            raise CoreError(ErrorKind.BAD_REQUEST, "invalid payload")
        if not isinstance(event, dict) or "type" not in event:
            raise CoreError(ErrorKind.BAD_REQUEST, "invalid payload")
        data = event.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
            raise CoreError(ErrorKind.BAD_REQUEST, "event data.object must be an object")
        return event
