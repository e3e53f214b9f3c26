"""
Payment gateway abstraction for Stripe and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import stripe

from bazaar_track.errors import UpstreamFailure

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert an amount in major currency units (e.g. dollars) to cents."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(Protocol):
    def create_payment_intent(self, amount: int, currency: str) -> str:
        """Create an intent for ``amount`` minor units and return its client secret."""
        ...


@dataclass
class InMemoryPaymentGateway:
    """Test double that records intents instead of calling a provider."""

    intents: list[dict] = field(default_factory=list)

    def create_payment_intent(self, amount: int, currency: str) -> str:
        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        client_secret = f"{intent_id}_secret_{uuid.uuid4().hex[:24]}"
        self.intents.append(
            {"id": intent_id, "amount": amount, "currency": currency, "client_secret": client_secret}
        )
        return client_secret


class StripePaymentGateway:
    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for StripePaymentGateway")
        self.client = stripe.StripeClient(secret_key)

    def create_payment_intent(self, amount: int, currency: str) -> str:
        try:
            intent = self.client.payment_intents.create(
                params={
                    "amount": amount,
                    "currency": currency,
                    "payment_method_types": ["card"],
                }
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe payment intent creation failed")
            raise UpstreamFailure(exc.user_message or str(exc)) from exc
        return intent.client_secret
