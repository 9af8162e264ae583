"""
Payment gateway adapter over the Stripe SDK.

Implements:
- Payment intent creation (circuit breaker protected)
- Webhook signature verification and event decoding
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import stripe
from pydantic import BaseModel

from profast.app.core.config import settings
from profast.app.core.exceptions import SignatureError, UpstreamError
from profast.app.core.reliability import CircuitBreaker, CircuitOpenError, gateway_circuit_breaker

logger = logging.getLogger("profast.payments")


class PaymentIntentResult(BaseModel):
    """Client-facing result of creating a payment intent."""
    payment_intent_id: str
    client_secret: str


class GatewayEvent(BaseModel):
    """Verified, decoded webhook event."""
    id: str
    type: str
    data_object: Dict[str, Any] = {}
    payload: Dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GatewayEvent":
        return cls(
            id=payload["id"],
            type=payload["type"],
            data_object=(payload.get("data") or {}).get("object") or {},
            payload=payload,
        )


class StripePaymentGateway:
    """
    Wrapper for the Stripe API.

    Gateway failures surface as UpstreamError; no call is retried here.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        circuit_breaker: CircuitBreaker = gateway_circuit_breaker,
        tolerance: Optional[int] = None,
    ):
        self.api_key = api_key or settings.stripe_secret_key
        self.circuit_breaker = circuit_breaker
        self.tolerance = tolerance or settings.stripe_webhook_tolerance_seconds

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
    ) -> PaymentIntentResult:
        """
        Create a payment intent.

        Args:
            amount: Amount in the currency's minor unit (e.g. cents)
            currency: ISO currency code
            metadata: Key/value pairs echoed back in webhook events

        Returns:
            Intent id and client secret for the client-side confirmation
        """
        try:
            intent = await self.circuit_breaker.call(
                asyncio.to_thread,
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except CircuitOpenError as e:
            raise UpstreamError(str(e))
        except stripe.StripeError as e:
            logger.error("Payment intent creation failed", extra={"error": str(e), "metadata": metadata})
            raise UpstreamError("Payment gateway rejected the request", details={"reason": str(e)})

        logger.info("Payment intent created", extra={"payment_intent_id": intent.id, "amount": amount})
        return PaymentIntentResult(payment_intent_id=intent.id, client_secret=intent.client_secret)

    def construct_event(self, payload: bytes, signature: Optional[str], secret: str) -> GatewayEvent:
        """
        Verify webhook signature and decode the event.

        Args:
            payload: Raw request body as bytes
            signature: Stripe-Signature header value
            secret: Webhook signing secret

        Raises:
            SignatureError: If the signature or payload is invalid
        """
        if not signature:
            raise SignatureError("Missing webhook signature")

        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SignatureError(f"Malformed webhook payload: {e}")

        try:
            stripe.WebhookSignature.verify_header(payload, signature, secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning("Webhook signature verification failed", extra={"error": str(e)})
            raise SignatureError(f"Invalid webhook signature: {e}")

        try:
            return GatewayEvent.from_payload(json.loads(payload))
        except (ValueError, KeyError, TypeError) as e:
            raise SignatureError(f"Malformed webhook payload: {e}")


payment_gateway = StripePaymentGateway()
