from __future__ import annotations

import logging

import stripe

from cleancar.application.exceptions import ExternalDependencyError
from cleancar.application.ports.payments import IntentStatus, PaymentEvent, PaymentIntent, PaymentProcessorPort
from cleancar.core.config import settings

STRIPE_STATUSES: dict[str, IntentStatus] = {
    "succeeded": IntentStatus.succeeded,
    "canceled": IntentStatus.canceled,
    "processing": IntentStatus.processing,
    "requires_capture": IntentStatus.processing,
    "requires_payment_method": IntentStatus.pending,
    "requires_confirmation": IntentStatus.pending,
    "requires_action": IntentStatus.pending,
}


class StripePaymentProcessor(PaymentProcessorPort):
    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None) -> None:
        self._api_key = api_key or settings.STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self._logger = logging.getLogger(__name__)

        if not self._api_key:
            raise ValueError("STRIPE_SECRET_KEY is required for Stripe payments")

    def create_intent(self, amount: int, currency: str, metadata: dict[str, str], description: str | None = None) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=amount,
                currency=currency,
                metadata=metadata,
                description=description,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            self._logger.error("Failed to create Stripe payment intent", extra={"error": str(e)})
            raise ExternalDependencyError(f"Stripe API error: {e}") from e

        self._logger.info("Created Stripe payment intent", extra={"external_id": intent.id})
        return _to_intent(intent)

    def get_intent_status(self, external_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(external_id, api_key=self._api_key)
        except stripe.StripeError as e:
            self._logger.error("Failed to retrieve Stripe payment intent", extra={"external_id": external_id, "error": str(e)})
            raise ExternalDependencyError(f"Stripe API error: {e}") from e
        return _to_intent(intent)

    def parse_webhook(self, payload: bytes, signature: str | None) -> PaymentEvent | None:
        if not signature or not self._webhook_secret:
            self._logger.error("Missing Stripe signature or webhook secret")
            return None
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            self._logger.warning("Stripe webhook verification failed", extra={"error": str(e)})
            return None

        obj = event["data"]["object"]
        return PaymentEvent(
            event_id=event["id"],
            event_type=event["type"],
            external_id=obj.get("id"),
            data=dict(obj.get("metadata") or {}),
        )


def _to_intent(intent: stripe.PaymentIntent) -> PaymentIntent:
    status = STRIPE_STATUSES.get(intent.status, IntentStatus.pending)
    error = intent.last_payment_error
    failure_reason = getattr(error, "message", None) if error else None
    # A declined attempt puts the intent back into requires_payment_method.
    if intent.status == "requires_payment_method" and error:
        status = IntentStatus.failed
    return PaymentIntent(
        external_id=intent.id,
        client_secret=intent.client_secret,
        status=status,
        failure_reason=failure_reason,
    )
