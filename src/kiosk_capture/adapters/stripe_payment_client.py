"""Stripe checkout and webhook adapter."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from uuid import UUID

import stripe

from kiosk_capture.domain.payments import CheckoutRequest, CheckoutSession, PaymentEvent
from kiosk_capture.errors import UpstreamUnavailableError, WebhookSignatureError
from kiosk_capture.services.payments import PaymentClient

_logger = logging.getLogger(__name__)


@dataclass
class StripePaymentClient(PaymentClient):
    """Hosted checkout via the Stripe SDK; blocking calls run in a thread."""

    api_key: str
    webhook_secret: str
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a Checkout Session carrying the session metadata."""
        params: dict[str, object] = {
            "mode": "payment",
            "payment_method_types": self.payment_method_types,
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {"name": item.name},
                        "unit_amount": item.amount,
                    },
                    "quantity": 1,
                }
                for item in request.line_items
            ],
            "customer_creation": "always",
            "metadata": request.metadata,
            "payment_intent_data": {"metadata": request.metadata},
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self.api_key, **params
            )
        except stripe.StripeError as exc:
            _logger.error(
                "Stripe checkout failed: session=%s error=%s",
                request.session_id,
                type(exc).__name__,
            )
            raise UpstreamUnavailableError("Payment provider unavailable") from exc
        return CheckoutSession(checkout_id=session.id, url=session.url)

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent:
        """Verify the signature header and reduce the event to what we use."""
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            _logger.warning("Stripe webhook signature invalid")
            raise WebhookSignatureError() from exc
        except ValueError as exc:
            raise WebhookSignatureError("Malformed webhook payload") from exc
        return event_from_payload(json.loads(payload))


def event_from_payload(event: dict[str, object]) -> PaymentEvent:
    """Map a Stripe event body onto a PaymentEvent."""
    obj = (event.get("data") or {}).get("object") or {}
    object_kind = obj.get("object")
    metadata = obj.get("metadata") or {}
    customer_details = obj.get("customer_details") or {}
    last_error = obj.get("last_payment_error") or {}
    is_checkout = object_kind == "checkout.session"
    return PaymentEvent(
        event_id=str(event["id"]),
        event_type=str(event.get("type", "")),
        session_id=_parse_uuid(metadata.get("session_id")),
        object_kind=object_kind,
        mode=obj.get("mode"),
        payment_status=obj.get("payment_status"),
        checkout_id=obj.get("id") if is_checkout else None,
        payment_intent=obj.get("payment_intent") if is_checkout else obj.get("id"),
        customer_email=customer_details.get("email") or obj.get("customer_email"),
        failure_message=last_error.get("message"),
    )


def _parse_uuid(value: object) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None
