import json
import logging
from decimal import Decimal
from typing import Mapping

import stripe

from padelbook.core.config import Settings
from padelbook.core.errors import AuthError, GatewayError, ValidationError
from padelbook.gateways.base import PAYMENT_SUCCESS, CheckoutRequest, GatewaySession, PaymentGateway, WebhookEvent

logger = logging.getLogger(__name__)

ZERO_DECIMAL_CURRENCIES = {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf",
                           "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}


def unit_amount(amount: Decimal, currency: str) -> int:
    amount = Decimal(str(amount))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount)
    return int(amount * 100)


class StripeGateway(PaymentGateway):
    name = "stripe"
    signature_header = "stripe-signature"

    def __init__(self, settings: Settings):
        self.settings = settings

    def _configure(self) -> None:
        api_key = self.settings.stripe_api_key
        if not api_key:
            raise GatewayError("Stripe not configured. Set STRIPE_API_KEY.", status_code=500)
        if not (api_key.startswith("sk_") or api_key.startswith("rk_")):
            raise GatewayError("Invalid Stripe key format.", status_code=500)
        stripe.api_key = api_key

    def create_session(self, request: CheckoutRequest) -> GatewaySession:
        self._configure()
        metadata = {"reservation_id": str(request.reservation_id)}
        metadata.update({k: str(v) for k, v in request.metadata.items()})
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": request.currency.lower(),
                        "product_data": {"name": request.title or f"Reservation {request.reservation_id}"},
                        "unit_amount": unit_amount(request.amount, request.currency),
                    },
                    "quantity": 1,
                }],
                customer_email=request.customer_email or None,
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session refused: %s", exc)
            raise GatewayError(
                "Failed to create Stripe checkout session",
                status_code=getattr(exc, "http_status", None) or 502,
                details=str(exc),
            ) from exc
        if not session.url:
            raise GatewayError("Stripe returned no checkout URL", status_code=502)
        return GatewaySession(checkout_url=session.url, session_id=session.id)

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        secret = self.settings.stripe_webhook_secret
        if not secret:
            raise AuthError("STRIPE_WEBHOOK_SECRET not configured")
        try:
            payload = body.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                payload, headers.get(self.signature_header, ""), secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            raise AuthError("Invalid signature") from exc
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValidationError("Bad payload") from exc
        if not isinstance(event, dict):
            raise ValidationError("Bad payload")

        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        event_type = str(event.get("type", ""))
        if event_type == "checkout.session.completed" and obj.get("payment_status") in (None, "paid"):
            event_type = PAYMENT_SUCCESS
        return WebhookEvent(type=event_type, reservation_id=metadata.get("reservation_id"), data=dict(obj))
