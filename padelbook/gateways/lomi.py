import json
import logging
from decimal import Decimal
from typing import Mapping, Optional

import httpx

from padelbook.core import security
from padelbook.core.config import Settings
from padelbook.core.errors import AuthError, GatewayError, ValidationError
from padelbook.gateways.base import CheckoutRequest, GatewaySession, PaymentGateway, WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "lomi-signature"


def json_amount(amount: Decimal):
    """Whole amounts travel as integers, others as floats."""
    amount = Decimal(str(amount))
    return int(amount) if amount == amount.to_integral_value() else float(amount)


class LomiGateway(PaymentGateway):
    name = "lomi"
    signature_header = SIGNATURE_HEADER

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None):
        self.settings = settings
        self.client = client or httpx.Client(timeout=15.0)

    def build_payload(self, request: CheckoutRequest) -> dict:
        metadata = {"reservationId": str(request.reservation_id), "source": "padelbook"}
        metadata.update({k: str(v) for k, v in request.metadata.items()})
        payload = {
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "allowed_providers": list(self.settings.lomi_allowed_providers),
            "amount": json_amount(request.amount),
            "currency_code": request.currency,
            "metadata": metadata,
            "expiration_minutes": self.settings.checkout_expiration_minutes,
            "title": request.title or f"Padel reservation {request.reservation_id}",
            "public_description": request.description
            or f"Payment for padel court reservation {request.reservation_id}",
        }
        if request.customer_email:
            payload["customer_email"] = request.customer_email
        if request.customer_name:
            payload["customer_name"] = request.customer_name
        if self.settings.lomi_product_id:
            payload["product_id"] = self.settings.lomi_product_id
        return payload

    def create_session(self, request: CheckoutRequest) -> GatewaySession:
        if not self.settings.lomi_api_key:
            raise GatewayError("LOMI API key not configured", status_code=500)
        try:
            response = self.client.post(
                f"{self.settings.lomi_api_url}/checkout-sessions",
                json=self.build_payload(request),
                headers={"X-API-Key": self.settings.lomi_api_key},
            )
        except httpx.HTTPError as exc:
            raise GatewayError(f"lomi. unreachable: {exc}", status_code=502) from exc

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        data = body.get("data") if isinstance(body, dict) else None
        url = data.get("url") if isinstance(data, dict) else None
        if response.is_error or not url:
            logger.error("lomi. checkout session refused (%s): %s", response.status_code, body)
            details = body.get("error", body) if isinstance(body, dict) else body
            status = response.status_code if response.is_error else 502
            raise GatewayError("Failed to create lomi. checkout session", status_code=status, details=details)

        session_id = data.get("checkout_session_id") or data.get("id")
        logger.info("lomi. checkout session %s created for reservation %s", session_id, request.reservation_id)
        return GatewaySession(checkout_url=url, session_id=session_id, raw=body)

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        signature = headers.get(SIGNATURE_HEADER, "")
        if not security.verify_signature(body, self.settings.lomi_webhook_secret or "", signature):
            raise AuthError("Invalid signature")
        try:
            event = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValidationError("Bad payload") from exc
        if not isinstance(event, dict):
            raise ValidationError("Bad payload")
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        reservation_id = metadata.get("reservationId") or metadata.get("reservation_id")
        return WebhookEvent(
            type=str(event.get("type", "")),
            reservation_id=str(reservation_id) if reservation_id is not None else None,
            data=data,
        )
