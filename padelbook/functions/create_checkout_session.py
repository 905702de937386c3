"""Checkout proxy: holds the gateway credentials and mints hosted checkout URLs.

Expects a JSON body with `amount`, `currencyCode` and `reservationId`, plus the
optional `userEmail`, `userName`, `successUrlPath`, `cancelUrlPath`, `title`
and `public_description`. Answers `{"checkout_url": ..., "session_id": ...}`.
"""
import logging
from decimal import Decimal, InvalidOperation

from padelbook.core.config import Settings
from padelbook.core.errors import GatewayError
from padelbook.functions.http import CORS_HEADERS, FunctionRequest, FunctionResponse
from padelbook.gateways.base import CheckoutRequest, PaymentGateway

logger = logging.getLogger(__name__)


def handle(request: FunctionRequest, gateway: PaymentGateway, settings: Settings) -> FunctionResponse:
    if request.method == "OPTIONS":
        return FunctionResponse.text("ok", 200, CORS_HEADERS)
    if request.method != "POST":
        return FunctionResponse.json({"error": "Method not allowed"}, 405, CORS_HEADERS)

    try:
        params = request.json()
    except (UnicodeDecodeError, ValueError):
        return FunctionResponse.json({"error": "Invalid JSON body"}, 400, CORS_HEADERS)
    if not isinstance(params, dict):
        return FunctionResponse.json({"error": "Invalid JSON body"}, 400, CORS_HEADERS)

    amount = params.get("amount")
    currency = params.get("currencyCode")
    reservation_id = params.get("reservationId")
    if not amount or not currency or not reservation_id:
        logger.error("Missing checkout fields: amount=%s currency=%s reservation=%s", amount, currency, reservation_id)
        return FunctionResponse.json(
            {"error": "Missing required fields: amount, currencyCode, or reservationId"}, 400, CORS_HEADERS
        )
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        return FunctionResponse.json({"error": "amount must be a number"}, 400, CORS_HEADERS)
    if amount <= 0:
        return FunctionResponse.json({"error": "amount must be positive"}, 400, CORS_HEADERS)

    base = settings.app_base_url
    success_path = params.get("successUrlPath") or "/payment/success"
    cancel_path = params.get("cancelUrlPath") or "/payment/cancel"
    checkout = CheckoutRequest(
        amount=amount,
        currency=str(currency).upper(),
        reservation_id=str(reservation_id),
        success_url=f"{base}{success_path}?reservation_id={reservation_id}",
        cancel_url=f"{base}{cancel_path}?reservation_id={reservation_id}",
        customer_email=params.get("userEmail"),
        customer_name=params.get("userName"),
        title=params.get("title"),
        description=params.get("public_description"),
    )
    try:
        session = gateway.create_session(checkout)
    except GatewayError as exc:
        logger.error("Checkout session for reservation %s failed: %s", reservation_id, exc)
        return FunctionResponse.json(
            {"error": str(exc), "details": exc.details}, exc.status_code or 500, CORS_HEADERS
        )
    return FunctionResponse.json({"checkout_url": session.checkout_url, "session_id": session.session_id},
                                 200, CORS_HEADERS)
