"""Inbound gateway callbacks.

Only POST is accepted. The signature over the raw body is checked before the
body is even parsed; a `payment.success` event carrying a reservation id
confirms that reservation, every other event type is acknowledged and ignored.
"""
import logging

from padelbook.core.errors import AuthError, PersistenceError, ValidationError
from padelbook.functions.http import FunctionRequest, FunctionResponse
from padelbook.gateways.base import PaymentGateway
from padelbook.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def handle(request: FunctionRequest, gateway: PaymentGateway, payment_service: PaymentService) -> FunctionResponse:
    if request.method != "POST":
        return FunctionResponse.text("Method not allowed", 405)

    try:
        event = gateway.parse_webhook(request.body, request.headers)
    except AuthError:
        logger.warning("Webhook rejected: invalid signature")
        return FunctionResponse.text("Invalid signature", 401)
    except ValidationError:
        logger.warning("Webhook rejected: unreadable payload")
        return FunctionResponse.text("Bad payload", 400)

    if not (event.is_payment_success and event.reservation_id):
        logger.info("Webhook event %r ignored", event.type)
        return FunctionResponse.text("OK", 200)

    try:
        reservation_id = int(event.reservation_id)
    except ValueError:
        return FunctionResponse.text("Bad payload", 400)

    try:
        payment_service.record_success(reservation_id)
    except PersistenceError as exc:
        logger.error("DB update error for reservation %s: %s", reservation_id, exc)
        return FunctionResponse.text("DB error", 500)
    return FunctionResponse.text("OK", 200)
