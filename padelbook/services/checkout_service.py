import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from padelbook.core.config import Settings
from padelbook.core.errors import GatewayError, PersistenceError, ValidationError
from padelbook.gateways.lomi import json_amount
from padelbook.models.payment import Payment, PaymentMethod
from padelbook.models.reservation import Reservation, ReservationStatus
from padelbook.repositories.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/payment/success"
CANCEL_PATH = "/payment/cancel"


@dataclass
class CheckoutSession:
    id: Optional[str]
    payment_url: str
    simulated: bool = False


class CheckoutService:
    """Turns a pending online payment into a URL the browser is redirected to.

    In sandbox mode no remote call is made: the URL points at the in-app
    `/payment-simulation` page with amount, currency and reservation id in the
    query string. Otherwise the checkout proxy function is called over HTTP and
    its `checkout_url` is used.
    """

    def __init__(self, settings: Settings, payment_repo: PaymentRepository, client: Optional[httpx.Client] = None):
        self.settings = settings
        self.payment_repo = payment_repo
        self.client = client or httpx.Client(timeout=30.0)

    def start_checkout(
        self,
        reservation: Reservation,
        payment: Payment,
        customer_email: Optional[str] = None,
        success_path: str = SUCCESS_PATH,
        cancel_path: str = CANCEL_PATH,
    ) -> CheckoutSession:
        if payment.method is not PaymentMethod.ONLINE:
            raise ValidationError("Only online payments go through checkout.")
        if reservation.status is not ReservationStatus.PENDING:
            raise ValidationError("Only pending reservations can be paid.")

        if self.settings.payments_sandbox:
            session = self._simulated_session(payment)
        else:
            session = self._live_session(payment, customer_email, success_path, cancel_path)

        try:
            self.payment_repo.attach_session(payment.id, self.settings.payment_provider, session.id, session.payment_url)
        except PersistenceError:
            # the webhook keys on the reservation id, so the redirect can still go ahead
            logger.exception("Could not store checkout session %s on payment %s", session.id, payment.id)
        else:
            payment.provider = self.settings.payment_provider
            payment.provider_session_id = session.id
            payment.payment_url = session.payment_url
        logger.info(
            "Checkout session %s for reservation %s (%s)",
            session.id, reservation.id, "simulated" if session.simulated else "live",
        )
        return session

    def _simulated_session(self, payment: Payment) -> CheckoutSession:
        query = urlencode({
            "amount": json_amount(payment.amount),
            "currency": payment.currency,
            "reservationId": payment.reservation_id,
        })
        return CheckoutSession(
            id=f"sim_{secrets.token_hex(6)}",
            payment_url=f"{self.settings.app_base_url}/payment-simulation?{query}",
            simulated=True,
        )

    def _live_session(self, payment: Payment, customer_email, success_path, cancel_path) -> CheckoutSession:
        body = {
            "amount": json_amount(payment.amount),
            "currencyCode": payment.currency,
            "reservationId": str(payment.reservation_id),
            "successUrlPath": success_path,
            "cancelUrlPath": cancel_path,
        }
        if customer_email:
            body["userEmail"] = customer_email
        try:
            response = self.client.post(self.settings.checkout_function_url, json=body)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Checkout service unreachable: {exc}", status_code=502) from exc

        try:
            data = response.json()
        except ValueError:
            data = {"error": response.text}
        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise GatewayError(
                message or f"Failed to create payment session: {response.status_code}",
                status_code=response.status_code,
                details=data.get("details") if isinstance(data, dict) else data,
            )
        checkout_url = data.get("checkout_url") if isinstance(data, dict) else None
        if not checkout_url:
            raise GatewayError("Payment session response has no checkout_url", status_code=502, details=data)
        return CheckoutSession(id=data.get("session_id"), payment_url=checkout_url)
