import json
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from fakes import FakeCourtRepo, FakePaymentRepo, FakeReservationRepo
from padelbook.core import security
from padelbook.core.config import Settings
from padelbook.core.errors import GatewayError, PersistenceError
from padelbook.functions import create_checkout_session, payment_webhook
from padelbook.functions.http import FunctionRequest
from padelbook.gateways.base import GatewaySession
from padelbook.gateways.lomi import LomiGateway
from padelbook.models.court import Court
from padelbook.models.payment import PaymentMethod, PaymentStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.services.payment_service import PaymentService
from padelbook.services.reservation_service import ReservationService

SECRET = "whsec_test"
SETTINGS = Settings(app_base_url="https://padel.example.com/", lomi_webhook_secret=SECRET, lomi_api_key="lomi_sk")


def post(payload, headers=None, method="POST"):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return FunctionRequest(method, headers or {}, body)


# create-checkout-session

def test_options_preflight():
    response = create_checkout_session.handle(post(b"", method="OPTIONS"), MagicMock(), SETTINGS)
    assert response.status == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_checkout_rejects_get():
    response = create_checkout_session.handle(post(b"", method="GET"), MagicMock(), SETTINGS)
    assert response.status == 405


@pytest.mark.parametrize("payload", [
    {"currencyCode": "XOF", "reservationId": "42"},
    {"amount": 5000, "reservationId": "42"},
    {"amount": 5000, "currencyCode": "XOF"},
])
def test_checkout_missing_fields(payload):
    gateway = MagicMock()
    response = create_checkout_session.handle(post(payload), gateway, SETTINGS)
    assert response.status == 400
    gateway.create_session.assert_not_called()


def test_checkout_bad_json():
    response = create_checkout_session.handle(post(b"{oops"), MagicMock(), SETTINGS)
    assert response.status == 400


def test_checkout_builds_return_urls():
    gateway = MagicMock()
    gateway.create_session.return_value = GatewaySession(checkout_url="https://pay/cs_1", session_id="cs_1")

    response = create_checkout_session.handle(post({
        "amount": 5000, "currencyCode": "xof", "reservationId": "42",
        "successUrlPath": "/payment/success", "cancelUrlPath": "/payment/cancel", "userEmail": "ana@example.com",
    }), gateway, SETTINGS)

    assert response.status == 200
    assert response.json_body() == {"checkout_url": "https://pay/cs_1", "session_id": "cs_1"}
    request = gateway.create_session.call_args[0][0]
    assert request.amount == Decimal("5000")
    assert request.currency == "XOF"
    assert request.success_url == "https://padel.example.com/payment/success?reservation_id=42"
    assert request.cancel_url == "https://padel.example.com/payment/cancel?reservation_id=42"
    assert request.customer_email == "ana@example.com"


def test_checkout_gateway_error_status():
    gateway = MagicMock()
    gateway.create_session.side_effect = GatewayError("refused", status_code=422, details={"field": "amount"})
    response = create_checkout_session.handle(post({"amount": 10, "currencyCode": "XOF", "reservationId": "1"}),
                                              gateway, SETTINGS)
    assert response.status == 422
    assert response.json_body() == {"error": "refused", "details": {"field": "amount"}}


def test_checkout_without_api_key_is_500():
    settings = Settings(lomi_api_key=None)
    response = create_checkout_session.handle(post({"amount": 10, "currencyCode": "XOF", "reservationId": "1"}),
                                              LomiGateway(settings), settings)
    assert response.status == 500


def test_checkout_through_lomi_transport():
    def handler(request):
        body = json.loads(request.content)
        assert body["metadata"]["reservationId"] == "42"
        return httpx.Response(200, json={"data": {"url": "https://pay.lomi.africa/x", "id": "cs_x"}})

    gateway = LomiGateway(SETTINGS, httpx.Client(transport=httpx.MockTransport(handler)))
    response = create_checkout_session.handle(post({"amount": 5000, "currencyCode": "XOF", "reservationId": 42}),
                                              gateway, SETTINGS)
    assert response.status == 200
    assert response.json_body()["checkout_url"] == "https://pay.lomi.africa/x"


# payment-webhook

class WebhookFixture:
    def __init__(self):
        self.court_repo = FakeCourtRepo(Court(name="Central", price_per_hour=Decimal("5000")))
        self.reservation_repo = FakeReservationRepo(self.court_repo)
        self.payment_repo = FakePaymentRepo()
        self.reservation_service = ReservationService(self.court_repo, self.reservation_repo, self.payment_repo)
        self.payment_service = PaymentService(self.payment_repo, self.reservation_service)
        self.gateway = LomiGateway(SETTINGS)
        start = datetime.combine(date.today() + timedelta(days=1), datetime.min.time()).replace(hour=14)
        self.reservation = self.reservation_service.create_reservation(
            1, 7, start, start + timedelta(hours=1), PaymentMethod.ONLINE
        )

    def deliver(self, payload, signature=None, method="POST"):
        body = json.dumps(payload).encode()
        if signature is None:
            signature = security.sign_payload(body, SECRET)
        return payment_webhook.handle(post(body, {"Lomi-Signature": signature}, method),
                                      self.gateway, self.payment_service)

    def status(self):
        return self.reservation_repo.find_by_id(self.reservation.id).status

    def success_event(self, reservation_id=None):
        rid = self.reservation.id if reservation_id is None else reservation_id
        return {"type": "payment.success", "data": {"metadata": {"reservationId": str(rid)}}}


@pytest.fixture
def hook():
    return WebhookFixture()


def test_valid_signature_confirms_reservation(hook):
    response = hook.deliver(hook.success_event())
    assert response.status == 200
    assert hook.status() is ReservationStatus.CONFIRMED
    assert hook.payment_repo.find_by_reservation(hook.reservation.id).status is PaymentStatus.COMPLETED


def test_wrong_signature_is_rejected_without_update(hook):
    response = hook.deliver(hook.success_event(), signature="deadbeef")
    assert response.status == 401
    assert hook.status() is ReservationStatus.PENDING
    assert hook.payment_repo.find_by_reservation(hook.reservation.id).status is PaymentStatus.PENDING


def test_same_event_twice_stays_confirmed(hook):
    assert hook.deliver(hook.success_event()).status == 200
    assert hook.deliver(hook.success_event()).status == 200
    assert hook.status() is ReservationStatus.CONFIRMED


def test_other_event_types_are_ignored(hook):
    response = hook.deliver({"type": "payment.failed", "data": {"metadata": {"reservationId": "1"}}})
    assert response.status == 200
    assert hook.status() is ReservationStatus.PENDING


def test_success_without_reservation_id_is_ignored(hook):
    response = hook.deliver({"type": "payment.success", "data": {}})
    assert response.status == 200
    assert hook.status() is ReservationStatus.PENDING


def test_only_post_is_accepted(hook):
    response = hook.deliver(hook.success_event(), method="GET")
    assert response.status == 405
    assert hook.status() is ReservationStatus.PENDING


def test_unparseable_body_is_400(hook):
    body = b"{not json"
    response = payment_webhook.handle(post(body, {"lomi-signature": security.sign_payload(body, SECRET)}),
                                      hook.gateway, hook.payment_service)
    assert response.status == 400


def test_non_numeric_reservation_id_is_400(hook):
    response = hook.deliver(hook.success_event(reservation_id="abc"))
    assert response.status == 400


def test_cancelled_reservation_is_not_revived(hook):
    hook.reservation_service.cancel(hook.reservation.id, 7, is_admin=False)
    response = hook.deliver(hook.success_event())
    assert response.status == 200
    assert hook.status() is ReservationStatus.CANCELLED


def test_database_failure_is_500(hook):
    payment_service = MagicMock()
    payment_service.record_success.side_effect = PersistenceError("connection lost")
    body = json.dumps(hook.success_event()).encode()
    request = post(body, {"lomi-signature": security.sign_payload(body, SECRET)})
    response = payment_webhook.handle(request, hook.gateway, payment_service)
    assert response.status == 500
    assert response.body == b"DB error"
