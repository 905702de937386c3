import http.client
import json
import threading
import unittest
import urllib.parse
from datetime import date, timedelta
from decimal import Decimal

from fakes import FakeCourtRepo, FakePaymentRepo, FakeReservationRepo, FakeSessionRepo, FakeUserRepo
from padelbook.core import security
from padelbook.core.config import Settings
from padelbook.core.context import AppContext
from padelbook.gateways.lomi import LomiGateway
from padelbook.models.court import Court
from padelbook.models.payment import PaymentStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.models.user import Role, User
from padelbook.server import build_server
from padelbook.services.auth_service import AuthService
from padelbook.services.checkout_service import CheckoutService
from padelbook.services.court_service import CourtService
from padelbook.services.payment_service import PaymentService
from padelbook.services.reporting_service import ReportingService
from padelbook.services.reservation_service import ReservationService

SECRET = "whsec_system"
FORM = {"Content-type": "application/x-www-form-urlencoded"}
TOMORROW = date.today() + timedelta(days=1)


def build_context(sandbox=True, success_rate=1.0):
    settings = Settings(app_base_url="http://localhost:8000", payments_sandbox=sandbox,
                        lomi_webhook_secret=SECRET)
    court_repo = FakeCourtRepo(Court(name="Central <b>", price_per_hour=Decimal("5000")))
    user_repo = FakeUserRepo()
    payment_repo = FakePaymentRepo()
    reservation_repo = FakeReservationRepo(court_repo, user_repo, payment_repo)
    reservation_service = ReservationService(court_repo, reservation_repo, payment_repo, settings.currency)
    context = AppContext(
        settings=settings,
        gateway=LomiGateway(settings),
        auth_service=AuthService(user_repo, FakeSessionRepo()),
        court_service=CourtService(court_repo),
        reservation_service=reservation_service,
        checkout_service=CheckoutService(settings, payment_repo),
        payment_service=PaymentService(payment_repo, reservation_service, success_rate=success_rate),
        reporting_service=ReportingService(reservation_repo, court_repo, user_repo),
    )
    admin = User(email="admin@example.com", password_hash="")
    admin.set_password("Admin1234")
    user_repo.create(admin, Role.ADMIN)
    return context, reservation_repo, payment_repo


class ServerTestCase(unittest.TestCase):
    sandbox = True

    def setUp(self):
        self.context, self.reservation_repo, self.payment_repo = build_context(self.sandbox)
        self.httpd = build_server(self.context, port=0)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()
        self.conn = http.client.HTTPConnection("127.0.0.1", self.httpd.server_address[1], timeout=10)

    def tearDown(self):
        self.conn.close()
        self.httpd.shutdown()
        self.httpd.server_close()

    def request(self, method, path, params=None, cookie=None, body=None, headers=None):
        all_headers = dict(headers or {})
        if params is not None:
            body = urllib.parse.urlencode(params)
            all_headers.update(FORM)
        if cookie:
            all_headers["Cookie"] = cookie
        self.conn.request(method, path, body, all_headers)
        response = self.conn.getresponse()
        return response, response.read().decode("utf-8")

    def login(self, email, password):
        response, _ = self.request("POST", "/login", {"email": email, "password": password})
        self.assertEqual(response.status, 302)
        return response.getheader("Set-Cookie").split(";")[0]

    def register_client(self):
        response, _ = self.request("POST", "/register",
                                   {"full_name": "Ana", "email": "ana@example.com", "password": "Password1"})
        self.assertEqual(response.status, 302)
        return self.login("ana@example.com", "Password1")

    def signed_webhook(self, payload, signature=None):
        body = json.dumps(payload).encode()
        headers = {"lomi-signature": signature or security.sign_payload(body, SECRET),
                   "Content-Type": "application/json"}
        return self.request("POST", "/functions/v1/payment-webhook", body=body, headers=headers)


class SystemTest(ServerTestCase):
    def test_home_escapes_court_names(self):
        response, body = self.request("GET", "/")
        self.assertEqual(response.status, 200)
        self.assertIn("Central &lt;b&gt;", body)
        self.assertNotIn("Central <b>", body)

    def test_pages_need_a_session(self):
        response, _ = self.request("GET", "/my-reservations")
        self.assertEqual(response.status, 302)
        self.assertTrue(response.getheader("Location").startswith("/login"))

    def test_client_cannot_open_admin(self):
        cookie = self.register_client()
        response, _ = self.request("GET", "/admin", cookie=cookie)
        self.assertEqual(response.status, 403)

    def test_online_booking_flow(self):
        cookie = self.register_client()

        response, body = self.request("GET", f"/reservation/1?day={TOMORROW.isoformat()}", cookie=cookie)
        self.assertEqual(response.status, 200)
        self.assertIn("14:00-15:00", body)

        slot = f"{TOMORROW.isoformat()}T14:00"
        response, _ = self.request("POST", "/reservation/1",
                                   {"slot": slot, "hours": "1", "payment_method": "online"}, cookie=cookie)
        self.assertEqual(response.status, 302)
        location = urllib.parse.urlparse(response.getheader("Location"))
        self.assertEqual(location.path, "/payment-simulation")
        self.assertEqual(urllib.parse.parse_qs(location.query)["reservationId"], ["1"])

        response, body = self.request("GET", f"{location.path}?{location.query}", cookie=cookie)
        self.assertEqual(response.status, 200)
        self.assertIn("5000", body)

        response, _ = self.request("POST", "/payment-simulation", {"reservationId": "1"}, cookie=cookie)
        self.assertEqual(response.status, 302)
        self.assertEqual(response.getheader("Location"), "/payment/success?reservation_id=1")
        self.assertEqual(self.payment_repo.find_by_reservation(1).status, PaymentStatus.COMPLETED)

        response, _ = self.signed_webhook({"type": "payment.success", "data": {"metadata": {"reservationId": "1"}}})
        self.assertEqual(response.status, 200)
        self.assertEqual(self.reservation_repo.find_by_id(1).status, ReservationStatus.CONFIRMED)

        response, body = self.request("GET", "/my-reservations", cookie=cookie)
        self.assertEqual(response.status, 200)
        self.assertIn("confirmed", body)

    def test_declined_payment_can_be_retried(self):
        cookie = self.register_client()
        slot = f"{TOMORROW.isoformat()}T14:00"
        self.request("POST", "/reservation/1", {"slot": slot, "hours": "1", "payment_method": "online"},
                     cookie=cookie)

        self.context.payment_service.success_rate = 0.0
        response, _ = self.request("POST", "/payment-simulation", {"reservationId": "1"}, cookie=cookie)
        self.assertTrue(response.getheader("Location").startswith("/payment/cancel"))
        self.assertEqual(self.payment_repo.find_by_reservation(1).status, PaymentStatus.FAILED)

        response, body = self.request("GET", "/my-reservations", cookie=cookie)
        self.assertIn("Try again", body)
        self.assertIn("/my-reservations/pay", body)

        self.context.payment_service.success_rate = 1.0
        response, _ = self.request("POST", "/my-reservations/pay", {"id": "1"}, cookie=cookie)
        self.assertEqual(response.status, 302)
        location = urllib.parse.urlparse(response.getheader("Location"))
        self.assertEqual(location.path, "/payment-simulation")
        self.assertEqual(urllib.parse.parse_qs(location.query)["reservationId"], ["1"])

        response, _ = self.request("POST", "/payment-simulation", {"reservationId": "1"}, cookie=cookie)
        self.assertEqual(response.getheader("Location"), "/payment/success?reservation_id=1")
        attempts = sorted(self.payment_repo.for_reservation(1), key=lambda p: p.id)
        self.assertEqual([p.status for p in attempts], [PaymentStatus.FAILED, PaymentStatus.COMPLETED])
        self.assertEqual(self.reservation_repo.find_by_id(1).status, ReservationStatus.PENDING)

        response, body = self.request("GET", "/my-reservations", cookie=cookie)
        self.assertNotIn("/my-reservations/pay", body)
        response, _ = self.request("POST", "/my-reservations/pay", {"id": "1"}, cookie=cookie)
        self.assertIn("already been paid", urllib.parse.unquote(response.getheader("Location")))

    def test_on_spot_booking_confirmed_by_admin(self):
        cookie = self.register_client()
        slot = f"{TOMORROW.isoformat()}T14:00"
        response, _ = self.request("POST", "/reservation/1",
                                   {"slot": slot, "hours": "1", "payment_method": "on_spot"}, cookie=cookie)
        self.assertEqual(response.status, 302)
        self.assertTrue(response.getheader("Location").startswith("/my-reservations"))
        self.assertEqual(self.reservation_repo.find_by_id(1).total_price, Decimal("5000"))

        admin = self.login("admin@example.com", "Admin1234")
        response, _ = self.request("POST", "/admin/reservations/confirm", {"id": "1"}, cookie=admin)
        self.assertEqual(response.status, 302)
        self.assertEqual(self.reservation_repo.find_by_id(1).status, ReservationStatus.CONFIRMED)

        for page in ("/admin", "/admin/courts", "/admin/reservations", "/admin/financial?period=year"):
            response, _ = self.request("GET", page, cookie=admin)
            self.assertEqual(response.status, 200, page)

    def test_booking_without_slot_shows_error(self):
        cookie = self.register_client()
        response, body = self.request("POST", "/reservation/1", {"hours": "1", "payment_method": "on_spot"},
                                      cookie=cookie)
        self.assertEqual(response.status, 200)
        self.assertIn("valid time slot", body)
        self.assertEqual(self.reservation_repo.reservations, {})

    def test_webhook_rejects_get_and_bad_signature(self):
        response, _ = self.request("GET", "/functions/v1/payment-webhook")
        self.assertEqual(response.status, 405)
        response, body = self.signed_webhook({"type": "payment.success"}, signature="00")
        self.assertEqual(response.status, 401)
        self.assertEqual(body, "Invalid signature")

    def test_admin_manages_courts(self):
        admin = self.login("admin@example.com", "Admin1234")
        response, _ = self.request("POST", "/admin/courts/create",
                                   {"name": "Annex", "description": "", "price_per_hour": "3000"}, cookie=admin)
        self.assertEqual(response.status, 302)
        response, _ = self.request("POST", "/admin/courts/toggle", {"id": "2"}, cookie=admin)
        self.assertEqual(response.status, 302)
        self.assertFalse(self.context.court_service.get(2).is_bookable)

        response, _ = self.request("POST", "/admin/courts/create",
                                   {"name": "Bad", "price_per_hour": "abc"}, cookie=admin)
        self.assertIn("Error", urllib.parse.unquote(response.getheader("Location")))


class LiveModeTest(ServerTestCase):
    sandbox = False

    def test_simulation_page_is_hidden(self):
        response, _ = self.request("GET", "/payment-simulation?reservationId=1&amount=5000&currency=XOF")
        self.assertEqual(response.status, 404)
        response, _ = self.request("POST", "/payment-simulation", {"reservationId": "1"})
        self.assertEqual(response.status, 404)


if __name__ == "__main__":
    unittest.main()
