import html
import http.cookies
import logging
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from string import Template
from urllib.parse import parse_qs, quote, urlparse

from padelbook.core.config import Settings
from padelbook.core.context import AppContext
from padelbook.core.errors import (
    AuthError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from padelbook.functions import create_checkout_session, payment_webhook
from padelbook.functions.http import FunctionRequest, FunctionResponse
from padelbook.models.court import Court, CourtStatus
from padelbook.models.payment import PaymentMethod, PaymentStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.models.user import Role
from padelbook.services.court_service import parse_price
from padelbook.services.reporting_service import PERIODS, month_bounds

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATES_DIR = os.path.join(BASE_DIR, "web", "templates")
STATIC_DIR = os.path.join(BASE_DIR, "web", "static")

FORM_DATETIME = "%Y-%m-%dT%H:%M"
DISPLAY_DATETIME = "%Y-%m-%d %H:%M"

CHECKOUT_FUNCTION_PATH = "/functions/v1/create-checkout-session"
WEBHOOK_FUNCTION_PATH = "/functions/v1/payment-webhook"

PAYABLE = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


def load_template(name: str) -> Template:
    path = os.path.join(TEMPLATES_DIR, name)
    with open(path, "r", encoding="utf-8") as f:
        return Template(f.read())


def e(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def money(amount, currency: str) -> str:
    amount = Decimal(str(amount or 0))
    if amount == amount.to_integral_value():
        return f"{amount:,.0f} {currency}"
    return f"{amount:,.2f} {currency}"


def fmt_dt(value) -> str:
    return value.strftime(DISPLAY_DATETIME) if value else ""


def parse_day(raw: str, default: date) -> date:
    if not raw:
        return default
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {raw}") from exc


def parse_slot(raw: str, hours: str):
    """Turn the posted slot start and duration into (start, end); (None, None) if no slot was picked."""
    if not raw:
        return None, None
    try:
        start = datetime.strptime(raw, FORM_DATETIME)
        duration = int(hours or 1)
    except ValueError as exc:
        raise ValidationError("Please select a valid time slot.") from exc
    return start, start + timedelta(hours=duration)


def badge(value) -> str:
    value = getattr(value, "value", value) or ""
    return f"<span class='badge badge-{e(value)}'>{e(value)}</span>"


def post_button(action: str, reservation_id, label: str, css: str = "btn btn-small btn-danger") -> str:
    return (
        f"<form action='{e(action)}' method='POST'>"
        f"<input type='hidden' name='id' value='{e(reservation_id)}'>"
        f"<button type='submit' class='{css}'>{e(label)}</button></form>"
    )


class SimpleHandler(BaseHTTPRequestHandler):
    server_version = "PadelBook/1.0"

    @property
    def context(self) -> AppContext:
        return self.server.context

    @property
    def settings(self) -> Settings:
        return self.context.settings

    # dispatch

    def do_GET(self):
        self._dispatch(self._route_get)

    def do_POST(self):
        self._dispatch(self._route_post)

    def do_OPTIONS(self):
        self._dispatch(self._route_function)

    def _dispatch(self, route):
        self._session = None
        parsed = urlparse(self.path)
        try:
            if not route(parsed):
                self.send_text(404, "Not found")
        except ForbiddenError as exc:
            self.send_text(403, str(exc))
        except AuthError as exc:
            self.redirect(f"/login?msg={quote(str(exc))}")
        except NotFoundError as exc:
            self.send_text(404, str(exc))
        except ValidationError as exc:
            self.send_text(400, str(exc))
        except PersistenceError:
            logger.exception("Database error on %s %s", self.command, parsed.path)
            self.send_text(500, "A database error occurred. Please try again.")

    def _route_get(self, parsed) -> bool:
        path = parsed.path.rstrip("/") or "/"
        query = parse_qs(parsed.query)
        if path == "/":
            self.render_home(query)
        elif path == "/reservation" or path.startswith("/reservation/"):
            self.render_booking(path, query)
        elif path == "/my-reservations":
            self.render_my_reservations(query)
        elif path == "/payment-simulation":
            if not self.settings.payments_sandbox:
                return False
            self.render_payment_simulation(query)
        elif path == "/payment/success":
            self.render_payment_result(query, success=True)
        elif path == "/payment/cancel":
            self.render_payment_result(query, success=False)
        elif path == "/admin":
            self.render_admin_dashboard(query)
        elif path == "/admin/courts":
            self.render_admin_courts(query)
        elif path == "/admin/reservations":
            self.render_admin_reservations(query)
        elif path == "/admin/financial":
            self.render_admin_financial(query)
        elif path == "/login":
            self.render_page("Sign in", "login.html", {"email": ""}, first(query, "msg"))
        elif path == "/register":
            self.render_page("Register", "register.html", {"email": "", "full_name": ""}, first(query, "msg"))
        elif path == "/logout":
            self.handle_logout()
        elif path.startswith("/static/"):
            self.serve_static(path)
        else:
            return self._route_function(parsed)
        return True

    def _route_post(self, parsed) -> bool:
        path = parsed.path.rstrip("/")
        if path in (CHECKOUT_FUNCTION_PATH, WEBHOOK_FUNCTION_PATH):
            return self._route_function(parsed)
        if path == "/login":
            self.handle_login()
        elif path == "/register":
            self.handle_register()
        elif path == "/logout":
            self.handle_logout()
        elif path.startswith("/reservation/"):
            self.handle_booking(path)
        elif path == "/my-reservations/cancel":
            self.handle_cancel("/my-reservations")
        elif path == "/my-reservations/pay":
            self.handle_pay()
        elif path == "/payment-simulation":
            if not self.settings.payments_sandbox:
                return False
            self.handle_payment_simulation()
        elif path == "/admin/reservations/confirm":
            self.handle_confirm()
        elif path == "/admin/reservations/cancel":
            self.handle_cancel("/admin/reservations")
        elif path == "/admin/courts/create":
            self.handle_court_save(create=True)
        elif path == "/admin/courts/update":
            self.handle_court_save(create=False)
        elif path == "/admin/courts/delete":
            self.handle_court_delete()
        elif path == "/admin/courts/toggle":
            self.handle_court_toggle()
        else:
            return False
        return True

    def _route_function(self, parsed) -> bool:
        path = parsed.path.rstrip("/")
        if path not in (CHECKOUT_FUNCTION_PATH, WEBHOOK_FUNCTION_PATH):
            return False
        request = FunctionRequest(self.command, dict(self.headers.items()), self.read_body())
        if path == CHECKOUT_FUNCTION_PATH:
            response = create_checkout_session.handle(request, self.context.gateway, self.settings)
        else:
            response = payment_webhook.handle(request, self.context.gateway, self.context.payment_service)
        self.send_function_response(response)
        return True

    # session

    @property
    def session(self):
        if self._session is None:
            self._session = self.context.session(self.get_session_token())
        return self._session

    def get_session_token(self) -> str:
        cookie_header = self.headers.get("Cookie")
        if not cookie_header:
            return ""
        cookies = http.cookies.SimpleCookie()
        cookies.load(cookie_header)
        morsel = cookies.get("session_token")
        return morsel.value if morsel else ""

    def handle_login(self):
        data = self.read_form()
        email = data.get("email", "")
        try:
            user, session = self.context.auth_service.sign_in(email, data.get("password", ""))
        except AuthError as exc:
            self.render_page("Sign in", "login.html", {"email": e(email)}, f"Error: {exc}")
            return
        _, role = self.context.auth_service.resolve(session.token)
        cookie_value = (
            f"session_token={session.token}; Path=/; Max-Age={self.settings.session_ttl_minutes * 60}; "
            "HttpOnly; SameSite=Lax"
        )
        self.send_response(302)
        self.send_header("Set-Cookie", cookie_value)
        self.send_header("Location", "/admin" if role is Role.ADMIN else "/")
        self.end_headers()

    def handle_register(self):
        data = self.read_form()
        email = data.get("email", "")
        full_name = data.get("full_name", "")
        try:
            self.context.auth_service.register(email, data.get("password", ""), full_name)
        except ValidationError as exc:
            self.render_page("Register", "register.html", {"email": e(email), "full_name": e(full_name)},
                             f"Error: {exc}")
            return
        self.redirect("/login?msg=Registration%20successful")

    def handle_logout(self):
        self.session.teardown()
        expires = "Thu, 01 Jan 1970 00:00:00 GMT"
        self.send_response(302)
        self.send_header("Set-Cookie", f"session_token=; Path=/; HttpOnly; SameSite=Lax; Max-Age=0; Expires={expires}")
        self.send_header("Location", "/")
        self.end_headers()

    # client pages

    def render_home(self, query):
        search = first(query, "q")
        currency = self.settings.currency
        cards = []
        for court in self.context.court_service.list(search):
            action = (
                f"<a href='/reservation/{court.id}' class='btn'>Book</a>"
                if court.is_bookable else "<span class='muted'>Unavailable</span>"
            )
            image = f"<img src='{e(court.image_url)}' alt='' width='100%'>" if court.image_url else ""
            cards.append(
                f"<div class='card'>{image}<h3>{e(court.name)}</h3><p>{e(court.description)}</p>"
                f"<p><strong>{e(money(court.price_per_hour, currency))}</strong> / hour {badge(court.status)}</p>"
                f"{action}</div>"
            )
        content = {
            "search": e(search),
            "court_cards": "".join(cards) or "<p class='muted'>No courts found.</p>",
        }
        self.render_page("Courts", "home.html", content, first(query, "msg"))

    def render_booking(self, path, query, message=""):
        self.session.require_user()
        court_id = path[len("/reservation/"):] if path.startswith("/reservation/") else first(query, "court")
        if not court_id:
            links = "".join(
                f"<li><a href='/reservation/{c.id}'>{e(c.name)}</a> "
                f"{e(money(c.price_per_hour, self.settings.currency))} / hour</li>"
                for c in self.context.court_service.list() if c.is_bookable
            )
            self.render_page("Book", "court_picker.html", {"court_links": links}, message or first(query, "msg"))
            return
        court = self.context.court_service.get(to_int(court_id))
        day = parse_day(first(query, "day"), date.today())
        slots = self.context.reservation_service.available_slots(court.id, day)
        slot_options = "".join(
            f"<label><input type='radio' name='slot' value='{start.strftime(FORM_DATETIME)}'> "
            f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}</label>"
            for start, end in slots
        ) or "<p class='muted'>No free slot on this day.</p>"
        content = {
            "court_id": court.id,
            "court_name": e(court.name),
            "court_description": e(court.description),
            "price": e(money(court.price_per_hour, self.settings.currency)),
            "day": day.isoformat(),
            "slot_options": slot_options,
        }
        self.render_page(f"Book {court.name}", "booking.html", content, message or first(query, "msg"))

    def handle_booking(self, path):
        user = self.session.require_user()
        court_id = to_int(path[len("/reservation/"):])
        data = self.read_form()
        try:
            start, end = parse_slot(data.get("slot", ""), data.get("hours", "1"))
            method = PaymentMethod(data.get("payment_method", PaymentMethod.ON_SPOT.value))
        except (ValueError, ValidationError) as exc:
            self.render_booking(path, {}, f"Error: {exc}")
            return
        try:
            reservation = self.context.reservation_service.create_reservation(court_id, user.id, start, end, method)
        except PersistenceError as exc:
            logger.error("Booking on court %s failed: %s", court_id, exc)
            self.render_booking(path, {}, f"Error: {exc}")
            return
        except ValidationError as exc:
            self.render_booking(path, {}, f"Error: {exc}")
            return

        if method is PaymentMethod.ON_SPOT:
            self.redirect("/my-reservations?msg=" + quote("Reservation created. Pay on site."))
            return
        self.start_checkout(reservation, reservation.payment, user.email)

    def start_checkout(self, reservation, payment, email):
        try:
            session = self.context.checkout_service.start_checkout(reservation, payment, email)
        except GatewayError as exc:
            logger.error("Checkout for reservation %s failed (%s): %s", reservation.id, exc.status_code, exc)
            self.redirect("/my-reservations?msg=" + quote(f"Error: payment could not be started ({exc})"))
            return
        self.redirect(session.payment_url)

    def handle_pay(self):
        user = self.session.require_user()
        reservation_id = to_int(self.read_form().get("id"))
        reservation = self.context.reservation_service.get(reservation_id)
        if reservation.user_id != user.id:
            raise ForbiddenError("You can only pay for your own reservations.")
        try:
            payment = self.context.payment_service.retry_payment(reservation_id)
            self.start_checkout(reservation, payment, user.email)
        except ValidationError as exc:
            self.redirect("/my-reservations?msg=" + quote(f"Error: {exc}"))

    def render_my_reservations(self, query):
        user = self.session.require_user()
        currency = self.settings.currency
        rows = []
        for r in self.context.reservation_service.list_for_user(user.id):
            actions = ""
            if r["status"] == ReservationStatus.PENDING.value:
                if r.get("payment_method") == PaymentMethod.ONLINE.value \
                        and r.get("payment_status") in PAYABLE:
                    label = "Try again" if r["payment_status"] == PaymentStatus.FAILED.value else "Pay"
                    actions += post_button("/my-reservations/pay", r["id"], label, "btn btn-small")
                actions += post_button("/my-reservations/cancel", r["id"], "Cancel")
            payment = r.get("payment_method") or ""
            if r.get("payment_status"):
                payment = f"{e(payment)} {badge(r['payment_status'])}"
            rows.append(
                f"<tr><td>{e(r['court_name'])}</td><td>{fmt_dt(r['start_time'])}</td><td>{fmt_dt(r['end_time'])}</td>"
                f"<td>{e(money(r['total_price'], currency))}</td><td>{badge(r['status'])}</td>"
                f"<td>{payment}</td><td>{actions}</td></tr>"
            )
        body = "".join(rows) or "<tr><td colspan='7' class='muted'>You have no reservations yet.</td></tr>"
        self.render_page("My reservations", "my_reservations.html", {"rows": body}, first(query, "msg"))

    def handle_cancel(self, back: str):
        user = self.session.require_user()
        reservation_id = to_int(self.read_form().get("id"))
        try:
            self.context.reservation_service.cancel(reservation_id, user.id, self.session.is_admin)
        except ValidationError as exc:
            self.redirect(f"{back}?msg=" + quote(f"Error: {exc}"))
            return
        self.redirect(f"{back}?msg=Reservation%20cancelled")

    # payments

    def render_payment_simulation(self, query):
        reservation_id = first(query, "reservationId")
        if not reservation_id:
            self.render_page("Payment", "payment_result.html", {
                "heading": "Payment failed", "text": "Missing reservation id.", "details": "",
            })
            return
        content = {
            "amount": e(first(query, "amount") or "0"),
            "currency": e(first(query, "currency") or self.settings.currency),
            "reservation_id": e(reservation_id),
        }
        self.render_page("Payment simulation", "payment_simulation.html", content, first(query, "msg"))

    def handle_payment_simulation(self):
        reservation_id = to_int(self.read_form().get("reservationId"))
        try:
            payment = self.context.payment_service.simulate_payment(reservation_id)
        except ValidationError as exc:
            self.redirect(f"/payment/cancel?reservation_id={reservation_id}&msg=" + quote(f"Error: {exc}"))
            return
        if payment.status is PaymentStatus.COMPLETED:
            self.redirect(f"/payment/success?reservation_id={reservation_id}")
        else:
            self.redirect(f"/payment/cancel?reservation_id={reservation_id}&msg=" + quote("Error: payment declined"))

    def render_payment_result(self, query, success: bool):
        reservation_id = first(query, "reservation_id")
        details = f"<p class='muted'>Reservation #{e(reservation_id)}</p>" if reservation_id else ""
        if success:
            heading = "Payment successful"
            text = "Your payment has been processed. Your reservation status will be updated shortly."
        else:
            heading = "Payment cancelled"
            text = "Your payment was not completed. The reservation stays pending and you can try again."
        self.render_page(heading, "payment_result.html",
                         {"heading": heading, "text": text, "details": details}, first(query, "msg"))

    # admin

    def render_admin_dashboard(self, query):
        self.session.require_admin()
        currency = self.settings.currency
        stats = self.context.reporting_service.dashboard(datetime.now())
        peak = max([value for _, value in stats["revenue_per_day"]] + [Decimal("1")])
        revenue_rows = "".join(
            f"<tr><td>{e(label)}</td><td><div class='bar' style='width:{int(value / peak * 100)}%'></div></td>"
            f"<td>{e(money(value, currency))}</td></tr>"
            for label, value in stats["revenue_per_day"]
        )
        today_rows = "".join(
            f"<tr><td>{e(r['court_name'])}</td><td>{e(r['user_email'])}</td><td>{fmt_dt(r['start_time'])}</td>"
            f"<td>{fmt_dt(r['end_time'])}</td><td>{badge(r['status'])}</td></tr>"
            for r in stats["today_reservations"]
        ) or "<tr><td colspan='5' class='muted'>No reservations today.</td></tr>"
        content = {
            "today_count": stats["today_count"],
            "active_courts": stats["active_courts"],
            "total_users": stats["total_users"],
            "monthly_revenue": e(money(stats["monthly_revenue"], currency)),
            "revenue_rows": revenue_rows,
            "today_rows": today_rows,
        }
        self.render_page("Dashboard", "admin_dashboard.html", content, first(query, "msg"))

    def render_admin_courts(self, query):
        self.session.require_admin()
        search = first(query, "q")
        rows = []
        for court in self.context.court_service.list(search):
            toggle_label = "Set available" if court.status is not CourtStatus.AVAILABLE else "Set maintenance"
            rows.append(
                f"<tr><td>{e(court.name)}</td><td>{e(money(court.price_per_hour, self.settings.currency))}</td>"
                f"<td>{badge(court.status)}</td><td>"
                f"<a href='/admin/courts?edit={court.id}' class='btn btn-small btn-secondary'>Edit</a> "
                f"{post_button('/admin/courts/toggle', court.id, toggle_label, 'btn btn-small btn-secondary')} "
                f"{post_button('/admin/courts/delete', court.id, 'Delete')}</td></tr>"
            )
        editing = None
        if first(query, "edit"):
            editing = self.context.court_service.get(to_int(first(query, "edit")))
        content = {
            "search": e(search),
            "rows": "".join(rows) or "<tr><td colspan='4' class='muted'>No courts yet.</td></tr>",
            "form_title": f"Edit {e(editing.name)}" if editing else "New court",
            "form_action": "/admin/courts/update" if editing else "/admin/courts/create",
            "court_id": editing.id if editing else "",
            "name": e(editing.name) if editing else "",
            "description": e(editing.description) if editing else "",
            "price_per_hour": e(editing.price_per_hour) if editing else "",
            "image_url": e(editing.image_url) if editing else "",
        }
        self.render_page("Courts", "admin_courts.html", content, first(query, "msg"))

    def handle_court_save(self, create: bool):
        self.session.require_admin()
        data = self.read_form()
        try:
            court = Court(
                name=data.get("name", "").strip(),
                description=data.get("description", "").strip(),
                price_per_hour=parse_price(data.get("price_per_hour", "")),
                image_url=data.get("image_url", "").strip() or None,
            )
            if not create:
                current = self.context.court_service.get(to_int(data.get("id")))
                court.id = current.id
                court.status = current.status
                court.created_at = current.created_at
            self.context.court_service.save(court)
        except ValidationError as exc:
            self.redirect("/admin/courts?msg=" + quote(f"Error: {exc}"))
            return
        self.redirect("/admin/courts?msg=" + ("Court%20created" if create else "Court%20updated"))

    def handle_court_delete(self):
        self.session.require_admin()
        court_id = to_int(self.read_form().get("id"))
        try:
            self.context.court_service.delete(court_id)
        except PersistenceError as exc:
            logger.error("Could not delete court %s: %s", court_id, exc)
            self.redirect("/admin/courts?msg=" + quote("Error: the court still has reservations."))
            return
        self.redirect("/admin/courts?msg=Court%20deleted")

    def handle_court_toggle(self):
        self.session.require_admin()
        court = self.context.court_service.toggle_status(to_int(self.read_form().get("id")))
        self.redirect("/admin/courts?msg=" + quote(f"{court.name} is now {court.status.value}"))

    def render_admin_reservations(self, query):
        self.session.require_admin()
        currency = self.settings.currency
        month_start, month_end = month_bounds(date.today())
        status_raw = first(query, "status")
        try:
            start = parse_day(first(query, "start"), month_start.date())
            end = parse_day(first(query, "end"), month_end.date())
            status = ReservationStatus(status_raw) if status_raw else None
            reservations = self.context.reporting_service.reservations(start, end, status)
        except (ValueError, ValidationError) as exc:
            self.redirect("/admin/reservations?msg=" + quote(f"Error: {exc}"))
            return
        rows = []
        for r in reservations:
            actions = ""
            if r["status"] == ReservationStatus.PENDING.value:
                actions += post_button("/admin/reservations/confirm", r["id"], "Confirm", "btn btn-small")
            if r["status"] != ReservationStatus.CANCELLED.value:
                actions += post_button("/admin/reservations/cancel", r["id"], "Cancel")
            rows.append(
                f"<tr><td>{r['id']}</td><td>{e(r['court_name'])}</td><td>{e(r['user_email'])}</td>"
                f"<td>{fmt_dt(r['start_time'])}</td><td>{fmt_dt(r['end_time'])}</td>"
                f"<td>{e(money(r['total_price'], currency))}</td><td>{badge(r['status'])}</td><td>{actions}</td></tr>"
            )
        options = ["<option value=''>All statuses</option>"] + [
            f"<option value='{s.value}'{' selected' if s.value == status_raw else ''}>{s.value}</option>"
            for s in ReservationStatus
        ]
        content = {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "status_options": "".join(options),
            "rows": "".join(rows) or "<tr><td colspan='8' class='muted'>No reservations in this range.</td></tr>",
        }
        self.render_page("Reservations", "admin_reservations.html", content, first(query, "msg"))

    def handle_confirm(self):
        self.session.require_admin()
        reservation_id = to_int(self.read_form().get("id"))
        try:
            self.context.reservation_service.confirm(reservation_id, self.session.is_admin)
        except ValidationError as exc:
            self.redirect("/admin/reservations?msg=" + quote(f"Error: {exc}"))
            return
        self.redirect("/admin/reservations?msg=Reservation%20confirmed")

    def render_admin_financial(self, query):
        self.session.require_admin()
        currency = self.settings.currency
        period = first(query, "period") or "month"
        try:
            report = self.context.reporting_service.financial(period, datetime.now())
        except ValidationError as exc:
            self.redirect("/admin/financial?msg=" + quote(f"Error: {exc}"))
            return
        status_cards = "".join(
            f"<div class='stat'><span>{e(s.value)} ({report.share(s)}%)</span>"
            f"<strong>{e(money(report.by_status[s.value], currency))}</strong></div>"
            for s in ReservationStatus
        )
        peak = max([value for _, value in report.monthly] + [Decimal("1")])
        monthly_rows = "".join(
            f"<tr><td>{e(label)}</td><td><div class='bar' style='width:{int(value / peak * 100)}%'></div></td>"
            f"<td>{e(money(value, currency))}</td></tr>"
            for label, value in report.monthly
        )
        court_rows = "".join(
            f"<tr><td>{e(entry['name'])}</td><td>{e(money(entry['value'], currency))}</td></tr>"
            for entry in report.by_court
        ) or "<tr><td colspan='2' class='muted'>No revenue in this period.</td></tr>"
        period_options = "".join(
            f"<option value='{p}'{' selected' if p == period else ''}>{p}</option>" for p in PERIODS
        )
        content = {
            "period_options": period_options,
            "total_revenue": e(money(report.total_revenue, currency)),
            "status_cards": status_cards,
            "monthly_rows": monthly_rows,
            "court_rows": court_rows,
        }
        self.render_page("Financial", "admin_financial.html", content, first(query, "msg"))

    # plumbing

    def nav_html(self) -> str:
        links = ["<a href='/'>Courts</a>"]
        if self.session.is_authenticated:
            links.append("<a href='/my-reservations'>My reservations</a>")
            if self.session.is_admin:
                links += [
                    "<a href='/admin'>Dashboard</a>",
                    "<a href='/admin/courts'>Manage courts</a>",
                    "<a href='/admin/reservations'>Reservations</a>",
                    "<a href='/admin/financial'>Financial</a>",
                ]
            links.append(f"<a href='/logout'>Sign out ({e(self.session.user.email)})</a>")
        else:
            links += ["<a href='/login'>Sign in</a>", "<a href='/register'>Register</a>"]
        return "".join(links)

    def render_page(self, title: str, template_name: str, context: dict, msg: str = "", status: int = 200):
        content = load_template(template_name).safe_substitute(**context)
        message = ""
        if msg:
            msg_class = "message-error" if msg.startswith("Error") else "message-success"
            message = f"<div class='message-box {msg_class}'>{e(msg)}</div>"
        page = load_template("layout.html").substitute(
            title=e(title), nav=self.nav_html(), message=message, content=content, year=datetime.now().year
        )
        self.send_body(status, page.encode("utf-8"), "text/html; charset=utf-8")

    def serve_static(self, path: str):
        filename = os.path.normpath(path.replace("/static/", "", 1))
        file_path = os.path.join(STATIC_DIR, filename)
        if filename.startswith("..") or os.path.isabs(filename) or not os.path.isfile(file_path):
            self.send_text(404, "Not found")
            return
        with open(file_path, "rb") as f:
            content = f.read()
        content_type = "text/css" if file_path.endswith(".css") else "application/octet-stream"
        self.send_body(200, content, content_type)

    def read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length", "0") or 0)
        return self.rfile.read(length) if length else b""

    def read_form(self) -> dict:
        data = parse_qs(self.read_body().decode("utf-8"))
        return {key: values[0] for key, values in data.items()}

    def send_function_response(self, response: FunctionResponse):
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        self.wfile.write(response.body)

    def send_body(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def send_text(self, status: int, text: str):
        self.send_body(status, text.encode("utf-8"), "text/plain; charset=utf-8")

    def redirect(self, location: str):
        self.send_response(302)
        self.send_header("Location", location)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


def first(query: dict, key: str) -> str:
    return query.get(key, [""])[0]


def to_int(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise NotFoundError(f"Unknown id: {raw!r}") from exc


def build_server(context: AppContext, port: int = None) -> ThreadingHTTPServer:
    httpd = ThreadingHTTPServer(("", context.settings.server_port if port is None else port), SimpleHandler)
    httpd.context = context
    return httpd


def run():
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    httpd = build_server(AppContext.build(settings))
    logger.info("Server started on %s (port %s)", settings.app_base_url, settings.server_port)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        httpd.server_close()


if __name__ == "__main__":
    run()
