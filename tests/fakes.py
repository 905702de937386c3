"""In-memory stand-ins for the repositories, for tests that run without a database."""
from dataclasses import replace
from datetime import datetime, timezone

from padelbook.core.errors import PersistenceError
from padelbook.models.court import Court
from padelbook.models.payment import PaymentStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.models.user import Profile, Role


class FakeCourtRepo:
    def __init__(self, *courts):
        self.courts = {}
        self.counter = 1
        for court in courts:
            self.create(court)

    def find_all(self, status=None):
        courts = sorted(self.courts.values(), key=lambda c: c.name)
        return [replace(c) for c in courts if status is None or c.status is status]

    def find_by_id(self, court_id):
        court = self.courts.get(court_id)
        return replace(court) if court else None

    def create(self, court: Court) -> Court:
        court.id = self.counter
        self.counter += 1
        self.courts[court.id] = replace(court)
        return court

    def update(self, court: Court) -> None:
        self.courts[court.id] = replace(court)

    def update_status(self, court_id, status) -> None:
        self.courts[court_id].status = status

    def delete(self, court_id) -> None:
        self.courts.pop(court_id, None)

    def count_by_status(self, status) -> int:
        return len(self.find_all(status))


class FakeReservationRepo:
    def __init__(self, court_repo=None, user_repo=None, payment_repo=None):
        self.reservations = {}
        self.counter = 1
        self.court_repo = court_repo
        self.user_repo = user_repo
        self.payment_repo = payment_repo

    def create(self, reservation):
        reservation.id = self.counter
        self.counter += 1
        self.reservations[reservation.id] = replace(reservation, payment=None)
        return reservation

    def find_by_id(self, reservation_id):
        reservation = self.reservations.get(reservation_id)
        return replace(reservation) if reservation else None

    def update_status(self, reservation_id, new_status, from_statuses) -> bool:
        reservation = self.reservations.get(reservation_id)
        if not reservation or reservation.status not in from_statuses:
            return False
        reservation.status = ReservationStatus(new_status)
        return True

    def find_overlapping(self, court_id, start, end):
        return [
            replace(r) for r in self.reservations.values()
            if r.court_id == court_id
            and r.status is not ReservationStatus.CANCELLED
            and r.start_time < end and r.end_time > start
        ]

    def _row(self, reservation):
        row = {
            "id": reservation.id,
            "court_id": reservation.court_id,
            "user_id": reservation.user_id,
            "start_time": reservation.start_time,
            "end_time": reservation.end_time,
            "total_price": reservation.total_price,
            "status": reservation.status.value,
            "created_at": reservation.created_at,
            "court_name": "",
            "user_email": "",
        }
        if self.court_repo:
            court = self.court_repo.find_by_id(reservation.court_id)
            row["court_name"] = court.name if court else ""
        if self.user_repo:
            user = self.user_repo.find_by_id(reservation.user_id)
            row["user_email"] = user.email if user else ""
        if self.payment_repo:
            payment = self.payment_repo.find_by_reservation(reservation.id)
            row["payment_method"] = payment.method.value if payment else None
            row["payment_status"] = payment.status.value if payment else None
        return row

    def find_by_user(self, user_id):
        rows = [self._row(r) for r in self.reservations.values() if r.user_id == user_id]
        return sorted(rows, key=lambda r: r["start_time"], reverse=True)

    def find_in_range(self, start, end, status=None):
        rows = [
            self._row(r) for r in self.reservations.values()
            if start <= r.start_time <= end and (status is None or r.status is ReservationStatus(status))
        ]
        return sorted(rows, key=lambda r: r["start_time"], reverse=True)


class FakePaymentRepo:
    def __init__(self, fail_on_create=False):
        self.payments = {}
        self.counter = 1
        self.fail_on_create = fail_on_create
        self.fail_on_attach = False

    def create(self, payment):
        if self.fail_on_create:
            raise PersistenceError("insert into payments failed")
        payment.id = self.counter
        self.counter += 1
        self.payments[payment.id] = replace(payment)
        return payment

    def find_by_reservation(self, reservation_id):
        for payment in sorted(self.payments.values(), key=lambda p: p.id, reverse=True):
            if payment.reservation_id == reservation_id:
                return replace(payment)
        return None

    def for_reservation(self, reservation_id):
        return [p for p in self.payments.values() if p.reservation_id == reservation_id]

    def attach_session(self, payment_id, provider, session_id, payment_url):
        if self.fail_on_attach:
            raise PersistenceError("update payments failed")
        payment = self.payments[payment_id]
        payment.provider = provider
        payment.provider_session_id = session_id
        payment.payment_url = payment_url

    def update_status(self, payment_id, status, payment_date) -> bool:
        payment = self.payments.get(payment_id)
        if not payment or payment.status is not PaymentStatus.PENDING:
            return False
        payment.status = PaymentStatus(status)
        payment.payment_date = payment_date
        return True


class FakeUserRepo:
    def __init__(self):
        self.users = {}
        self.profiles = {}
        self.counter = 1

    def create(self, user, role=Role.CLIENT):
        user.id = self.counter
        self.counter += 1
        self.users[user.email] = user
        self.profiles[user.id] = Profile(user_id=user.id, role=role)
        return user

    def find_by_email(self, email):
        return self.users.get(email)

    def find_by_id(self, user_id):
        for user in self.users.values():
            if user.id == user_id:
                return user
        return None

    def get_role(self, user_id):
        profile = self.profiles.get(user_id)
        return profile.role if profile else None

    def ensure_profile(self, user_id, role=Role.CLIENT):
        return self.profiles.setdefault(user_id, Profile(user_id=user_id, role=role))

    def count_profiles(self):
        return len(self.profiles)


class FakeSessionRepo:
    def __init__(self):
        self.sessions = {}

    def create(self, session):
        session.id = len(self.sessions) + 1
        self.sessions[session.token] = session
        return session

    def find_by_token(self, token):
        return self.sessions.get(token)

    def delete(self, token):
        self.sessions.pop(token, None)

    def delete_expired(self):
        now = datetime.now(timezone.utc)
        for token, session in list(self.sessions.items()):
            if session.is_expired(now):
                self.sessions.pop(token)
