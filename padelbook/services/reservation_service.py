import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from padelbook.core.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from padelbook.models.payment import Payment, PaymentMethod, PaymentStatus
from padelbook.models.reservation import (
    Reservation,
    ReservationStatus,
    check_transition,
    sources_for,
)
from padelbook.repositories.court_repository import CourtRepository
from padelbook.repositories.payment_repository import PaymentRepository
from padelbook.repositories.reservation_repository import ReservationRepository

logger = logging.getLogger(__name__)

OPENING_HOUR = 8
CLOSING_HOUR = 22


class ReservationService:
    def __init__(
        self,
        court_repo: CourtRepository,
        reservation_repo: ReservationRepository,
        payment_repo: PaymentRepository,
        currency: str = "XOF",
    ):
        self.court_repo = court_repo
        self.reservation_repo = reservation_repo
        self.payment_repo = payment_repo
        self.currency = currency

    def create_reservation(
        self,
        court_id: int,
        user_id: int,
        start: Optional[datetime],
        end: Optional[datetime],
        method: PaymentMethod,
        now: Optional[datetime] = None,
    ) -> Reservation:
        """Insert a pending reservation and its pending payment.

        The returned reservation carries the payment in `reservation.payment`.
        If the payment insert fails the reservation is cancelled again before
        the PersistenceError propagates.
        """
        if start is None or end is None:
            raise ValidationError("Please select a valid time slot.")
        if end <= start:
            raise ValidationError("The end time must be after the start time.")
        if _naive(start) < (now or datetime.now()):
            raise ValidationError("You cannot book a time slot in the past.")
        opening = datetime.combine(start.date(), time(OPENING_HOUR))
        closing = datetime.combine(start.date(), time(CLOSING_HOUR))
        if _naive(start) < opening or _naive(end) > closing:
            raise ValidationError(f"Courts are open from {OPENING_HOUR:02d}:00 to {CLOSING_HOUR:02d}:00.")
        method = PaymentMethod(method)

        court = self.court_repo.find_by_id(court_id)
        if not court:
            raise NotFoundError("The selected court does not exist.")
        if not court.is_bookable:
            raise ValidationError(f"{court.name} is under maintenance.")
        if self.reservation_repo.find_overlapping(court_id, start, end):
            raise ValidationError("This time slot is already booked.")

        reservation = Reservation(
            court_id=court.id,
            user_id=user_id,
            start_time=start,
            end_time=end,
            total_price=court.price_for(start, end),
            status=ReservationStatus.PENDING,
        )
        reservation = self.reservation_repo.create(reservation)
        logger.info("Reservation %s created for court %s (%s)", reservation.id, court.id, reservation.total_price)

        payment = Payment(
            reservation_id=reservation.id,
            user_id=user_id,
            amount=reservation.total_price,
            currency=self.currency,
            method=method,
            status=PaymentStatus.PENDING,
        )
        try:
            reservation.payment = self.payment_repo.create(payment)
        except PersistenceError as exc:
            logger.error("Payment row for reservation %s failed: %s", reservation.id, exc)
            self._compensate(reservation)
            raise PersistenceError(
                f"Could not record the payment for reservation {reservation.id}; the reservation was cancelled."
            ) from exc
        return reservation

    def _compensate(self, reservation: Reservation) -> None:
        try:
            changed = self.reservation_repo.update_status(
                reservation.id, ReservationStatus.CANCELLED, [ReservationStatus.PENDING]
            )
        except PersistenceError:
            logger.exception("Reservation %s left pending without a payment row", reservation.id)
            return
        if changed:
            reservation.status = ReservationStatus.CANCELLED
            logger.warning("Reservation %s cancelled after payment setup failure", reservation.id)

    def get(self, reservation_id: int) -> Reservation:
        reservation = self.reservation_repo.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found.")
        return reservation

    def transition(self, reservation_id: int, target: ReservationStatus) -> Reservation:
        """Apply a status change following the transition table; same-status is a no-op."""
        reservation = self.get(reservation_id)
        if not check_transition(reservation.status, target):
            return reservation
        changed = self.reservation_repo.update_status(reservation.id, target, sources_for(target))
        if not changed:
            # someone else moved it first; re-read to report the real state
            current = self.get(reservation_id)
            if current.status is not target:
                raise InvalidTransitionError(current.status, ReservationStatus(target))
            return current
        reservation.status = ReservationStatus(target)
        return reservation

    def cancel(self, reservation_id: int, user_id: int, is_admin: bool) -> Reservation:
        reservation = self.get(reservation_id)
        if not is_admin:
            if reservation.user_id != user_id:
                raise ForbiddenError("You can only cancel your own reservations.")
            if reservation.status is not ReservationStatus.PENDING:
                raise ValidationError("Only pending reservations can be cancelled.")
        return self.transition(reservation_id, ReservationStatus.CANCELLED)

    def confirm(self, reservation_id: int, is_admin: bool) -> Reservation:
        if not is_admin:
            raise ForbiddenError("Only administrators can confirm reservations.")
        return self.transition(reservation_id, ReservationStatus.CONFIRMED)

    def list_for_user(self, user_id: int) -> List[dict]:
        return self.reservation_repo.find_by_user(user_id)

    def available_slots(
        self, court_id: int, day: date, now: Optional[datetime] = None
    ) -> List[Tuple[datetime, datetime]]:
        """Future one-hour slots between opening and closing that no active reservation covers."""
        now = now or datetime.now()
        slots = []
        for hour in range(OPENING_HOUR, CLOSING_HOUR):
            start = datetime.combine(day, time(hour))
            if start >= now:
                slots.append((start, start + timedelta(hours=1)))
        day_start = datetime.combine(day, time(OPENING_HOUR))
        day_end = datetime.combine(day, time(CLOSING_HOUR))
        taken = self.reservation_repo.find_overlapping(court_id, day_start, day_end)
        return [
            (start, end)
            for start, end in slots
            if not any(_naive(r.start_time) < end and _naive(r.end_time) > start for r in taken)
        ]


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo else value
