import logging
import random
from datetime import datetime, timezone
from typing import Optional

from padelbook.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from padelbook.models.payment import Payment, PaymentMethod, PaymentStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.repositories.payment_repository import PaymentRepository
from padelbook.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(
        self,
        payment_repo: PaymentRepository,
        reservation_service: ReservationService,
        success_rate: float = 0.8,
        always_success: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.payment_repo = payment_repo
        self.reservation_service = reservation_service
        self.success_rate = success_rate
        self.always_success = always_success
        self.rng = rng or random.Random()

    def payment_for(self, reservation_id: int) -> Payment:
        payment = self.payment_repo.find_by_reservation(reservation_id)
        if not payment:
            raise NotFoundError("No payment is linked to this reservation.")
        return payment

    def retry_payment(self, reservation_id: int) -> Payment:
        """Payment to send through checkout again.

        A pending attempt is reused. After a declined attempt a fresh pending
        row is inserted so the failed one stays on record.
        """
        payment = self.payment_for(reservation_id)
        if payment.method is not PaymentMethod.ONLINE:
            raise ValidationError("This reservation is paid on site.")
        if payment.status is PaymentStatus.COMPLETED:
            raise ValidationError("This reservation has already been paid.")
        if payment.status is PaymentStatus.PENDING:
            return payment
        retry = self.payment_repo.create(self._next_attempt(payment, PaymentStatus.PENDING))
        logger.info("Payment %s declined, new attempt %s for reservation %s", payment.id, retry.id, reservation_id)
        return retry

    def _next_attempt(self, failed: Payment, status: PaymentStatus) -> Payment:
        return Payment(
            reservation_id=failed.reservation_id,
            user_id=failed.user_id,
            amount=failed.amount,
            currency=failed.currency,
            method=failed.method,
            status=status,
            payment_date=datetime.now(timezone.utc) if status is PaymentStatus.COMPLETED else None,
        )

    def simulate_payment(self, reservation_id: int) -> Payment:
        """Settle the reservation's payment the way the sandbox gateway would."""
        payment = self.payment_for(reservation_id)
        success = self.always_success or self.rng.random() < self.success_rate
        status = payment.settle(success)
        if not self.payment_repo.update_status(payment.id, status, payment.payment_date):
            raise ValidationError("This payment was already processed.")
        logger.info("[SIMULATED PAYMENT] reservation=%s payment=%s status=%s", reservation_id, payment.id, status.value)
        return payment

    def record_success(self, reservation_id: int) -> bool:
        """Confirm a reservation after the gateway reported a successful payment.

        Returns False when there was nothing to confirm (unknown or cancelled
        reservation). Delivering the same event again is harmless.
        """
        try:
            reservation = self.reservation_service.transition(reservation_id, ReservationStatus.CONFIRMED)
        except NotFoundError:
            logger.warning("Payment success for unknown reservation %s", reservation_id)
            return False
        except InvalidTransitionError as exc:
            logger.warning("Payment success for reservation %s ignored: %s", reservation_id, exc)
            return False

        payment = self.payment_repo.find_by_reservation(reservation.id)
        if payment and payment.status is PaymentStatus.PENDING:
            self.payment_repo.update_status(payment.id, PaymentStatus.COMPLETED, datetime.now(timezone.utc))
        elif payment and payment.status is PaymentStatus.FAILED:
            # the gateway charged after an attempt was declined
            self.payment_repo.create(self._next_attempt(payment, PaymentStatus.COMPLETED))
        logger.info("Reservation %s confirmed by payment gateway", reservation.id)
        return True
