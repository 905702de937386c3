from datetime import datetime
from typing import Optional

from padelbook.core.config import Settings
from padelbook.core.db import cursor
from padelbook.models.payment import Payment, PaymentStatus

PAYMENT_COLUMNS = (
    "id, reservation_id, user_id, amount, currency, method, provider, provider_session_id, "
    "payment_url, status, payment_date, created_at"
)


class PaymentRepository:
    def __init__(self, settings: Settings):
        self.settings = settings

    def create(self, payment: Payment) -> Payment:
        with cursor(self.settings) as cur:
            cur.execute(
                """
                INSERT INTO payments (reservation_id, user_id, amount, currency, method, provider,
                                      provider_session_id, payment_url, status, payment_date)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id, created_at
                """,
                (
                    payment.reservation_id,
                    payment.user_id,
                    payment.amount,
                    payment.currency,
                    payment.method.value,
                    payment.provider,
                    payment.provider_session_id,
                    payment.payment_url,
                    payment.status.value,
                    payment.payment_date,
                ),
            )
            row = cur.fetchone()
        payment.id = row["id"]
        payment.created_at = row["created_at"]
        return payment

    def find_by_reservation(self, reservation_id: int) -> Optional[Payment]:
        """Latest payment attempt for the reservation."""
        with cursor(self.settings) as cur:
            cur.execute(
                f"SELECT {PAYMENT_COLUMNS} FROM payments WHERE reservation_id = %s ORDER BY id DESC LIMIT 1",
                (reservation_id,),
            )
            row = cur.fetchone()
        return Payment(**row) if row else None

    def attach_session(self, payment_id: int, provider: str, session_id: Optional[str], payment_url: str) -> None:
        with cursor(self.settings) as cur:
            cur.execute(
                "UPDATE payments SET provider = %s, provider_session_id = %s, payment_url = %s WHERE id = %s",
                (provider, session_id, payment_url, payment_id),
            )

    def update_status(self, payment_id: int, status: PaymentStatus, payment_date: Optional[datetime]) -> bool:
        """Settle a payment that is still pending; report whether a row changed."""
        with cursor(self.settings) as cur:
            cur.execute(
                "UPDATE payments SET status = %s, payment_date = %s WHERE id = %s AND status = %s",
                (PaymentStatus(status).value, payment_date, payment_id, PaymentStatus.PENDING.value),
            )
            return cur.rowcount > 0
