from datetime import datetime
from typing import Iterable, List, Optional

from padelbook.core.config import Settings
from padelbook.core.db import cursor
from padelbook.models.reservation import Reservation, ReservationStatus

RESERVATION_COLUMNS = "id, court_id, user_id, start_time, end_time, total_price, status, created_at"


class ReservationRepository:
    def __init__(self, settings: Settings):
        self.settings = settings

    def create(self, reservation: Reservation) -> Reservation:
        with cursor(self.settings) as cur:
            cur.execute(
                """
                INSERT INTO reservations (court_id, user_id, start_time, end_time, total_price, status)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id, created_at
                """,
                (reservation.court_id, reservation.user_id, reservation.start_time,
                 reservation.end_time, reservation.total_price, reservation.status.value),
            )
            row = cur.fetchone()
        reservation.id = row["id"]
        reservation.created_at = row["created_at"]
        return reservation

    def find_by_id(self, reservation_id: int) -> Optional[Reservation]:
        with cursor(self.settings) as cur:
            cur.execute(f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE id = %s", (reservation_id,))
            row = cur.fetchone()
        return Reservation(**row) if row else None

    def update_status(
        self,
        reservation_id: int,
        new_status: ReservationStatus,
        from_statuses: Iterable[ReservationStatus],
    ) -> bool:
        """Set the status only while the row is in one of `from_statuses`; report whether it changed."""
        allowed = [ReservationStatus(s).value for s in from_statuses]
        with cursor(self.settings) as cur:
            cur.execute(
                "UPDATE reservations SET status = %s WHERE id = %s AND status = ANY(%s)",
                (ReservationStatus(new_status).value, reservation_id, allowed),
            )
            return cur.rowcount > 0

    def find_overlapping(self, court_id: int, start: datetime, end: datetime) -> List[Reservation]:
        """Non-cancelled reservations on the court intersecting [start, end)."""
        with cursor(self.settings) as cur:
            cur.execute(
                f"""
                SELECT {RESERVATION_COLUMNS} FROM reservations
                WHERE court_id = %s
                AND status != %s
                AND start_time < %s
                AND end_time > %s
                """,
                (court_id, ReservationStatus.CANCELLED.value, end, start),
            )
            rows = cur.fetchall()
        return [Reservation(**row) for row in rows]

    def find_by_user(self, user_id: int) -> List[dict]:
        with cursor(self.settings) as cur:
            cur.execute(
                """
                SELECT r.id, r.court_id, c.name AS court_name, r.start_time, r.end_time,
                       r.total_price, r.status, r.created_at,
                       p.method AS payment_method, p.status AS payment_status, p.payment_url
                FROM reservations r
                JOIN courts c ON r.court_id = c.id
                LEFT JOIN LATERAL (
                    SELECT method, status, payment_url FROM payments
                    WHERE reservation_id = r.id ORDER BY id DESC LIMIT 1
                ) p ON TRUE
                WHERE r.user_id = %s
                ORDER BY r.start_time DESC
                """,
                (user_id,),
            )
            rows = cur.fetchall()
        return [dict(row) for row in rows]

    def find_in_range(
        self,
        start: datetime,
        end: datetime,
        status: Optional[ReservationStatus] = None,
    ) -> List[dict]:
        """Reservations starting within [start, end], joined with court name and user email."""
        query = """
            SELECT r.id, r.court_id, c.name AS court_name, r.user_id, u.email AS user_email,
                   r.start_time, r.end_time, r.total_price, r.status, r.created_at
            FROM reservations r
            JOIN courts c ON r.court_id = c.id
            JOIN users u ON r.user_id = u.id
            WHERE r.start_time >= %s AND r.start_time <= %s
        """
        params = [start, end]
        if status is not None:
            query += " AND r.status = %s"
            params.append(ReservationStatus(status).value)
        query += " ORDER BY r.start_time DESC"
        with cursor(self.settings) as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [dict(row) for row in rows]
