from typing import List, Optional

from padelbook.core.config import Settings
from padelbook.core.db import cursor
from padelbook.models.court import Court, CourtStatus

COURT_COLUMNS = "id, name, description, price_per_hour, image_url, status, created_at"


class CourtRepository:
    def __init__(self, settings: Settings):
        self.settings = settings

    def find_all(self, status: Optional[CourtStatus] = None) -> List[Court]:
        with cursor(self.settings) as cur:
            if status is None:
                cur.execute(f"SELECT {COURT_COLUMNS} FROM courts ORDER BY name")
            else:
                cur.execute(
                    f"SELECT {COURT_COLUMNS} FROM courts WHERE status = %s ORDER BY name",
                    (CourtStatus(status).value,),
                )
            rows = cur.fetchall()
        return [Court(**row) for row in rows]

    def find_by_id(self, court_id: int) -> Optional[Court]:
        with cursor(self.settings) as cur:
            cur.execute(f"SELECT {COURT_COLUMNS} FROM courts WHERE id = %s", (court_id,))
            row = cur.fetchone()
        return Court(**row) if row else None

    def create(self, court: Court) -> Court:
        with cursor(self.settings) as cur:
            cur.execute(
                """
                INSERT INTO courts (name, description, price_per_hour, image_url, status)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, created_at
                """,
                (court.name, court.description, court.price_per_hour, court.image_url, court.status.value),
            )
            row = cur.fetchone()
        court.id = row["id"]
        court.created_at = row["created_at"]
        return court

    def update(self, court: Court) -> None:
        with cursor(self.settings) as cur:
            cur.execute(
                """
                UPDATE courts
                SET name = %s, description = %s, price_per_hour = %s, image_url = %s, status = %s
                WHERE id = %s
                """,
                (court.name, court.description, court.price_per_hour, court.image_url,
                 court.status.value, court.id),
            )

    def update_status(self, court_id: int, status: CourtStatus) -> None:
        with cursor(self.settings) as cur:
            cur.execute("UPDATE courts SET status = %s WHERE id = %s", (CourtStatus(status).value, court_id))

    def delete(self, court_id: int) -> None:
        with cursor(self.settings) as cur:
            cur.execute("DELETE FROM courts WHERE id = %s", (court_id,))

    def count_by_status(self, status: CourtStatus) -> int:
        with cursor(self.settings) as cur:
            cur.execute("SELECT COUNT(*) AS total FROM courts WHERE status = %s", (CourtStatus(status).value,))
            return cur.fetchone()["total"]
