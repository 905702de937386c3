from datetime import datetime, timezone
from typing import Optional

from padelbook.core.config import Settings
from padelbook.core.db import cursor
from padelbook.models.session import Session


class SessionRepository:
    def __init__(self, settings: Settings):
        self.settings = settings

    def create(self, session: Session) -> Session:
        query = """
        INSERT INTO sessions (user_id, token, expires_at)
        VALUES (%s, %s, %s)
        RETURNING id, created_at;
        """
        with cursor(self.settings) as cur:
            cur.execute(query, (session.user_id, session.token, session.expires_at))
            row = cur.fetchone()
        session.id = row["id"]
        session.created_at = row["created_at"]
        return session

    def find_by_token(self, token: str) -> Optional[Session]:
        query = """
        SELECT id, user_id, token, expires_at, created_at
        FROM sessions WHERE token = %s;
        """
        with cursor(self.settings) as cur:
            cur.execute(query, (token,))
            row = cur.fetchone()
        return Session(**row) if row else None

    def delete(self, token: str) -> None:
        with cursor(self.settings) as cur:
            cur.execute("DELETE FROM sessions WHERE token = %s;", (token,))

    def delete_expired(self) -> None:
        with cursor(self.settings) as cur:
            cur.execute("DELETE FROM sessions WHERE expires_at <= %s;", (datetime.now(timezone.utc),))
