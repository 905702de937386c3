from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from padelbook.core import security


@dataclass
class Session:
    """Server-side login session, referenced by the `session_token` cookie."""

    user_id: int
    token: str
    expires_at: datetime
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def issue(cls, user_id: int, ttl_minutes: int) -> "Session":
        now = datetime.now(timezone.utc)
        return cls(user_id=user_id, token=security.generate_token(), expires_at=now + timedelta(minutes=ttl_minutes),
                   created_at=now)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at
