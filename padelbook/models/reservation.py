from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from padelbook.core.errors import InvalidTransitionError
from padelbook.models.payment import Payment


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


TRANSITIONS = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
}
assert set(TRANSITIONS) == set(ReservationStatus), "every status needs a transition entry"


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    """Return True when the status must change, False when it already is `target`.

    Raises InvalidTransitionError for an edge outside the table.
    """
    current = ReservationStatus(current)
    target = ReservationStatus(target)
    if current is target:
        return False
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return True


def sources_for(target: ReservationStatus):
    """Statuses a reservation may be in right before moving to `target`."""
    return frozenset(status for status, targets in TRANSITIONS.items() if target in targets)


@dataclass
class Reservation:
    court_id: int
    user_id: int
    start_time: datetime
    end_time: datetime
    total_price: Decimal
    status: ReservationStatus = ReservationStatus.PENDING
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    payment: Optional[Payment] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        self.total_price = Decimal(str(self.total_price))
        self.status = ReservationStatus(self.status)

    @property
    def duration_hours(self) -> Decimal:
        return Decimal(int((self.end_time - self.start_time).total_seconds())) / Decimal(3600)
