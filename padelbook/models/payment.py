from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from padelbook.core.errors import ValidationError


class PaymentMethod(str, Enum):
    ONLINE = "online"
    ON_SPOT = "on_spot"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Payment:
    reservation_id: int
    user_id: int
    amount: Decimal
    method: PaymentMethod
    currency: str = "XOF"
    provider: Optional[str] = None
    provider_session_id: Optional[str] = None
    payment_url: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_date: Optional[datetime] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.amount = Decimal(str(self.amount))
        self.method = PaymentMethod(self.method)
        self.status = PaymentStatus(self.status)

    def settle(self, success: bool) -> PaymentStatus:
        """Move a pending payment to completed or failed."""
        if self.status is not PaymentStatus.PENDING:
            raise ValidationError(f"Payment {self.id} is already {self.status.value}.")
        self.status = PaymentStatus.COMPLETED if success else PaymentStatus.FAILED
        self.payment_date = datetime.now(timezone.utc)
        return self.status
