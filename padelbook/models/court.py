from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from padelbook.core.errors import ValidationError


class CourtStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


@dataclass
class Court:
    name: str
    price_per_hour: Decimal
    description: str = ""
    image_url: Optional[str] = None
    status: CourtStatus = CourtStatus.AVAILABLE
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.price_per_hour = Decimal(str(self.price_per_hour))
        self.status = CourtStatus(self.status)

    @property
    def is_bookable(self) -> bool:
        return self.status is not CourtStatus.MAINTENANCE

    def price_for(self, start: datetime, end: datetime) -> Decimal:
        seconds = Decimal(int((end - start).total_seconds()))
        return self.price_per_hour * seconds / Decimal(3600)

    def toggle_status(self) -> CourtStatus:
        if self.status is CourtStatus.AVAILABLE:
            self.status = CourtStatus.MAINTENANCE
        else:
            self.status = CourtStatus.AVAILABLE
        return self.status

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Court name is required.")
        if self.price_per_hour <= 0:
            raise ValidationError("Price per hour must be greater than zero.")
