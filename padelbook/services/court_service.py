from decimal import Decimal, InvalidOperation
from typing import List, Optional

from padelbook.core.errors import NotFoundError, ValidationError
from padelbook.models.court import Court, CourtStatus
from padelbook.repositories.court_repository import CourtRepository


def parse_price(raw) -> Decimal:
    try:
        return Decimal(str(raw).strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValidationError("Price per hour must be a number.") from exc


class CourtService:
    def __init__(self, court_repo: CourtRepository):
        self.court_repo = court_repo

    def list(self, search: str = "", status: Optional[CourtStatus] = None) -> List[Court]:
        courts = self.court_repo.find_all(status)
        needle = (search or "").strip().lower()
        if not needle:
            return courts
        return [c for c in courts if needle in c.name.lower() or needle in (c.description or "").lower()]

    def get(self, court_id: int) -> Court:
        court = self.court_repo.find_by_id(court_id)
        if not court:
            raise NotFoundError("Court not found.")
        return court

    def save(self, court: Court) -> Court:
        court.validate()
        if court.id is None:
            return self.court_repo.create(court)
        self.get(court.id)
        self.court_repo.update(court)
        return court

    def delete(self, court_id: int) -> None:
        self.get(court_id)
        self.court_repo.delete(court_id)

    def toggle_status(self, court_id: int) -> Court:
        court = self.get(court_id)
        self.court_repo.update_status(court.id, court.toggle_status())
        return court
