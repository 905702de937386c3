"""Read-side aggregation for the admin dashboard and the financial page.

Every figure is recomputed from reservation rows on each call.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from padelbook.core.errors import ValidationError
from padelbook.models.court import CourtStatus
from padelbook.models.reservation import ReservationStatus
from padelbook.repositories.court_repository import CourtRepository
from padelbook.repositories.reservation_repository import ReservationRepository
from padelbook.repositories.user_repository import UserRepository

PERIODS = ("week", "month", "year")


def sum_revenue(rows: Iterable[dict], status: Optional[ReservationStatus] = None) -> Decimal:
    total = Decimal("0")
    for row in rows:
        if status is not None and ReservationStatus(row["status"]) is not status:
            continue
        total += Decimal(str(row.get("total_price") or 0))
    return total


def revenue_by_status(rows: Iterable[dict]) -> Dict[str, Decimal]:
    totals = OrderedDict((s.value, Decimal("0")) for s in ReservationStatus)
    for row in rows:
        totals[ReservationStatus(row["status"]).value] += Decimal(str(row.get("total_price") or 0))
    return totals


def revenue_by_court(rows: Iterable[dict]) -> List[dict]:
    totals: Dict[int, dict] = {}
    for row in rows:
        entry = totals.setdefault(row["court_id"], {"court_id": row["court_id"], "name": row.get("court_name", ""),
                                                   "value": Decimal("0")})
        entry["value"] += Decimal(str(row.get("total_price") or 0))
    return sorted(totals.values(), key=lambda e: e["value"], reverse=True)


def percentage(value: Decimal, total: Decimal) -> int:
    if not total:
        return 0
    return int((Decimal(value) / Decimal(total) * 100).quantize(Decimal("1")))


def shift_month(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_bounds(day: date) -> Tuple[datetime, datetime]:
    first = day.replace(day=1)
    following = shift_month(first, 1)
    return datetime.combine(first, time.min), datetime.combine(following, time.min) - timedelta(microseconds=1)


def period_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        first = shift_month(now.date(), -1)
        # clamp to the last day of the previous month
        last_day = (shift_month(first, 1) - timedelta(days=1)).day
        return now.replace(year=first.year, month=first.month, day=min(now.day, last_day))
    if period == "year":
        try:
            return now.replace(year=now.year - 1)
        except ValueError:  # 29 February
            return now.replace(year=now.year - 1, day=28)
    raise ValidationError(f"Unknown period '{period}'.")


def _start_of(row: dict) -> datetime:
    value = row["start_time"]
    return value.replace(tzinfo=None) if value.tzinfo else value


@dataclass
class FinancialReport:
    period: str
    total_revenue: Decimal
    by_status: Dict[str, Decimal]
    monthly: List[Tuple[str, Decimal]] = field(default_factory=list)
    by_court: List[dict] = field(default_factory=list)

    def share(self, status: ReservationStatus) -> int:
        return percentage(self.by_status[status.value], self.total_revenue)


class ReportingService:
    def __init__(self, reservation_repo: ReservationRepository, court_repo: CourtRepository,
                 user_repo: UserRepository):
        self.reservation_repo = reservation_repo
        self.court_repo = court_repo
        self.user_repo = user_repo

    def dashboard(self, now: datetime) -> dict:
        today = now.date()
        today_rows = self.reservation_repo.find_in_range(
            datetime.combine(today, time.min), datetime.combine(today, time.max)
        )
        month_start, _ = month_bounds(today)
        confirmed_month = self.reservation_repo.find_in_range(month_start, now, ReservationStatus.CONFIRMED)

        week_start = datetime.combine(today - timedelta(days=6), time.min)
        confirmed_week = self.reservation_repo.find_in_range(
            week_start, datetime.combine(today, time.max), ReservationStatus.CONFIRMED
        )
        per_day = OrderedDict(((today - timedelta(days=i)), Decimal("0")) for i in range(6, -1, -1))
        for row in confirmed_week:
            day = _start_of(row).date()
            if day in per_day:
                per_day[day] += Decimal(str(row["total_price"] or 0))

        return {
            "today_reservations": today_rows,
            "today_count": len(today_rows),
            "active_courts": self.court_repo.count_by_status(CourtStatus.AVAILABLE),
            "total_users": self.user_repo.count_profiles(),
            "monthly_revenue": sum_revenue(confirmed_month),
            "revenue_per_day": [(day.strftime("%b %d"), value) for day, value in per_day.items()],
        }

    def financial(self, period: str, now: datetime) -> FinancialReport:
        if period not in PERIODS:
            raise ValidationError(f"Unknown period '{period}'.")
        months = 12 if period == "year" else 1
        first_month = shift_month(now.date(), -(months - 1))
        rows = self.reservation_repo.find_in_range(datetime.combine(first_month, time.min), now)

        buckets = OrderedDict()
        for i in range(months - 1, -1, -1):
            month = shift_month(now.date(), -i)
            buckets[(month.year, month.month)] = []
        for row in rows:
            start = _start_of(row)
            key = (start.year, start.month)
            if key in buckets:
                buckets[key].append(row)

        current = buckets[(now.year, now.month)]
        since = period_start(period, now)
        period_rows = self.reservation_repo.find_in_range(since, now)
        return FinancialReport(
            period=period,
            total_revenue=sum_revenue(current),
            by_status=revenue_by_status(current),
            monthly=[(date(y, m, 1).strftime("%b"), sum_revenue(items)) for (y, m), items in buckets.items()],
            by_court=revenue_by_court(period_rows),
        )

    def reservations(self, start: date, end: date, status: Optional[ReservationStatus] = None) -> List[dict]:
        if end < start:
            raise ValidationError("The end date must not be before the start date.")
        return self.reservation_repo.find_in_range(
            datetime.combine(start, time.min), datetime.combine(end, time.max), status
        )
