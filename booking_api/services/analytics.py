"""
Read-only reservation statistics for the staff dashboard.

``summarize`` takes a snapshot without locking, so figures may trail
writes that land while it runs.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from ..models import CANCELLED, CONFIRMED, PENDING
from ..utils.time import db_utc_naive, start_of_day, store_today, utc_now
from .store import ReservationStore

PERIOD_ALIASES = {
    "week": "week",
    "7d": "week",
    "month": "month",
    "30d": "month",
    "quarter": "quarter",
    "90d": "quarter",
    "year": "year",
    "1y": "year",
}
RECENT_LIMIT = 10


def normalize_period(value: str | None) -> str:
    return PERIOD_ALIASES.get((value or "").strip().lower(), "month")


def period_range(period: str, today: date) -> tuple[date, date]:
    """Inclusive first and last calendar day covered by a canonical period."""
    if period == "week":
        return today - timedelta(days=6), today
    if period == "quarter":
        return today - timedelta(days=89), today
    if period == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    last = calendar.monthrange(today.year, today.month)[1]
    return date(today.year, today.month, 1), date(today.year, today.month, last)


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)


@dataclass
class PeriodWindow:
    period: str
    start_date: date
    end_date: date
    start: datetime
    end: datetime


class AnalyticsAggregator:
    def __init__(self, store: ReservationStore, tz_name: str = "UTC", clock=utc_now):
        self.store = store
        self.tz_name = tz_name
        self.clock = clock

    def window(self, period: str | None) -> PeriodWindow:
        canonical = normalize_period(period)
        today = store_today(self.clock(), self.tz_name)
        first, last = period_range(canonical, today)
        start = start_of_day(first, self.tz_name)
        end = start_of_day(last + timedelta(days=1), self.tz_name) - timedelta(microseconds=1)
        return PeriodWindow(canonical, first, last, start, end)

    def occupancy(self) -> dict:
        """Share of active sites holding an active reservation today."""
        today = store_today(self.clock(), self.tz_name)
        active_sites = {s.id for s in self.store.active_sites()}
        reserved = self.store.active_site_ids_on(today) & active_sites
        return {
            "total_sites": len(active_sites),
            "reserved_sites_today": len(reserved),
            "occupancy_rate": percentage(len(reserved), len(active_sites)),
        }

    def summarize(self, period: str | None = None) -> dict:
        window = self.window(period)
        reservations = self.store.created_between(db_utc_naive(window.start), db_utc_naive(window.end))
        live = [r for r in reservations if r.status != CANCELLED]
        confirmed = sum(1 for r in reservations if r.status == CONFIRMED)
        site_stats = self.occupancy()

        sites_per_facility: dict[int, int] = {}
        for site in self.store.active_sites():
            sites_per_facility[site.facility_id] = sites_per_facility.get(site.facility_id, 0) + 1

        breakdown = []
        for facility in self.store.active_facilities():
            mine = [r for r in live if r.facility_id == facility.id]
            breakdown.append({
                "facility_id": facility.id,
                "facility_name": facility.name,
                "facility_type": facility.type,
                "reservation_count": len(mine),
                "revenue": sum(r.total_amount for r in mine),
                "site_count": sites_per_facility.get(facility.id, 0),
            })

        return {
            "period": window.period,
            "start_date": window.start_date,
            "end_date": window.end_date,
            "revenue": sum(r.total_amount for r in live),
            "reservation_count": len(reservations),
            "confirmed": confirmed,
            "pending": sum(1 for r in reservations if r.status == PENDING),
            "cancelled": sum(1 for r in reservations if r.status == CANCELLED),
            "occupancy_rate": site_stats["occupancy_rate"],
            "conversion_rate": percentage(confirmed, len(reservations)),
            "per_facility_breakdown": breakdown,
            "site_stats": site_stats,
            "recent_reservations": reservations[:RECENT_LIMIT],
        }
