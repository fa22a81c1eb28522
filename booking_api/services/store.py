import math
from dataclasses import dataclass, field
from datetime import date, datetime
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from ..models import (
    ACTIVE_STATUSES,
    Customer,
    Facility,
    Reservation,
    ReservationPayment,
    Site,
)


@dataclass
class ReservationFilters:
    status: str | None = None
    facility_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass
class Page:
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class ReservationStore:
    """Filtered reads and writes of reservation and catalog records."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, reservation_id: int) -> Reservation | None:
        return self.session.get(Reservation, reservation_id)

    def add(self, reservation: Reservation) -> None:
        self.session.add(reservation)

    def active_on(self, facility_id: int, site_id: int, day: date) -> list[Reservation]:
        q = select(Reservation).where(
            Reservation.facility_id == facility_id,
            Reservation.site_id == site_id,
            Reservation.reservation_date == day,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        return list(self.session.scalars(q))

    def active_by_site_on(self, day: date, site_ids) -> dict[int, list[Reservation]]:
        found: dict[int, list[Reservation]] = {}
        if not site_ids:
            return found
        q = select(Reservation).where(
            Reservation.reservation_date == day,
            Reservation.site_id.in_(list(site_ids)),
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        for r in self.session.scalars(q):
            found.setdefault(r.site_id, []).append(r)
        return found

    def active_site_ids_on(self, day: date) -> set[int]:
        q = select(Reservation.site_id).distinct().where(
            Reservation.reservation_date == day,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        return set(self.session.scalars(q))

    def created_between(self, start: datetime, end: datetime) -> list[Reservation]:
        q = (
            select(Reservation)
            .where(Reservation.created_at >= start, Reservation.created_at <= end)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        )
        return list(self.session.scalars(q))

    def search(self, filters: ReservationFilters, page: int = 1, limit: int = 20) -> Page:
        conditions = []
        if filters.status:
            conditions.append(Reservation.status == filters.status)
        if filters.facility_id:
            conditions.append(Reservation.facility_id == filters.facility_id)
        if filters.date_from:
            conditions.append(Reservation.reservation_date >= filters.date_from)
        if filters.date_to:
            conditions.append(Reservation.reservation_date <= filters.date_to)

        total = self.session.execute(
            select(func.count()).select_from(Reservation).where(*conditions)
        ).scalar_one()
        rows = self.session.scalars(
            select(Reservation)
            .where(*conditions)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        return Page(items=list(rows), total=int(total), page=page, limit=limit)

    def for_customer(self, customer_id: int, status: str | None = None) -> list[Reservation]:
        q = select(Reservation).where(Reservation.customer_id == customer_id)
        if status:
            q = q.where(Reservation.status == status)
        return list(self.session.scalars(q.order_by(Reservation.created_at.desc(), Reservation.id.desc())))

    def find_guest(self, reservation_id: int, guest_phone: str) -> Reservation | None:
        q = select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.guest_phone == guest_phone,
            Reservation.customer_id.is_(None),
        )
        return self.session.scalars(q).one_or_none()

    def payment_for(self, reservation_id: int) -> ReservationPayment | None:
        q = select(ReservationPayment).where(ReservationPayment.reservation_id == reservation_id)
        return self.session.scalars(q).one_or_none()

    # catalog

    def customer(self, customer_id: int) -> Customer | None:
        return self.session.get(Customer, customer_id)

    def facility(self, facility_id: int) -> Facility | None:
        return self.session.get(Facility, facility_id)

    def site(self, site_id: int) -> Site | None:
        return self.session.get(Site, site_id)

    def active_facilities(self, facility_id: int | None = None) -> list[Facility]:
        q = select(Facility).where(Facility.is_active.is_(True))
        if facility_id:
            q = q.where(Facility.id == facility_id)
        return list(self.session.scalars(q.order_by(Facility.id)))

    def active_sites(self, facility_id: int | None = None) -> list[Site]:
        q = select(Site).where(Site.is_active.is_(True))
        if facility_id:
            q = q.where(Site.facility_id == facility_id)
        return list(self.session.scalars(q.order_by(Site.id)))
