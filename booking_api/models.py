from sqlalchemy import CheckConstraint, UniqueConstraint, func
from .extensions import db
from .utils.time import db_utc_naive, utc_now

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"
RESERVATION_STATUSES = (PENDING, CONFIRMED, CANCELLED)
ACTIVE_STATUSES = (PENDING, CONFIRMED)

WAITING = "WAITING"
COMPLETED = "COMPLETED"
REFUNDED = "REFUNDED"
PAYMENT_STATUSES = (WAITING, COMPLETED, REFUNDED)

# Payment record statuses mirror the reservation's payment_status, plus CANCELLED.
PAYMENT_RECORD_PENDING = "PENDING"
PAYMENT_RECORD_CANCELLED = "CANCELLED"
BANK_TRANSFER = "BANK_TRANSFER"


def _now():
    return db_utc_naive(utc_now())


class Customer(db.Model):
    __tablename__ = "customers"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    reservations = db.relationship("Reservation", back_populates="customer")


class Facility(db.Model):
    __tablename__ = "facilities"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1)
    weekday_price = db.Column(db.Integer, nullable=False, default=0)
    weekend_price = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    sites = db.relationship("Site", back_populates="facility")


class Site(db.Model):
    __tablename__ = "sites"
    id = db.Column(db.Integer, primary_key=True)
    facility_id = db.Column(db.Integer, db.ForeignKey("facilities.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    site_number = db.Column(db.String(32))
    capacity = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    facility = db.relationship("Facility", back_populates="sites")


class Reservation(db.Model):
    __tablename__ = "reservations"
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    guest_name = db.Column(db.String(120))
    guest_phone = db.Column(db.String(32), index=True)
    guest_email = db.Column(db.String(255))

    facility_id = db.Column(db.Integer, db.ForeignKey("facilities.id"), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id"), nullable=False, index=True)
    reservation_date = db.Column(db.Date, nullable=False, index=True)
    time_slots = db.Column(db.JSON, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PENDING)
    payment_status = db.Column(db.String(16), nullable=False, default=WAITING)
    special_requests = db.Column(db.Text)
    admin_memo = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    cancelled_at = db.Column(db.DateTime(timezone=True))

    customer = db.relationship("Customer", back_populates="reservations")
    facility = db.relationship("Facility")
    site = db.relationship("Site")
    slots = db.relationship("ReservationSlot", back_populates="reservation", cascade="all, delete-orphan")
    payment = db.relationship("ReservationPayment", back_populates="reservation", uselist=False)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_reservation_amount_non_negative"),
        CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="ck_reservation_status"),
        CheckConstraint("payment_status IN ('WAITING', 'COMPLETED', 'REFUNDED')", name="ck_reservation_payment_status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class ReservationSlot(db.Model):
    """One claimed (site, date, slot) cell; exists only while its reservation is active."""

    __tablename__ = "reservation_slots"
    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.Integer, db.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = db.Column(db.Integer, nullable=False)
    reservation_date = db.Column(db.Date, nullable=False)
    slot = db.Column(db.Integer, nullable=False)

    reservation = db.relationship("Reservation", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("site_id", "reservation_date", "slot", name="uq_reservation_site_date_slot"),
    )


class ReservationPayment(db.Model):
    __tablename__ = "reservation_payments"
    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.Integer, db.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, unique=True)
    payment_method = db.Column(db.String(32), nullable=False, default=BANK_TRANSFER)
    amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_RECORD_PENDING)
    paid_at = db.Column(db.DateTime(timezone=True))
    refunded_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    reservation = db.relationship("Reservation", back_populates="payment")


class StoreSetting(db.Model):
    __tablename__ = "store_settings"
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.String(255))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
