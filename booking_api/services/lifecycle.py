"""
Reservation lifecycle: creation with conflict checks, the status state
machine, customer cancellation and limited edits.

The reservation write and its slot claims share one transaction; the
``reservation_slots`` unique key is what finally rejects a double booking
when two requests pass the read-side check at the same time. Payment
bookkeeping and notifications happen after that commit and never undo it.
"""
import logging
from datetime import timedelta
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from ..auth import Actor
from ..errors import (
    AuthorizationError,
    BookingValidationError,
    ConflictError,
    InternalError,
    NotFoundError,
)
from ..models import (
    BANK_TRANSFER,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PAYMENT_RECORD_CANCELLED,
    PAYMENT_RECORD_PENDING,
    PAYMENT_STATUSES,
    PENDING,
    REFUNDED,
    RESERVATION_STATUSES,
    WAITING,
    Reservation,
    ReservationPayment,
    ReservationSlot,
)
from ..schemas import CreateReservationRequest, UpdateReservationRequest
from ..settings import StoreSettings
from ..utils.time import db_utc_naive, start_of_day, store_today, to_utc, utc_now
from .availability import ConflictChecker
from .store import ReservationStore

logger = logging.getLogger(__name__)

TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {CANCELLED},
    CANCELLED: set(),
}

_PAYMENT_RECORD_STATUS = {
    WAITING: PAYMENT_RECORD_PENDING,
    COMPLETED: COMPLETED,
    REFUNDED: REFUNDED,
}


def can_transition(current: str, target: str) -> bool:
    """Edges of the state graph, plus same-state edits on non-terminal states."""
    if current == target:
        return current != CANCELLED
    return target in TRANSITIONS.get(current, ())


def validate_time_slots(time_slots, slots_per_day: int) -> list[int]:
    if not time_slots:
        raise BookingValidationError("Select at least one time slot.", code="INVALID_TIME_SLOTS")
    if len(set(time_slots)) != len(time_slots):
        raise BookingValidationError("Time slots must not repeat.", code="INVALID_TIME_SLOTS")
    bad = [s for s in time_slots if s < 1 or s > slots_per_day]
    if bad:
        raise BookingValidationError(
            f"Time slots must be between 1 and {slots_per_day}.",
            code="INVALID_TIME_SLOTS",
            details={"invalid": bad},
        )
    return sorted(time_slots)


def _validation_details(e: ValidationError):
    return e.errors(include_url=False, include_context=False)


class ReservationService:
    def __init__(self, session: Session, settings: StoreSettings, notifier=None, clock=utc_now):
        self.session = session
        self.settings = settings
        self.notifier = notifier
        self.clock = clock
        self.store = ReservationStore(session)
        self.checker = ConflictChecker(self.store)

    # -- creation -----------------------------------------------------------

    def create(self, booking_request: dict) -> Reservation:
        try:
            data = CreateReservationRequest.model_validate(booking_request)
        except ValidationError as e:
            raise BookingValidationError("Invalid input.", details=_validation_details(e))

        slots = validate_time_slots(data.time_slots, self.settings.slots_per_day)
        self._check_identity(data)

        facility = self.store.facility(data.facility_id)
        if facility is None or not facility.is_active:
            raise NotFoundError("Facility not found or not operating.", code="FACILITY_NOT_FOUND")
        site = self.store.site(data.site_id)
        if site is None or not site.is_active or site.facility_id != facility.id:
            raise NotFoundError("Site not found or not operating.", code="SITE_NOT_FOUND")
        if data.customer_id is not None and self.store.customer(data.customer_id) is None:
            raise NotFoundError("Customer not found.", code="CUSTOMER_NOT_FOUND")

        taken = self.checker.conflicting(facility.id, site.id, data.reservation_date, slots)
        if taken:
            raise ConflictError(
                "The selected time slot is already booked.",
                code="TIME_SLOT_CONFLICT",
                details={"slots": sorted(taken)},
            )

        now = db_utc_naive(self.clock())
        reservation = Reservation(
            customer_id=data.customer_id,
            guest_name=data.guest_name,
            guest_phone=data.guest_phone,
            guest_email=str(data.guest_email).lower() if data.guest_email else None,
            facility_id=facility.id,
            site_id=site.id,
            reservation_date=data.reservation_date,
            time_slots=slots,
            total_amount=data.total_amount,
            special_requests=data.special_requests,
            status=PENDING,
            payment_status=WAITING,
            created_at=now,
            updated_at=now,
        )
        reservation.slots = [
            ReservationSlot(site_id=site.id, reservation_date=data.reservation_date, slot=s)
            for s in slots
        ]
        self.store.add(reservation)

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.info("Slot race lost for site %s on %s slots %s", data.site_id, data.reservation_date, slots)
            raise ConflictError(
                "The selected time slot was just booked. Pick another time.",
                code="TIME_SLOT_CONFLICT",
            )
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Reservation insert failed")
            raise InternalError("Could not create the reservation.")

        logger.info("Reservation %s created for site %s on %s", reservation.id, site.id, reservation.reservation_date)
        self._create_payment_record(reservation)
        self._notify("reservation.created", reservation)
        return reservation

    def _check_identity(self, data: CreateReservationRequest) -> None:
        has_guest = any((data.guest_name, data.guest_phone, data.guest_email))
        if data.customer_id is not None and has_guest:
            raise BookingValidationError(
                "Provide either a member id or guest contact details, not both.",
                code="MISSING_CUSTOMER_INFO",
            )
        if data.customer_id is None and not (data.guest_name and data.guest_phone):
            raise BookingValidationError(
                "A member id or guest name and phone number is required.",
                code="MISSING_CUSTOMER_INFO",
            )

    def _create_payment_record(self, reservation: Reservation) -> None:
        try:
            self.session.add(ReservationPayment(
                reservation_id=reservation.id,
                payment_method=BANK_TRANSFER,
                amount=reservation.total_amount,
                status=PAYMENT_RECORD_PENDING,
            ))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Payment record for reservation %s was not created", reservation.id)

    # -- state machine ------------------------------------------------------

    def update_status(self, reservation_id: int, target_status: str, admin_memo: str | None = None,
                      payment_status: str | None = None) -> Reservation:
        if target_status not in RESERVATION_STATUSES:
            raise BookingValidationError(
                f"Invalid status. Allowed: {', '.join(RESERVATION_STATUSES)}",
                code="INVALID_STATUS",
            )
        if payment_status is not None and payment_status not in PAYMENT_STATUSES:
            raise BookingValidationError(
                f"Invalid payment status. Allowed: {', '.join(PAYMENT_STATUSES)}",
                code="INVALID_PAYMENT_STATUS",
            )

        reservation = self._load(reservation_id)
        previous = reservation.status
        if not can_transition(previous, target_status):
            raise ConflictError(
                f"Cannot change a {previous} reservation to {target_status}.",
                code="INVALID_TRANSITION",
            )

        now = db_utc_naive(self.clock())
        if target_status == CANCELLED:
            self._mark_cancelled(reservation, now)
        else:
            reservation.status = target_status
        if admin_memo is not None:
            reservation.admin_memo = admin_memo
        if payment_status is not None:
            reservation.payment_status = payment_status
        reservation.updated_at = now
        self._commit("status update", reservation_id)

        logger.info("Reservation %s: %s -> %s", reservation_id, previous, target_status)
        if target_status == CANCELLED:
            self._mirror_payment(reservation_id, PAYMENT_RECORD_CANCELLED, refunded=payment_status == REFUNDED)
        elif payment_status is not None:
            self._mirror_payment(reservation_id, _PAYMENT_RECORD_STATUS[payment_status])
        self._notify("reservation.status_changed", reservation, previousStatus=previous)
        return reservation

    def cancel(self, reservation_id: int, actor: Actor, reason: str | None = None) -> Reservation:
        reservation = self._load(reservation_id)
        self._authorize(actor, reservation)

        if reservation.status == CANCELLED:
            raise ConflictError("The reservation is already cancelled.", code="ALREADY_CANCELLED")
        if not can_transition(reservation.status, CANCELLED):
            raise ConflictError(
                f"Cannot cancel a {reservation.status} reservation.",
                code="INVALID_TRANSITION",
            )

        now = to_utc(self.clock())
        cutoff = start_of_day(reservation.reservation_date, self.settings.timezone) - timedelta(
            hours=self.settings.cancellation_cutoff_hours
        )
        if now >= cutoff:
            raise ConflictError(
                "The cancellation deadline for this reservation has passed.",
                code="CANCELLATION_CUTOFF",
                details={"cutoffHours": self.settings.cancellation_cutoff_hours},
            )

        stamp = db_utc_naive(now)
        self._mark_cancelled(reservation, stamp)
        reservation.admin_memo = f"[Cancellation reason] {reason}" if reason else "[Cancelled by customer]"
        reservation.updated_at = stamp
        self._commit("cancellation", reservation_id)

        logger.info("Reservation %s cancelled by %s", reservation_id, actor.role)
        self._mirror_payment(reservation_id, PAYMENT_RECORD_CANCELLED)
        self._notify("reservation.cancelled", reservation)
        return reservation

    # -- limited edits ------------------------------------------------------

    def update(self, reservation_id: int, patch: dict, actor: Actor) -> Reservation:
        reservation = self._load(reservation_id)
        self._authorize(actor, reservation)

        if reservation.status == CANCELLED:
            raise ConflictError("Cancelled reservations cannot be modified.", code="RESERVATION_CANCELLED")
        if reservation.status == CONFIRMED:
            raise ConflictError(
                "Confirmed reservations cannot be modified. Cancel and book again.",
                code="CONFIRMED_RESERVATION_CANNOT_MODIFY",
            )
        today = store_today(self.clock(), self.settings.timezone)
        if reservation.reservation_date <= today:
            raise ConflictError(
                "Reservations on or after their date cannot be modified.",
                code="PAST_RESERVATION_CANNOT_MODIFY",
            )

        try:
            data = UpdateReservationRequest.model_validate(patch or {})
        except ValidationError as e:
            raise BookingValidationError("Invalid input.", details=_validation_details(e))
        if "special_requests" not in data.model_fields_set:
            raise BookingValidationError("Nothing to change.", code="NO_CHANGES")

        reservation.special_requests = data.special_requests
        reservation.updated_at = db_utc_naive(self.clock())
        self._commit("update", reservation_id)
        return reservation

    # -- helpers ------------------------------------------------------------

    def _load(self, reservation_id: int) -> Reservation:
        reservation = self.store.get(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found.", code="RESERVATION_NOT_FOUND")
        return reservation

    def _authorize(self, actor: Actor, reservation: Reservation) -> None:
        if actor.is_staff:
            return
        if reservation.customer_id is not None:
            allowed = actor.customer_id == reservation.customer_id
        else:
            allowed = bool(actor.guest_phone) and actor.guest_phone == reservation.guest_phone
        if not allowed:
            raise AuthorizationError("You can only change your own reservations.")

    def _mark_cancelled(self, reservation: Reservation, stamp) -> None:
        reservation.status = CANCELLED
        reservation.cancelled_at = stamp
        # frees the (site, date, slot) keys for new bookings
        reservation.slots.clear()

    def _commit(self, action: str, reservation_id: int) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Reservation %s %s failed", reservation_id, action)
            raise InternalError(f"Could not save the reservation {action}.")

    def _mirror_payment(self, reservation_id: int, status: str, refunded: bool = False) -> None:
        try:
            payment = self.store.payment_for(reservation_id)
            if payment is None:
                logger.warning("Reservation %s has no payment record to mirror %s onto", reservation_id, status)
                return
            payment.status = status
            now = db_utc_naive(self.clock())
            if status == COMPLETED:
                payment.paid_at = now
            elif status == REFUNDED or refunded:
                payment.refunded_at = now
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Payment record for reservation %s not updated to %s", reservation_id, status)

    def _notify(self, event: str, reservation: Reservation, **extra) -> None:
        if self.notifier is None:
            return
        payload = {
            "reservationId": reservation.id,
            "status": reservation.status,
            "siteId": reservation.site_id,
            "reservationDate": reservation.reservation_date.isoformat(),
            "timeSlots": list(reservation.time_slots),
            **extra,
        }
        try:
            self.notifier.notify(event, payload)
        except Exception:
            logger.exception("Notification %s for reservation %s could not be queued", event, reservation.id)
