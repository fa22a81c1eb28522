from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from booking_api.auth import GUEST, MEMBER, STAFF, Actor
from booking_api.errors import (
    AuthorizationError,
    BookingValidationError,
    ConflictError,
    NotFoundError,
)
from booking_api.extensions import db
from booking_api.models import (
    ACTIVE_STATUSES,
    CANCELLED,
    CONFIRMED,
    PENDING,
    Reservation,
    ReservationPayment,
    ReservationSlot,
)
from booking_api.services import lifecycle
from booking_api.services.availability import ConflictChecker
from booking_api.services.lifecycle import ReservationService, can_transition
from booking_api.services.store import ReservationStore

STAFF_ACTOR = Actor(role=STAFF)


def _count(model):
    return len(db.session.scalars(select(model)).all())


# -- creation and conflicts -----------------------------------------------------

def test_create_persists_pending_reservation_with_payment_record(service, guest_booking, notifier):
    res = service.create(guest_booking())

    assert res.status == PENDING
    assert res.payment_status == "WAITING"
    assert res.time_slots == [1, 2]
    assert res.created_at == datetime(2025, 2, 20, 10, 0)
    assert res.payment is not None
    assert res.payment.payment_method == "BANK_TRANSFER"
    assert res.payment.amount == 100000
    assert res.payment.status == "PENDING"
    assert [e for e, _ in notifier.events] == ["reservation.created"]


def test_overlapping_slot_is_rejected_without_writing(service, guest_booking):
    service.create(guest_booking(time_slots=[1, 2]))

    with pytest.raises(ConflictError) as exc:
        service.create(guest_booking(time_slots=[2, 3]))

    assert exc.value.code == "TIME_SLOT_CONFLICT"
    assert exc.value.details == {"slots": [2]}
    assert _count(Reservation) == 1


def test_disjoint_slots_and_other_sites_do_not_conflict(service, guest_booking, catalog):
    service.create(guest_booking(time_slots=[1, 2]))
    service.create(guest_booking(time_slots=[3, 4]))
    service.create(guest_booking(site_id=catalog["s2"].id, time_slots=[1, 2]))
    service.create(guest_booking(reservation_date="2025-03-02", time_slots=[1, 2]))

    assert _count(Reservation) == 4


def test_cancelled_reservation_frees_its_slots(service, guest_booking):
    first = service.create(guest_booking(time_slots=[1, 2]))
    service.update_status(first.id, CANCELLED)

    again = service.create(guest_booking(time_slots=[2, 3]))

    assert again.status == PENDING
    assert _count(ReservationSlot) == 2


def test_store_uniqueness_violation_surfaces_as_conflict(service, guest_booking, monkeypatch):
    service.create(guest_booking(time_slots=[1, 2]))
    # a concurrent request that read before the first insert committed
    monkeypatch.setattr(service.checker, "conflicting", lambda *args: set())

    with pytest.raises(ConflictError) as exc:
        service.create(guest_booking(time_slots=[2, 3]))

    assert exc.value.code == "TIME_SLOT_CONFLICT"
    assert _count(Reservation) == 1
    assert _count(ReservationSlot) == 2


def test_no_overlap_invariant_holds_across_many_bookings(service, guest_booking, catalog):
    attempts = [[1], [1, 2], [2, 3], [3], [4], [3, 4], [2], [1, 4]]
    for slots in attempts:
        try:
            service.create(guest_booking(time_slots=slots))
        except ConflictError:
            pass

    active = [r for r in db.session.scalars(select(Reservation)) if r.status in ACTIVE_STATUSES]
    seen = set()
    for r in active:
        assert seen.isdisjoint(r.time_slots)
        seen.update(r.time_slots)


@pytest.mark.parametrize("slots, code", [
    ([], "INVALID_TIME_SLOTS"),
    ([1, 1], "INVALID_TIME_SLOTS"),
    ([0], "INVALID_TIME_SLOTS"),
    ([5], "INVALID_TIME_SLOTS"),
])
def test_bad_time_slots_fail_validation(service, guest_booking, slots, code):
    with pytest.raises(BookingValidationError) as exc:
        service.create(guest_booking(time_slots=slots))
    assert exc.value.code == code
    assert _count(Reservation) == 0


@pytest.mark.parametrize("field", ["facility_id", "site_id", "reservation_date", "time_slots", "total_amount"])
def test_missing_required_field_fails_validation(service, guest_booking, field):
    payload = guest_booking()
    del payload[field]
    with pytest.raises(BookingValidationError) as exc:
        service.create(payload)
    assert exc.value.code == "VALIDATION_ERROR"
    assert any(field in err["loc"] for err in exc.value.details)


def test_negative_amount_fails_validation(service, guest_booking):
    with pytest.raises(BookingValidationError):
        service.create(guest_booking(total_amount=-1))


def test_identity_requires_exactly_one_mode(service, guest_booking, catalog):
    with pytest.raises(BookingValidationError) as exc:
        service.create(guest_booking(guest_name=None, guest_phone=None))
    assert exc.value.code == "MISSING_CUSTOMER_INFO"

    with pytest.raises(BookingValidationError) as exc:
        service.create(guest_booking(customer_id=catalog["member"].id))
    assert exc.value.code == "MISSING_CUSTOMER_INFO"


def test_member_booking(service, guest_booking, catalog):
    res = service.create(guest_booking(guest_name=None, guest_phone=None, customer_id=catalog["member"].id))
    assert res.customer_id == catalog["member"].id
    assert res.guest_phone is None


def test_unknown_or_inactive_catalog_entries_are_not_found(service, guest_booking, catalog):
    with pytest.raises(NotFoundError) as exc:
        service.create(guest_booking(facility_id=999))
    assert exc.value.code == "FACILITY_NOT_FOUND"

    with pytest.raises(NotFoundError) as exc:
        service.create(guest_booking(site_id=catalog["vip"].id))
    assert exc.value.code == "SITE_NOT_FOUND"

    catalog["s2"].is_active = False
    db.session.commit()
    with pytest.raises(NotFoundError):
        service.create(guest_booking(site_id=catalog["s2"].id))

    with pytest.raises(NotFoundError) as exc:
        service.create(guest_booking(guest_name=None, guest_phone=None, customer_id=4242))
    assert exc.value.code == "CUSTOMER_NOT_FOUND"


def test_payment_record_failure_keeps_the_booking(service, guest_booking, monkeypatch):
    def broken(**kwargs):
        raise SQLAlchemyError("payments table unavailable")
    monkeypatch.setattr(lifecycle, "ReservationPayment", broken)

    res = service.create(guest_booking())

    assert res.id is not None
    assert res.status == PENDING
    assert _count(ReservationPayment) == 0


def test_notification_failure_keeps_the_booking(app, settings, clock, guest_booking):
    class Exploding:
        def notify(self, event, payload):
            raise RuntimeError("queue full")

    service = ReservationService(db.session, settings, notifier=Exploding(), clock=clock)
    res = service.create(guest_booking())
    assert res.status == PENDING


def test_checker_ignores_cancelled_and_reports_occupied(service, guest_booking, catalog):
    a = service.create(guest_booking(time_slots=[1]))
    service.create(guest_booking(time_slots=[3]))
    service.update_status(a.id, CANCELLED)

    checker = ConflictChecker(ReservationStore(db.session))
    fid, sid = catalog["facility"].id, catalog["s1"].id
    assert checker.has_conflict(fid, sid, date(2025, 3, 1), [1]) is False
    assert checker.has_conflict(fid, sid, date(2025, 3, 1), [3, 4]) is True
    assert checker.occupied_slots(fid, sid, date(2025, 3, 1)) == [3]


def test_availability_map_lists_free_slots(service, guest_booking, catalog):
    service.create(guest_booking(time_slots=[2, 3]))

    checker = ConflictChecker(ReservationStore(db.session))
    result = checker.availability(date(2025, 3, 1), 4)

    s1 = result[catalog["facility"].id]["sites"][catalog["s1"].id]
    assert s1["occupiedTimeSlots"] == [2, 3]
    assert s1["availableTimeSlots"] == [1, 4]
    vip = result[catalog["other"].id]["sites"][catalog["vip"].id]
    assert vip["availableTimeSlots"] == [1, 2, 3, 4]


# -- state machine ----------------------------------------------------------------

@pytest.mark.parametrize("current, target, allowed", [
    (PENDING, CONFIRMED, True),
    (PENDING, CANCELLED, True),
    (CONFIRMED, CANCELLED, True),
    (CONFIRMED, PENDING, False),
    (CANCELLED, PENDING, False),
    (CANCELLED, CONFIRMED, False),
    (CANCELLED, CANCELLED, False),
])
def test_transition_graph(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_confirm_with_payment_then_back_to_pending_fails(service, guest_booking):
    res = service.create(guest_booking())

    confirmed = service.update_status(res.id, CONFIRMED, admin_memo="paid by transfer", payment_status="COMPLETED")
    assert confirmed.status == CONFIRMED
    assert confirmed.payment_status == "COMPLETED"
    assert confirmed.admin_memo == "paid by transfer"
    assert confirmed.payment.status == "COMPLETED"
    assert confirmed.payment.paid_at is not None

    with pytest.raises(ConflictError) as exc:
        service.update_status(res.id, PENDING)
    assert exc.value.code == "INVALID_TRANSITION"
    assert db.session.get(Reservation, res.id).status == CONFIRMED


def test_cancelled_is_terminal(service, guest_booking):
    res = service.create(guest_booking())
    service.update_status(res.id, CANCELLED)

    for target in (PENDING, CONFIRMED, CANCELLED):
        with pytest.raises(ConflictError):
            service.update_status(res.id, target)


def test_staff_cancel_sets_cancelled_at_and_mirrors_payment(service, guest_booking):
    res = service.create(guest_booking())
    out = service.update_status(res.id, CANCELLED, admin_memo="no-show risk")

    assert out.cancelled_at is not None
    assert out.payment.status == "CANCELLED"
    assert out.slots == []


def test_cancel_with_refund_stamps_refunded_at(service, guest_booking):
    res = service.create(guest_booking())
    service.update_status(res.id, CONFIRMED, payment_status="COMPLETED")

    out = service.update_status(res.id, CANCELLED, payment_status="REFUNDED")

    assert out.payment_status == "REFUNDED"
    assert out.payment.status == "CANCELLED"
    assert out.payment.refunded_at is not None


def test_update_status_rejects_bad_enums_without_changes(service, guest_booking):
    res = service.create(guest_booking())

    with pytest.raises(BookingValidationError) as exc:
        service.update_status(res.id, "DONE")
    assert exc.value.code == "INVALID_STATUS"

    with pytest.raises(BookingValidationError) as exc:
        service.update_status(res.id, CONFIRMED, payment_status="PAID")
    assert exc.value.code == "INVALID_PAYMENT_STATUS"

    assert db.session.get(Reservation, res.id).status == PENDING


def test_update_status_unknown_reservation(service):
    with pytest.raises(NotFoundError):
        service.update_status(12345, CONFIRMED)


# -- customer cancellation ----------------------------------------------------------

def test_cancel_tomorrow_succeeds(service, guest_booking, clock, notifier):
    tomorrow = (clock.now + timedelta(days=1)).date()
    res = service.create(guest_booking(reservation_date=tomorrow.isoformat()))

    out = service.cancel(res.id, Actor(role=GUEST, guest_phone="010-9999-8888"), reason="plans changed")

    assert out.status == CANCELLED
    assert out.cancelled_at == datetime(2025, 2, 20, 10, 0)
    assert out.admin_memo == "[Cancellation reason] plans changed"
    assert out.payment.status == "CANCELLED"
    assert notifier.events[-1][0] == "reservation.cancelled"


def test_cancel_on_the_day_is_blocked(service, guest_booking, clock):
    today = clock.now.date()
    res = service.create(guest_booking(reservation_date=today.isoformat()))

    with pytest.raises(ConflictError) as exc:
        service.cancel(res.id, STAFF_ACTOR)

    assert exc.value.code == "CANCELLATION_CUTOFF"
    fresh = db.session.get(Reservation, res.id)
    assert fresh.status == PENDING
    assert fresh.cancelled_at is None
    assert fresh.payment.status == "PENDING"


def test_cutoff_window_is_configurable(app, settings, clock, guest_booking):
    from dataclasses import replace
    strict = ReservationService(db.session, replace(settings, cancellation_cutoff_hours=24), clock=clock)
    tomorrow = (clock.now + timedelta(days=1)).date()
    later = (clock.now + timedelta(days=2)).date()
    near = strict.create(guest_booking(reservation_date=tomorrow.isoformat()))
    far = strict.create(guest_booking(reservation_date=later.isoformat()))

    with pytest.raises(ConflictError) as exc:
        strict.cancel(near.id, STAFF_ACTOR)
    assert exc.value.code == "CANCELLATION_CUTOFF"

    assert strict.cancel(far.id, STAFF_ACTOR).status == CANCELLED


def test_cutoff_uses_store_timezone(app, settings, clock, guest_booking):
    from dataclasses import replace
    # 16:00 UTC on Feb 28 is already Mar 1 in Seoul
    clock.now = datetime(2025, 2, 28, 16, 0, tzinfo=timezone.utc)
    seoul = ReservationService(db.session, replace(settings, timezone="Asia/Seoul"), clock=clock)
    res = seoul.create(guest_booking())

    with pytest.raises(ConflictError):
        seoul.cancel(res.id, STAFF_ACTOR)


def test_cancel_twice_reports_already_cancelled(service, guest_booking):
    res = service.create(guest_booking())
    service.cancel(res.id, STAFF_ACTOR)

    with pytest.raises(ConflictError) as exc:
        service.cancel(res.id, STAFF_ACTOR)
    assert exc.value.code == "ALREADY_CANCELLED"


def test_cancel_checks_ownership(service, guest_booking, catalog):
    guest_res = service.create(guest_booking())
    member_res = service.create(guest_booking(
        guest_name=None, guest_phone=None, customer_id=catalog["member"].id, time_slots=[3],
    ))

    with pytest.raises(AuthorizationError):
        service.cancel(guest_res.id, Actor(role=GUEST, guest_phone="010-0000-0000"))
    with pytest.raises(AuthorizationError):
        service.cancel(member_res.id, Actor(role=MEMBER, customer_id=catalog["member"].id + 1))
    with pytest.raises(AuthorizationError):
        service.cancel(member_res.id, Actor(role=GUEST, guest_phone="010-1111-2222"))

    out = service.cancel(member_res.id, Actor(role=MEMBER, customer_id=catalog["member"].id))
    assert out.admin_memo == "[Cancelled by customer]"


# -- limited edits ----------------------------------------------------------------

def test_update_special_requests_on_future_pending(service, guest_booking):
    res = service.create(guest_booking())
    out = service.update(res.id, {"special_requests": "Extra chairs please"}, STAFF_ACTOR)
    assert out.special_requests == "Extra chairs please"


def test_update_ignores_fields_outside_the_whitelist(service, guest_booking):
    res = service.create(guest_booking())
    out = service.update(res.id, {"special_requests": "late arrival", "total_amount": 1}, STAFF_ACTOR)
    assert out.total_amount == 100000


def test_update_rejections(service, guest_booking, clock):
    res = service.create(guest_booking())
    with pytest.raises(BookingValidationError) as exc:
        service.update(res.id, {"total_amount": 1}, STAFF_ACTOR)
    assert exc.value.code == "NO_CHANGES"

    service.update_status(res.id, CONFIRMED)
    with pytest.raises(ConflictError) as exc:
        service.update(res.id, {"special_requests": "x"}, STAFF_ACTOR)
    assert exc.value.code == "CONFIRMED_RESERVATION_CANNOT_MODIFY"

    today = service.create(guest_booking(reservation_date=clock.now.date().isoformat()))
    with pytest.raises(ConflictError) as exc:
        service.update(today.id, {"special_requests": "x"}, STAFF_ACTOR)
    assert exc.value.code == "PAST_RESERVATION_CANNOT_MODIFY"

    gone = service.create(guest_booking(time_slots=[4]))
    service.update_status(gone.id, CANCELLED)
    with pytest.raises(ConflictError) as exc:
        service.update(gone.id, {"special_requests": "x"}, STAFF_ACTOR)
    assert exc.value.code == "RESERVATION_CANCELLED"
