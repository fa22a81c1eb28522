from datetime import date, datetime, timezone

import pytest

from booking_api.app import create_app
from booking_api.config import TestConfig
from booking_api.extensions import db
from booking_api.models import Customer, Facility, Site
from booking_api.services.lifecycle import ReservationService
from booking_api.settings import StoreSettings

ADMIN_TOKEN = "test-admin-token"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", ADMIN_TOKEN)
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def catalog(app):
    facility = Facility(name="Tent Zone", type="tent", capacity=4, weekday_price=50000, weekend_price=70000)
    other = Facility(name="VIP Lounge", type="vip", capacity=10, weekday_price=150000, weekend_price=200000)
    db.session.add_all([facility, other])
    db.session.flush()
    s1 = Site(facility_id=facility.id, name="Tent 1", site_number="T1", capacity=4)
    s2 = Site(facility_id=facility.id, name="Tent 2", site_number="T2", capacity=4)
    vip = Site(facility_id=other.id, name="VIP 1", site_number="V1", capacity=10)
    member = Customer(name="Kim Member", email="member@example.com", phone="010-1111-2222")
    db.session.add_all([s1, s2, vip, member])
    db.session.commit()
    return {"facility": facility, "other": other, "s1": s1, "s2": s2, "vip": vip, "member": member}


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 2, 20, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return StoreSettings(
        timezone="UTC",
        slots_per_day=4,
        cancellation_cutoff_hours=0,
        bank_account_info="Test Bank 123-456",
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(app, settings, notifier, clock):
    return ReservationService(db.session, settings, notifier=notifier, clock=clock)


@pytest.fixture
def guest_booking(catalog):
    """Builds a guest booking payload for site S1, overridable per test."""
    def build(**overrides):
        payload = {
            "facility_id": catalog["facility"].id,
            "site_id": catalog["s1"].id,
            "reservation_date": date(2025, 3, 1).isoformat(),
            "time_slots": [1, 2],
            "total_amount": 100000,
            "guest_name": "Lee Guest",
            "guest_phone": "010-9999-8888",
        }
        payload.update(overrides)
        return payload
    return build
