import logging
import random
from datetime import timedelta
import click
from flask import Flask, jsonify
from flask.cli import with_appcontext
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from .extensions import db, migrate
from .config import Config
from .errors import ApiError, ConflictError
from .http import jerror
from .blueprints.reservations import bp as reservations_bp
from .blueprints.admin import bp as admin_bp
from .models import Customer, Facility, Reservation, ReservationPayment, ReservationSlot, Site
from .notifications import WebhookNotifier
from .settings import load_store_settings
from .services.lifecycle import ReservationService
from .utils.time import store_today, utc_now

logger = logging.getLogger(__name__)

def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)

def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        if e.status >= 500:
            logger.error("%s: %s", e.code, e.message)
            return jerror(e.status, e.code, "Something went wrong. Please try again later.")
        return jerror(e.status, e.code, e.message, e.details)

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Unhandled storage error")
        return jerror(500, "INTERNAL_ERROR", "Something went wrong. Please try again later.")

    @app.errorhandler(404)
    def handle_not_found(e):
        return jerror(404, "NOT_FOUND", "Resource not found.")

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jerror(405, "METHOD_NOT_ALLOWED", "Method not allowed.")

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jerror(e.code or 500, e.name.upper().replace(" ", "_"), e.description or e.name)
        db.session.rollback()
        logger.exception("Unhandled error")
        return jerror(500, "INTERNAL_ERROR", "Something went wrong. Please try again later.")

def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)
    if app.config["TRUSTED_PROXY_COUNT"]:
        n = app.config["TRUSTED_PROXY_COUNT"]
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=n, x_proto=n)

    CORS(app)

    db.init_app(app)
    migrate.init_app(app, db)

    app.extensions["notifier"] = WebhookNotifier(
        app.config.get("NOTIFY_WEBHOOK_URL"),
        timeout=app.config["NOTIFY_TIMEOUT_SECONDS"],
    )

    app.register_blueprint(reservations_bp, url_prefix="/api/reservations")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    @click.command("seed")
    @with_appcontext
    def seed_command():
        """Creates a sample catalog and bookings."""
        db.session.query(ReservationPayment).delete()
        db.session.query(ReservationSlot).delete()
        db.session.query(Reservation).delete()
        db.session.query(Site).delete()
        db.session.query(Facility).delete()
        db.session.query(Customer).delete()
        db.session.commit()
        click.echo("Cleared existing data.")

        facilities = [
            Facility(name="Private Room", type="private_room", capacity=6, weekday_price=80000, weekend_price=100000),
            Facility(name="Tent Zone", type="tent", capacity=4, weekday_price=50000, weekend_price=70000),
            Facility(name="VIP Lounge", type="vip", capacity=10, weekday_price=150000, weekend_price=200000),
        ]
        db.session.add_all(facilities)
        db.session.flush()
        sites = []
        for facility in facilities:
            for n in range(1, 4):
                sites.append(Site(
                    facility_id=facility.id,
                    name=f"{facility.name} {n}",
                    site_number=f"{facility.type[:1].upper()}{n}",
                    capacity=facility.capacity,
                ))
        db.session.add_all(sites)

        customers = [
            Customer(name=f"Customer {i+1}", email=f"customer{i+1}@example.com", phone=f"010-5555-000{i}")
            for i in range(5)
        ]
        db.session.add_all(customers)
        db.session.commit()
        click.echo(f"Created {len(facilities)} facilities, {len(sites)} sites, {len(customers)} customers.")

        settings = load_store_settings()
        service = ReservationService(db.session, settings)
        today = store_today(utc_now(), settings.timezone)
        created = 0
        for _ in range(25):
            site = random.choice(sites)
            slots = sorted(random.sample(range(1, settings.slots_per_day + 1), k=random.randint(1, 2)))
            payload = {
                "facility_id": site.facility_id,
                "site_id": site.id,
                "reservation_date": (today + timedelta(days=random.randint(0, 6))).isoformat(),
                "time_slots": slots,
                "total_amount": 50000 * len(slots),
            }
            if random.random() < 0.5:
                payload["customer_id"] = random.choice(customers).id
            else:
                payload.update(guest_name="Walk-in Guest", guest_phone="010-1234-5678")
            try:
                service.create(payload)
                created += 1
            except ConflictError:
                continue
        click.echo(f"Created {created} reservations.")
        click.echo("Database seeded!")

    app.cli.add_command(seed_command)

    return app
