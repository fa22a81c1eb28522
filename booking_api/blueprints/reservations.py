from flask import Blueprint, request, jsonify, current_app
from datetime import datetime, timezone
from pydantic import ValidationError
from ..extensions import db
from ..auth import current_customer_id, resolve_actor
from ..errors import AuthenticationError, AuthorizationError, NotFoundError
from ..http import jerror
from ..models import RESERVATION_STATUSES
from ..presenters import payment_info_json, reservation_json
from ..schemas import CancelReservationRequest
from ..services.availability import ConflictChecker
from ..services.lifecycle import ReservationService
from ..services.store import ReservationStore
from ..settings import load_store_settings
from ..utils.time import parse_date

bp = Blueprint("reservations", __name__)

_rate_state: dict[str, tuple[int, int]] = {}

def _allow(ip: str) -> bool:
    window_seconds = current_app.config["RATE_LIMIT_WINDOW"]
    now = int(datetime.now(tz=timezone.utc).timestamp())
    window = now // window_seconds
    for key in [k for k, (_, w) in _rate_state.items() if w != window]:
        del _rate_state[key]
    count, win = _rate_state.get(ip, (0, window))
    if win != window:
        count, win = 0, window
    count += 1
    _rate_state[ip] = (count, win)
    return count <= current_app.config["RATE_LIMIT_MAX"]


def _client_ip() -> str:
    # X-Forwarded-For is only honored through ProxyFix (TRUSTED_PROXY_COUNT)
    return request.remote_addr or "0.0.0.0"


def _service(settings=None) -> ReservationService:
    return ReservationService(
        db.session,
        settings or load_store_settings(),
        notifier=current_app.extensions.get("notifier"),
    )


@bp.get("/availability")
def availability():
    date_str = request.args.get("date")
    if not date_str:
        return jerror(400, "MISSING_DATE", "Missing 'date' query parameter (YYYY-MM-DD).")
    try:
        day = parse_date(date_str)
    except ValueError as e:
        return jerror(422, "BAD_DATE", "Invalid date format. Use YYYY-MM-DD.", str(e))
    facility_id = request.args.get("facility_id", type=int)

    settings = load_store_settings()
    checker = ConflictChecker(ReservationStore(db.session))
    return jsonify(
        date=day.isoformat(),
        facilityId=facility_id,
        slotsPerDay=settings.slots_per_day,
        availability=checker.availability(day, settings.slots_per_day, facility_id),
    )

@bp.post("")
def create_reservation():
    ip = _client_ip()
    if not _allow(ip):
        return jerror(429, "RATE_LIMITED", "Too many requests. Try again shortly.")

    payload = request.get_json(silent=True)
    if not payload or not isinstance(payload, dict):
        return jerror(400, "INVALID_PAYLOAD", "Missing or invalid JSON payload.")

    member_id = current_customer_id()
    if member_id is not None and payload.get("customer_id") is not None and str(payload["customer_id"]) != str(member_id):
        raise AuthorizationError("You can only book for your own member account.")

    settings = load_store_settings()
    res = _service(settings).create(payload)

    body = reservation_json(res)
    body["paymentInfo"] = payment_info_json(res, settings)
    return jsonify(reservation=body, message="Reservation created. Please check the payment instructions."), 201

@bp.get("/lookup")
def lookup():
    """
    Guest lookup by reservation number and the phone used to book.
    Query: ?reservation_id=123&guest_phone=010...
    """
    reservation_id = request.args.get("reservation_id", type=int)
    guest_phone = (request.args.get("guest_phone") or "").strip()
    if not reservation_id or not guest_phone:
        return jerror(400, "MISSING_REQUIRED_PARAMS", "Both 'reservation_id' and 'guest_phone' are required.")

    res = ReservationStore(db.session).find_guest(reservation_id, guest_phone)
    if res is None:
        raise NotFoundError(
            "No reservation matches that number and phone.",
            code="RESERVATION_NOT_FOUND",
        )
    return jsonify(reservation=reservation_json(res))

@bp.get("/mine")
def my_reservations():
    customer_id = current_customer_id()
    if customer_id is None:
        raise AuthenticationError("Sign in to view your reservations.")
    status = request.args.get("status") or None
    if status and status not in RESERVATION_STATUSES:
        return jerror(422, "INVALID_STATUS", f"Invalid status. Allowed: {', '.join(RESERVATION_STATUSES)}")

    rows = ReservationStore(db.session).for_customer(customer_id, status)
    return jsonify(total=len(rows), reservations=[reservation_json(r) for r in rows])

@bp.patch("/<int:reservation_id>")
def update_reservation(reservation_id: int):
    payload = request.get_json(silent=True)
    if not payload or not isinstance(payload, dict):
        return jerror(400, "INVALID_PAYLOAD", "Missing or invalid JSON payload.")

    actor = resolve_actor(guest_phone=payload.get("guest_phone"))
    patch = {k: v for k, v in payload.items() if k != "guest_phone"}
    res = _service().update(reservation_id, patch, actor)
    return jsonify(reservation=reservation_json(res), message="Reservation updated.")

@bp.delete("/<int:reservation_id>")
def cancel_reservation(reservation_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        data = CancelReservationRequest.model_validate(payload)
    except ValidationError as e:
        return jerror(422, "VALIDATION_ERROR", "Invalid input.", details=e.errors(include_url=False, include_context=False))

    actor = resolve_actor(guest_phone=data.guest_phone)
    res = _service().cancel(reservation_id, actor, reason=data.reason)
    return jsonify(reservation=reservation_json(res), message="Reservation cancelled.")
