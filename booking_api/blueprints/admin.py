from flask import Blueprint, request, jsonify, current_app
from pydantic import ValidationError
from ..extensions import db
from ..auth import require_staff
from ..http import jerror
from ..models import RESERVATION_STATUSES
from ..presenters import reservation_json, status_summary_json, summary_json
from ..schemas import ReservationListQuery, StatusUpdateRequest
from ..services.analytics import AnalyticsAggregator
from ..services.lifecycle import ReservationService
from ..services.store import ReservationFilters, ReservationStore
from ..settings import load_store_settings

bp = Blueprint("admin", __name__)

@bp.before_request
def _staff_only():
    require_staff()

@bp.get("/reservations")
def list_reservations():
    """
    Staff list with filters and pagination.
    Query: ?status=PENDING&facility_id=1&date_from=YYYY-MM-DD&date_to=YYYY-MM-DD&page=1&limit=20
    """
    try:
        q = ReservationListQuery.model_validate(request.args.to_dict())
    except ValidationError as e:
        return jerror(422, "VALIDATION_ERROR", "Invalid query.", details=e.errors(include_url=False, include_context=False))
    if q.status and q.status not in RESERVATION_STATUSES:
        return jerror(422, "INVALID_STATUS", f"Invalid status. Allowed: {', '.join(RESERVATION_STATUSES)}")

    filters = ReservationFilters(
        status=q.status,
        facility_id=q.facility_id,
        date_from=q.date_from,
        date_to=q.date_to,
    )
    page = ReservationStore(db.session).search(filters, page=q.page, limit=q.limit)

    return jsonify(
        page=page.page,
        limit=page.limit,
        total=page.total,
        totalPages=page.total_pages,
        filters={
            "status": q.status,
            "facilityId": q.facility_id,
            "dateFrom": q.date_from.isoformat() if q.date_from else None,
            "dateTo": q.date_to.isoformat() if q.date_to else None,
        },
        reservations=[reservation_json(r) for r in page.items],
    )

@bp.put("/reservations/<int:reservation_id>/status")
def update_status(reservation_id: int):
    payload = request.get_json(silent=True)
    if not payload or not isinstance(payload, dict):
        return jerror(400, "INVALID_PAYLOAD", "Missing or invalid JSON payload.")
    try:
        data = StatusUpdateRequest.model_validate(payload)
    except ValidationError as e:
        return jerror(422, "VALIDATION_ERROR", "Invalid input.", details=e.errors(include_url=False, include_context=False))

    service = ReservationService(
        db.session,
        load_store_settings(),
        notifier=current_app.extensions.get("notifier"),
    )
    res = service.update_status(
        reservation_id,
        data.status,
        admin_memo=data.admin_memo,
        payment_status=data.payment_status,
    )
    return jsonify(reservation=status_summary_json(res), message="Reservation status updated.")

@bp.get("/analytics")
def analytics():
    period = request.args.get("period") or request.args.get("range")
    settings = load_store_settings()
    aggregator = AnalyticsAggregator(ReservationStore(db.session), tz_name=settings.timezone)
    return jsonify(analytics=summary_json(aggregator.summarize(period)))
