from .models import Reservation
from .settings import StoreSettings
from .utils.time import api_iso_z

UNKNOWN = "Unknown"


def customer_json(r: Reservation) -> dict:
    if r.customer_id is not None:
        c = r.customer
        return {
            "type": "member",
            "id": r.customer_id,
            "name": c.name if c else UNKNOWN,
            "email": c.email if c else None,
            "phone": c.phone if c else None,
        }
    return {"type": "guest", "name": r.guest_name, "email": r.guest_email, "phone": r.guest_phone}


def reservation_json(r: Reservation) -> dict:
    facility, site = r.facility, r.site
    return {
        "id": r.id,
        "customer": customer_json(r),
        "facility": {
            "id": r.facility_id,
            "name": facility.name if facility else UNKNOWN,
            "type": facility.type if facility else UNKNOWN,
        },
        "site": {
            "id": r.site_id,
            "name": site.name if site else UNKNOWN,
            "siteNumber": site.site_number if site and site.site_number else UNKNOWN,
        },
        "reservationDate": r.reservation_date.isoformat(),
        "timeSlots": list(r.time_slots or []),
        "totalAmount": r.total_amount,
        "status": r.status,
        "paymentStatus": r.payment_status,
        "specialRequests": r.special_requests,
        "adminMemo": r.admin_memo,
        "createdAt": api_iso_z(r.created_at),
        "updatedAt": api_iso_z(r.updated_at),
        "cancelledAt": api_iso_z(r.cancelled_at),
    }


def status_summary_json(r: Reservation) -> dict:
    return {
        "reservationId": r.id,
        "facilityName": r.facility.name if r.facility else UNKNOWN,
        "siteName": r.site.name if r.site else UNKNOWN,
        "status": r.status,
        "paymentStatus": r.payment_status,
        "adminMemo": r.admin_memo,
        "updatedAt": api_iso_z(r.updated_at),
        "cancelledAt": api_iso_z(r.cancelled_at),
    }


def payment_info_json(r: Reservation, settings: StoreSettings) -> dict:
    payment = r.payment
    return {
        "method": payment.payment_method if payment else "BANK_TRANSFER",
        "amount": r.total_amount,
        "status": payment.status if payment else "PENDING",
        "bankAccount": settings.bank_account_info,
    }


def summary_json(summary: dict) -> dict:
    return {
        "period": summary["period"],
        "startDate": summary["start_date"].isoformat(),
        "endDate": summary["end_date"].isoformat(),
        "revenue": summary["revenue"],
        "reservationCount": summary["reservation_count"],
        "occupancyRate": summary["occupancy_rate"],
        "conversionRate": summary["conversion_rate"],
        "statusCounts": {
            "confirmed": summary["confirmed"],
            "pending": summary["pending"],
            "cancelled": summary["cancelled"],
        },
        "siteStats": {
            "totalSites": summary["site_stats"]["total_sites"],
            "reservedSitesToday": summary["site_stats"]["reserved_sites_today"],
            "occupancyRate": summary["site_stats"]["occupancy_rate"],
        },
        "perFacility": [
            {
                "facilityId": f["facility_id"],
                "facilityName": f["facility_name"],
                "facilityType": f["facility_type"],
                "reservationCount": f["reservation_count"],
                "revenue": f["revenue"],
                "siteCount": f["site_count"],
            }
            for f in summary["per_facility_breakdown"]
        ],
        "recentReservations": [
            {
                "id": r.id,
                "facilityName": r.facility.name if r.facility else UNKNOWN,
                "siteName": r.site.name if r.site else UNKNOWN,
                "totalAmount": r.total_amount,
                "status": r.status,
                "paymentStatus": r.payment_status,
                "reservationDate": r.reservation_date.isoformat(),
                "createdAt": api_iso_z(r.created_at),
            }
            for r in summary["recent_reservations"]
        ],
    }
