from datetime import date
from .store import ReservationStore


class ConflictChecker:
    """Read-only overlap checks against active reservations."""

    def __init__(self, store: ReservationStore):
        self.store = store

    def conflicting(self, facility_id: int, site_id: int, day: date, time_slots) -> set[int]:
        """Slots from ``time_slots`` already held by an active reservation."""
        wanted = set(time_slots)
        taken = set()
        for existing in self.store.active_on(facility_id, site_id, day):
            taken |= wanted.intersection(existing.time_slots or ())
        return taken

    def has_conflict(self, facility_id: int, site_id: int, day: date, time_slots) -> bool:
        return bool(self.conflicting(facility_id, site_id, day, time_slots))

    def occupied_slots(self, facility_id: int, site_id: int, day: date) -> list[int]:
        occupied = set()
        for existing in self.store.active_on(facility_id, site_id, day):
            occupied.update(existing.time_slots or ())
        return sorted(occupied)

    def availability(self, day: date, slots_per_day: int, facility_id: int | None = None) -> dict:
        """
        Occupied and free slots per active site, grouped by active facility.
        Only sites with ``is_active`` are listed.
        """
        facilities = self.store.active_facilities(facility_id)
        sites = self.store.active_sites(facility_id)
        booked = self.store.active_by_site_on(day, [s.id for s in sites])
        all_slots = range(1, slots_per_day + 1)

        result = {}
        for facility in facilities:
            entry = {"facilityName": facility.name, "facilityType": facility.type, "sites": {}}
            for site in sites:
                if site.facility_id != facility.id:
                    continue
                occupied = sorted({slot for r in booked.get(site.id, ()) for slot in r.time_slots or ()})
                entry["sites"][site.id] = {
                    "siteName": site.name,
                    "siteNumber": site.site_number,
                    "capacity": site.capacity,
                    "occupiedTimeSlots": occupied,
                    "availableTimeSlots": [s for s in all_slots if s not in occupied],
                }
            result[facility.id] = entry
        return result
