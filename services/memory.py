"""In-process collaborators for tests and local scripts."""
import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Tuple

from services import domain
from services.domain import Booking, ClaimResult, Venue
from services.errors import BookingNotFoundError, InvalidTransitionError, PersistenceError


class InMemoryVenueDirectory:
    def __init__(self, venues=()):
        self._venues = {v.id: v for v in venues}

    def add(self, venue: Venue) -> Venue:
        self._venues[venue.id] = venue
        return venue

    def get_venue(self, venue_id):
        return self._venues.get(venue_id)

    def search(self, sport=None, location=None, max_price=None, query=None):
        out = []
        for v in self._venues.values():
            if sport and not v.supports(sport):
                continue
            if location and location.lower() not in v.location.lower():
                continue
            if max_price is not None and v.price_per_hour > max_price:
                continue
            if query and query.lower() not in v.name.lower():
                continue
            out.append(v)
        return sorted(out, key=lambda v: (-v.rating, v.id))


class InMemoryAvailabilityStore:
    """
    Holds (venue_id, date, slot) -> holder. A single lock makes each
    claim or release one indivisible step.
    """

    def __init__(self):
        self._held: Dict[Tuple, str] = {}
        self._lock = threading.Lock()

    def _acquire(self, timeout):
        if not self._lock.acquire(timeout=timeout if timeout and timeout > 0 else -1):
            raise PersistenceError("Timed out waiting for the availability store")

    def get_slot_records(self, venue_id, day) -> List[Tuple[str, bool]]:
        with self._lock:
            return [(slot, False) for (v, d, slot) in self._held if v == venue_id and d == day]

    def conditional_claim(self, venue_id, day, slots, holder, timeout=None) -> ClaimResult:
        self._acquire(timeout)
        try:
            conflicts = [s for s in slots if (venue_id, day, s) in self._held]
            if conflicts:
                return ClaimResult(conflicts=conflicts)
            for s in slots:
                self._held[(venue_id, day, s)] = holder
            return ClaimResult()
        finally:
            self._lock.release()

    def release(self, venue_id, day, slots, holder, timeout=None) -> List[str]:
        self._acquire(timeout)
        try:
            released = []
            for s in slots:
                key = (venue_id, day, s)
                if self._held.get(key) == holder:
                    del self._held[key]
                    released.append(s)
            return released
        finally:
            self._lock.release()

    def holder_of(self, venue_id, day, slot):
        return self._held.get((venue_id, day, slot))


class InMemoryBookingStore:
    def __init__(self, prefix: str = "QC"):
        self.prefix = prefix
        self._bookings: Dict[str, Booking] = {}
        self._numbers = itertools.count(1)
        self._lock = threading.Lock()

    def allocate_booking_id(self) -> str:
        with self._lock:
            return f"{self.prefix}{next(self._numbers):06d}"

    def create_booking(self, booking: Booking) -> str:
        with self._lock:
            if booking.booking_id in self._bookings:
                raise PersistenceError(f"Duplicate booking id {booking.booking_id}")
            if booking.created_at is None:
                booking = replace(booking, created_at=datetime.utcnow())
            self._bookings[booking.booking_id] = booking
            return booking.booking_id

    def get_booking(self, booking_id):
        return self._bookings.get(booking_id)

    def update_booking_status(self, booking_id, status, payment_status=None) -> Booking:
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            if not domain.can_transition(current.status, status):
                raise InvalidTransitionError(f"Cannot move booking from {current.status} to {status}")
            cancelled_at = datetime.utcnow() if status == domain.CANCELLED else None
            updated = current.with_status(status, payment_status, cancelled_at)
            self._bookings[booking_id] = updated
            return updated

    def list_for_user(self, user_id) -> List[Booking]:
        return [b for b in self._bookings.values() if b.user_id == user_id]
