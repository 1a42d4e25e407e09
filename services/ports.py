"""
Collaborators the reservation coordinator depends on.

Implementations live in services/sql_store.py (Flask-SQLAlchemy) and
services/memory.py (in-process, used by tests and scripts).
"""
from datetime import date
from typing import List, Optional, Protocol, Sequence, Tuple

from services.domain import Booking, ClaimResult, Venue


class VenueDirectory(Protocol):
    def get_venue(self, venue_id: int) -> Optional[Venue]:
        ...

    def search(self, sport: str = None, location: str = None, max_price: int = None, query: str = None) -> List[Venue]:
        ...


class AvailabilityStore(Protocol):
    def get_slot_records(self, venue_id: int, day: date) -> List[Tuple[str, bool]]:
        """(slot, is_free) for every slot that has a record. Missing slots are free."""
        ...

    def conditional_claim(
        self, venue_id: int, day: date, slots: Sequence[str], holder: str, timeout: float
    ) -> ClaimResult:
        """
        Marks every slot taken by holder, or none of them.
        Raises PersistenceError if the store is unavailable or the timeout passes.
        """
        ...

    def release(self, venue_id: int, day: date, slots: Sequence[str], holder: str, timeout: float) -> List[str]:
        """Frees the slots still held by holder and returns them."""
        ...


class BookingStore(Protocol):
    def allocate_booking_id(self) -> str:
        ...

    def create_booking(self, booking: Booking) -> str:
        ...

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    def update_booking_status(self, booking_id: str, status: str, payment_status: str = None) -> Booking:
        ...

    def list_for_user(self, user_id: int) -> List[Booking]:
        ...


class PaymentGateway(Protocol):
    def charge(self, amount: int, payer) -> str:
        """Returns a payment status or raises PaymentError."""
        ...

    def refund(self, amount: int, payer) -> str:
        """Returns the refunded payment status or raises PaymentError."""
        ...
