"""
Reservation coordinator: turns a slot selection into a confirmed booking
with exclusive ownership of its slots, or a rejection naming the slots
that were already taken.

Slots are claimed through the availability store's conditional claim, so
two overlapping requests can never both succeed. Anything that fails after
the claim hands the slots back before the error propagates.
"""
import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Sequence

from services import domain
from services.domain import Booking, Requester
from services.errors import (
    BookingNotFoundError,
    InvalidRequestError,
    InvalidTransitionError,
    PaymentError,
    SlotConflictError,
    UnauthorizedError,
    UnsupportedSportError,
    VenueNotFoundError,
)
from services.ports import AvailabilityStore, BookingStore, PaymentGateway, VenueDirectory
from services.schedule import compute_amounts, daily_slots, ensure_not_past, normalize_slots, parse_date

logger = logging.getLogger(__name__)

CANCEL_ROLES = {"ADMIN", "SUPER_ADMIN"}


class ReservationCoordinator:
    def __init__(
        self,
        venues: VenueDirectory,
        availability: AvailabilityStore,
        bookings: BookingStore,
        payments: PaymentGateway,
        schedule: Sequence[str] = None,
        fee_percent: int = 5,
        store_timeout: float = 5.0,
        max_players: int = None,
        today: Callable[[], date] = date.today,
    ):
        self.venues = venues
        self.availability = availability
        self.bookings = bookings
        self.payments = payments
        self.schedule = list(schedule) if schedule else daily_slots()
        self.fee_percent = fee_percent
        self.store_timeout = store_timeout
        self.max_players = max_players
        self.today = today

    # ---------- reads ----------
    def _get_venue(self, venue_id):
        venue = self.venues.get_venue(venue_id)
        if venue is None:
            raise VenueNotFoundError(f"Venue {venue_id} not found")
        return venue

    def check_availability(self, venue_id, day) -> Dict[str, str]:
        day = parse_date(day)
        ensure_not_past(day, self.today())
        self._get_venue(venue_id)

        taken = {slot for slot, is_free in self.availability.get_slot_records(venue_id, day) if not is_free}
        return {slot: (domain.TAKEN if slot in taken else domain.FREE) for slot in self.schedule}

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.bookings.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def list_user_bookings(self, user_id) -> Dict[str, List[Booking]]:
        today = self.today()
        out = {"upcoming": [], "past": [], "cancelled": []}
        rows = sorted(
            self.bookings.list_for_user(user_id),
            key=lambda b: (b.created_at or datetime.min, b.booking_id),
            reverse=True,
        )
        for b in rows:
            if b.status == domain.CANCELLED:
                out["cancelled"].append(b)
            elif b.booking_date >= today and b.status != domain.COMPLETED:
                out["upcoming"].append(b)
            else:
                out["past"].append(b)
        return out

    # ---------- reserve ----------
    def reserve(
        self,
        venue_id,
        day,
        requested_slots: Iterable[str],
        sport: str,
        player_count: int,
        requester: Requester,
    ) -> Booking:
        day = parse_date(day)
        ensure_not_past(day, self.today())
        slots = normalize_slots(list(requested_slots or []), self.schedule)

        if not isinstance(player_count, int) or isinstance(player_count, bool) or player_count < 1:
            raise InvalidRequestError("player_count must be at least 1")
        if self.max_players and player_count > self.max_players:
            raise InvalidRequestError(f"player_count must be at most {self.max_players}")

        venue = self._get_venue(venue_id)
        if not venue.supports(sport):
            raise UnsupportedSportError(f"{sport or 'No sport'} is not offered at {venue.name}")

        total, fee, final = compute_amounts(venue.price_per_hour, len(slots), self.fee_percent)

        booking_id = self.bookings.allocate_booking_id()
        claim = self.availability.conditional_claim(venue.id, day, slots, booking_id, self.store_timeout)
        if not claim.ok:
            logger.info("Reservation %s rejected, venue=%s date=%s conflicts=%s", booking_id, venue.id, day, claim.conflicts)
            raise SlotConflictError(claim.conflicts)

        booking = Booking(
            booking_id=booking_id,
            user_id=requester.user_id,
            venue_id=venue.id,
            booking_date=day,
            time_slots=slots,
            sport=sport,
            player_count=player_count,
            total_amount=total,
            platform_fee=fee,
            final_amount=final,
            status=domain.PENDING,
            payment_status=domain.PAYMENT_PENDING,
            user_name=requester.name,
            user_phone=requester.phone,
            user_email=requester.email,
            special_notes=requester.notes,
        )

        created = charged = False
        try:
            self.bookings.create_booking(booking)
            created = True
            payment_status = self.payments.charge(final, requester)
            if payment_status == domain.PAYMENT_FAILED:
                raise PaymentError("Payment declined")
            charged = True
            confirmed = self.bookings.update_booking_status(booking_id, domain.CONFIRMED, payment_status)
        except Exception:
            self._abandon(booking, requester, created, charged)
            raise

        logger.info("Reservation %s confirmed, venue=%s date=%s slots=%s", booking_id, venue.id, day, slots)
        return confirmed

    def _abandon(self, booking: Booking, requester: Requester, created: bool, charged: bool) -> None:
        """
        Releases a failed reservation's slots and closes its booking record.
        A payment already taken is refunded; if the refund fails the record
        keeps payment_status=completed so it matches the gateway.
        """
        try:
            self.availability.release(
                booking.venue_id, booking.booking_date, booking.time_slots, booking.booking_id, self.store_timeout
            )
        except Exception:
            logger.exception("Could not release slots for abandoned reservation %s", booking.booking_id)

        payment_status = domain.PAYMENT_FAILED
        if charged:
            try:
                payment_status = self.payments.refund(booking.final_amount, requester)
            except Exception:
                logger.exception("Could not refund abandoned reservation %s", booking.booking_id)
                payment_status = domain.PAYMENT_COMPLETED

        if created:
            try:
                self.bookings.update_booking_status(booking.booking_id, domain.CANCELLED, payment_status)
            except Exception:
                logger.exception("Could not cancel abandoned reservation %s", booking.booking_id)

    # ---------- lifecycle ----------
    def cancel(self, booking_id: str, requester_id, roles: Iterable[str] = ()) -> Booking:
        booking = self.get_booking(booking_id)

        if booking.user_id != requester_id and not CANCEL_ROLES.intersection(roles or ()):
            raise UnauthorizedError("Only the booking owner or an admin can cancel this booking")

        if booking.status in domain.TERMINAL_STATUSES:
            return booking

        # Release before the status change so a retry after a partial failure still frees the slots.
        self.availability.release(
            booking.venue_id, booking.booking_date, booking.time_slots, booking.booking_id, self.store_timeout
        )
        try:
            cancelled = self.bookings.update_booking_status(booking_id, domain.CANCELLED)
        except InvalidTransitionError:
            # a concurrent cancel or completion got there first
            current = self.get_booking(booking_id)
            if current.status in domain.TERMINAL_STATUSES:
                return current
            raise
        logger.info("Reservation %s cancelled by user=%s", booking_id, requester_id)
        return cancelled

    def complete(self, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if not domain.can_transition(booking.status, domain.COMPLETED):
            raise InvalidTransitionError(f"Cannot complete a {booking.status} booking")
        return self.bookings.update_booking_status(booking_id, domain.COMPLETED)
