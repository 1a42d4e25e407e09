"""
Flask-SQLAlchemy implementations of the reservation collaborators.

Every write to venue_availability is conditional: an UPDATE guarded by
the current is_available / held_by values, or an INSERT guarded by the
uq_venue_date_slot constraint. A multi-slot claim runs in one transaction
and is rolled back as a whole when any slot is already held.
"""
import logging
import time
from datetime import datetime

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.booking import Booking as BookingRow, BookingNumber
from models.venue import Venue as VenueRow
from models.venue_availability import VenueAvailability
from services import domain
from services.domain import Booking, ClaimResult, Venue
from services.errors import BookingNotFoundError, InvalidTransitionError, PersistenceError

logger = logging.getLogger(__name__)


def venue_from_row(row: VenueRow) -> Venue:
    return Venue(
        id=row.id,
        name=row.name,
        location=row.location,
        price_per_hour=row.price_per_hour,
        sports=list(row.sports or []),
        amenities=list(row.amenities or []),
        rating=row.rating or 0.0,
        review_count=row.review_count or 0,
        description=row.description,
        contact_phone=row.contact_phone,
        contact_email=row.contact_email,
        owner_user_id=row.owner_user_id,
    )


def booking_from_row(row: BookingRow) -> Booking:
    return Booking(
        booking_id=row.booking_id,
        user_id=row.user_id,
        venue_id=row.venue_id,
        booking_date=row.booking_date,
        time_slots=list(row.time_slots or []),
        sport=row.sport,
        player_count=row.player_count,
        total_amount=row.total_amount,
        platform_fee=row.platform_fee,
        final_amount=row.final_amount,
        status=row.status,
        payment_status=row.payment_status,
        user_name=row.user_name,
        user_phone=row.user_phone,
        user_email=row.user_email,
        special_notes=row.special_notes,
        created_at=row.created_at,
        cancelled_at=row.cancelled_at,
    )


class SqlVenueDirectory:
    def get_venue(self, venue_id):
        try:
            row = db.session.get(VenueRow, int(venue_id))
        except (TypeError, ValueError):
            return None
        if not row or not row.is_active:
            return None
        return venue_from_row(row)

    def search(self, sport=None, location=None, max_price=None, query=None):
        q = VenueRow.query.filter(VenueRow.is_active.is_(True))
        if location:
            q = q.filter(VenueRow.location.ilike(f"%{location}%"))
        if query:
            q = q.filter(VenueRow.name.ilike(f"%{query}%"))
        if max_price is not None:
            q = q.filter(VenueRow.price_per_hour <= max_price)

        rows = q.order_by(VenueRow.rating.desc(), VenueRow.id.asc()).limit(200).all()
        venues = [venue_from_row(r) for r in rows]
        # sports is a JSON list; filter here to stay portable across dialects
        if sport:
            venues = [v for v in venues if v.supports(sport)]
        return venues


class SqlAvailabilityStore:
    def __init__(self, clock=time.monotonic):
        self.clock = clock

    def _apply_timeout(self, timeout):
        if timeout and db.session.get_bind().dialect.name == "postgresql":
            db.session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

    def _check_deadline(self, deadline):
        if deadline is not None and self.clock() > deadline:
            raise PersistenceError("Timed out while updating availability")

    @staticmethod
    def _slot_filter(venue_id, day, slot):
        return (
            VenueAvailability.venue_id == venue_id,
            VenueAvailability.date == day,
            VenueAvailability.time_slot == slot,
        )

    def get_slot_records(self, venue_id, day):
        try:
            rows = db.session.execute(
                select(VenueAvailability.time_slot, VenueAvailability.is_available).where(
                    VenueAvailability.venue_id == venue_id,
                    VenueAvailability.date == day,
                )
            ).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Availability lookup failed") from exc
        return [(slot, bool(is_free)) for slot, is_free in rows]

    def conditional_claim(self, venue_id, day, slots, holder, timeout=None):
        deadline = self.clock() + timeout if timeout else None
        session = db.session
        conflicts = []
        try:
            self._apply_timeout(timeout)
            for slot in slots:
                self._check_deadline(deadline)

                # free record -> taken, only if nobody took it first
                result = session.execute(
                    update(VenueAvailability)
                    .where(*self._slot_filter(venue_id, day, slot), VenueAvailability.is_available.is_(True))
                    .values(is_available=False, held_by=holder, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    continue

                existing = session.execute(
                    select(VenueAvailability.id).where(*self._slot_filter(venue_id, day, slot))
                ).first()
                if existing:
                    conflicts.append(slot)
                    continue

                # no record yet: the unique constraint decides between racing inserts
                try:
                    with session.begin_nested():
                        session.add(VenueAvailability(
                            venue_id=venue_id, date=day, time_slot=slot, is_available=False, held_by=holder
                        ))
                except IntegrityError:
                    conflicts.append(slot)

            self._check_deadline(deadline)
            if conflicts:
                session.rollback()
                return ClaimResult(conflicts=conflicts)
            session.commit()
            return ClaimResult()
        except PersistenceError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Slot claim failed for venue=%s date=%s: %s", venue_id, day, exc)
            raise PersistenceError("Availability store unavailable") from exc

    def release(self, venue_id, day, slots, holder, timeout=None):
        deadline = self.clock() + timeout if timeout else None
        session = db.session
        released = []
        try:
            self._apply_timeout(timeout)
            for slot in slots:
                self._check_deadline(deadline)
                result = session.execute(
                    update(VenueAvailability)
                    .where(*self._slot_filter(venue_id, day, slot), VenueAvailability.held_by == holder)
                    .values(is_available=True, held_by=None, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    released.append(slot)
            session.commit()
            return released
        except PersistenceError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError("Availability store unavailable") from exc


class SqlBookingStore:
    def __init__(self, prefix: str = "QC"):
        self.prefix = prefix

    def allocate_booking_id(self) -> str:
        try:
            number = BookingNumber()
            db.session.add(number)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Could not allocate a booking id") from exc
        return f"{self.prefix}{number.id:06d}"

    def create_booking(self, booking: Booking) -> str:
        row = BookingRow(
            booking_id=booking.booking_id,
            user_id=booking.user_id,
            venue_id=booking.venue_id,
            booking_date=booking.booking_date,
            time_slots=list(booking.time_slots),
            sport=booking.sport,
            player_count=booking.player_count,
            total_amount=booking.total_amount,
            platform_fee=booking.platform_fee,
            final_amount=booking.final_amount,
            status=booking.status,
            payment_status=booking.payment_status,
            user_name=booking.user_name,
            user_phone=booking.user_phone,
            user_email=booking.user_email,
            special_notes=booking.special_notes,
        )
        db.session.add(row)
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Could not save booking") from exc
        return row.booking_id

    def _row(self, booking_id):
        return BookingRow.query.filter_by(booking_id=booking_id).first()

    def get_booking(self, booking_id):
        try:
            row = self._row(booking_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Booking lookup failed") from exc
        return booking_from_row(row) if row else None

    def update_booking_status(self, booking_id, status, payment_status=None):
        sources = [s for s, targets in domain.ALLOWED_TRANSITIONS.items() if status in targets]
        values = {"status": status, "updated_at": datetime.utcnow()}
        if payment_status:
            values["payment_status"] = payment_status
        if status == domain.CANCELLED:
            values["cancelled_at"] = datetime.utcnow()

        try:
            # compare-and-set on status so racing transitions cannot both apply
            result = db.session.execute(
                update(BookingRow)
                .where(BookingRow.booking_id == booking_id, BookingRow.status.in_(sources))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Could not update booking") from exc

        row = self._row(booking_id)
        if row is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        db.session.refresh(row)
        if result.rowcount != 1:
            raise InvalidTransitionError(f"Cannot move booking from {row.status} to {status}")
        return booking_from_row(row)

    def list_for_user(self, user_id):
        rows = BookingRow.query.filter_by(user_id=user_id).order_by(BookingRow.created_at.desc()).all()
        return [booking_from_row(r) for r in rows]
