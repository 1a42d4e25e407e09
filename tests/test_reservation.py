import threading
from datetime import timedelta

import pytest

from services import domain
from services.domain import Requester
from services.errors import (
    BookingNotFoundError,
    InvalidDateError,
    InvalidRequestError,
    InvalidSlotError,
    InvalidTransitionError,
    PaymentError,
    PersistenceError,
    SlotConflictError,
    UnauthorizedError,
    UnsupportedSportError,
    VenueNotFoundError,
)
from services.memory import InMemoryBookingStore, InMemoryVenueDirectory
from services.payments import StubPaymentGateway
from services.reservation import ReservationCoordinator
from tests.helpers import PLAY_DAY, TODAY


def _reserve(coordinator, requester, slots, sport="Badminton", players=2, day=PLAY_DAY):
    return coordinator.reserve(1, day, slots, sport, players, requester)


# ---------- availability ----------
def test_everything_free_without_records(coordinator):
    slots = coordinator.check_availability(1, PLAY_DAY)
    assert len(slots) == 17
    assert set(slots.values()) == {domain.FREE}


def test_availability_rejects_past_dates_and_unknown_venue(coordinator):
    with pytest.raises(InvalidDateError):
        coordinator.check_availability(1, TODAY - timedelta(days=1))
    with pytest.raises(VenueNotFoundError):
        coordinator.check_availability(99, PLAY_DAY)


def test_reserved_slots_show_taken(coordinator, alice):
    _reserve(coordinator, alice, ["14:00", "15:00"])

    slots = coordinator.check_availability(1, PLAY_DAY)
    assert slots["14:00"] == domain.TAKEN
    assert slots["15:00"] == domain.TAKEN
    assert slots["16:00"] == domain.FREE
    # other days are unaffected
    assert coordinator.check_availability(1, PLAY_DAY + timedelta(days=1))["14:00"] == domain.FREE


# ---------- reserve ----------
def test_reserve_two_slots_at_200(coordinator, alice, payments):
    booking = _reserve(coordinator, alice, ["15:00", "14:00"])

    assert booking.time_slots == ["14:00", "15:00"]
    assert booking.total_amount == 400
    assert booking.platform_fee == 20
    assert booking.final_amount == 420
    assert booking.status == domain.CONFIRMED
    assert booking.payment_status == domain.PAYMENT_COMPLETED
    assert booking.user_id == alice.user_id
    assert booking.user_name == "Alice"
    assert payments.charges == [(420, alice.user_id)]


def test_booking_ids_are_prefixed_and_unique(coordinator, alice):
    first = _reserve(coordinator, alice, ["06:00"])
    second = _reserve(coordinator, alice, ["07:00"])
    assert first.booking_id == "QC000001"
    assert second.booking_id == "QC000002"


def test_today_is_bookable(coordinator, alice):
    booking = _reserve(coordinator, alice, ["20:00"], day=TODAY)
    assert booking.booking_date == TODAY


@pytest.mark.parametrize("slots", [[], ["05:00"], ["14:00", "14:00"]])
def test_bad_slot_selection_rejected(coordinator, alice, bookings, slots):
    with pytest.raises(InvalidSlotError):
        _reserve(coordinator, alice, slots)
    assert bookings.list_for_user(alice.user_id) == []


def test_validation_errors_leave_no_state(coordinator, alice, availability, bookings):
    with pytest.raises(InvalidDateError):
        _reserve(coordinator, alice, ["14:00"], day=TODAY - timedelta(days=1))
    with pytest.raises(UnsupportedSportError):
        _reserve(coordinator, alice, ["14:00"], sport="Cricket")
    with pytest.raises(InvalidRequestError):
        _reserve(coordinator, alice, ["14:00"], players=0)
    with pytest.raises(VenueNotFoundError):
        coordinator.reserve(42, PLAY_DAY, ["14:00"], "Badminton", 2, alice)

    assert availability.get_slot_records(1, PLAY_DAY) == []
    assert bookings.list_for_user(alice.user_id) == []


def test_sport_match_ignores_case(coordinator, alice):
    assert _reserve(coordinator, alice, ["09:00"], sport="table tennis").status == domain.CONFIRMED


def test_overlap_rejected_with_only_shared_slots(coordinator, alice, bob, availability):
    _reserve(coordinator, alice, ["14:00", "15:00"])

    with pytest.raises(SlotConflictError) as exc:
        _reserve(coordinator, bob, ["13:00", "15:00", "16:00"])

    assert exc.value.conflicting_slots == ["15:00"]
    # nothing from the rejected request was claimed
    assert availability.holder_of(1, PLAY_DAY, "13:00") is None
    assert availability.holder_of(1, PLAY_DAY, "16:00") is None


def test_same_slot_on_another_day_is_fine(coordinator, alice, bob):
    _reserve(coordinator, alice, ["18:00"])
    other = _reserve(coordinator, bob, ["18:00"], day=PLAY_DAY + timedelta(days=1))
    assert other.status == domain.CONFIRMED


def test_concurrent_requests_for_same_slot(coordinator, alice, bob):
    barrier = threading.Barrier(2)
    results = {}

    def attempt(requester):
        barrier.wait()
        try:
            results[requester.user_id] = _reserve(coordinator, requester, ["18:00"])
        except SlotConflictError as exc:
            results[requester.user_id] = exc

    threads = [threading.Thread(target=attempt, args=(r,)) for r in (alice, bob)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    wins = [r for r in results.values() if isinstance(r, domain.Booking)]
    losses = [r for r in results.values() if isinstance(r, SlotConflictError)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert losses[0].conflicting_slots == ["18:00"]


def test_many_concurrent_overlapping_requests(coordinator):
    requests = [
        ["10:00", "11:00"],
        ["11:00", "12:00"],
        ["12:00", "13:00"],
        ["09:00", "10:00", "11:00"],
        ["11:00"],
        ["20:00"],
    ] * 3
    barrier = threading.Barrier(len(requests))
    outcomes = []
    lock = threading.Lock()

    def attempt(user_id, slots):
        barrier.wait()
        try:
            result = _reserve(coordinator, Requester(user_id=user_id), slots)
        except SlotConflictError as exc:
            result = exc
        with lock:
            outcomes.append((slots, result))

    threads = [threading.Thread(target=attempt, args=(i, s)) for i, s in enumerate(requests, start=1)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    claimed = []
    for slots, result in outcomes:
        if isinstance(result, domain.Booking):
            claimed.extend(result.time_slots)
        else:
            assert set(result.conflicting_slots) <= set(slots)
    # no slot was handed to two bookings
    assert len(claimed) == len(set(claimed))
    assert "20:00" in claimed


def test_payment_failure_releases_slots(venue, availability, bookings, alice):
    coordinator = ReservationCoordinator(
        InMemoryVenueDirectory([venue]), availability, bookings, StubPaymentGateway(succeed=False),
        today=lambda: TODAY,
    )
    with pytest.raises(PaymentError):
        _reserve(coordinator, alice, ["14:00"])

    assert coordinator.check_availability(1, PLAY_DAY)["14:00"] == domain.FREE
    [booking] = bookings.list_for_user(alice.user_id)
    assert booking.status == domain.CANCELLED
    assert booking.payment_status == domain.PAYMENT_FAILED


class _BrokenBookingStore(InMemoryBookingStore):
    def create_booking(self, booking):
        raise PersistenceError("database went away")


def test_persistence_failure_rolls_back_claims(venue, availability, alice):
    payments = StubPaymentGateway()
    coordinator = ReservationCoordinator(
        InMemoryVenueDirectory([venue]), availability, _BrokenBookingStore(), payments, today=lambda: TODAY,
    )
    with pytest.raises(PersistenceError) as exc:
        _reserve(coordinator, alice, ["14:00", "15:00"])

    assert exc.value.to_dict()["retryable"] is True
    assert availability.get_slot_records(1, PLAY_DAY) == []
    assert payments.charges == []


class _ConfirmFailsBookingStore(InMemoryBookingStore):
    def update_booking_status(self, booking_id, status, payment_status=None):
        if status == domain.CONFIRMED:
            raise PersistenceError("database went away")
        return super().update_booking_status(booking_id, status, payment_status)


class _RefundFailsGateway(StubPaymentGateway):
    def refund(self, amount, payer):
        raise PaymentError("gateway unreachable")


def test_failed_confirmation_refunds_the_charge(venue, availability, alice):
    bookings, payments = _ConfirmFailsBookingStore(), StubPaymentGateway()
    coordinator = ReservationCoordinator(
        InMemoryVenueDirectory([venue]), availability, bookings, payments, today=lambda: TODAY,
    )
    with pytest.raises(PersistenceError):
        _reserve(coordinator, alice, ["14:00"])

    assert payments.charges == [(210, alice.user_id)]
    assert payments.refunds == [(210, alice.user_id)]
    [booking] = bookings.list_for_user(alice.user_id)
    assert booking.status == domain.CANCELLED
    assert booking.payment_status == domain.PAYMENT_REFUNDED
    assert availability.holder_of(1, PLAY_DAY, "14:00") is None


def test_failed_refund_keeps_payment_completed(venue, availability, alice):
    bookings = _ConfirmFailsBookingStore()
    coordinator = ReservationCoordinator(
        InMemoryVenueDirectory([venue]), availability, bookings, _RefundFailsGateway(), today=lambda: TODAY,
    )
    with pytest.raises(PersistenceError):
        _reserve(coordinator, alice, ["14:00"])

    [booking] = bookings.list_for_user(alice.user_id)
    assert booking.status == domain.CANCELLED
    assert booking.payment_status == domain.PAYMENT_COMPLETED


def test_store_timeout_fails_without_claims(coordinator, alice, availability):
    coordinator.store_timeout = 0.05
    availability._lock.acquire()
    try:
        with pytest.raises(PersistenceError):
            _reserve(coordinator, alice, ["14:00"])
    finally:
        availability._lock.release()

    assert availability.get_slot_records(1, PLAY_DAY) == []
    # the store recovered and the slot is still bookable
    assert _reserve(coordinator, alice, ["14:00"]).status == domain.CONFIRMED


# ---------- cancel / complete ----------
def test_cancel_frees_slots(coordinator, alice, bob):
    booking = _reserve(coordinator, alice, ["18:00", "19:00"])

    cancelled = coordinator.cancel(booking.booking_id, alice.user_id)

    assert cancelled.status == domain.CANCELLED
    assert cancelled.cancelled_at is not None
    slots = coordinator.check_availability(1, PLAY_DAY)
    assert slots["18:00"] == slots["19:00"] == domain.FREE
    assert _reserve(coordinator, bob, ["18:00"]).status == domain.CONFIRMED


def test_cancel_twice_is_idempotent(coordinator, alice, bookings):
    booking = _reserve(coordinator, alice, ["18:00"])

    first = coordinator.cancel(booking.booking_id, alice.user_id)
    second = coordinator.cancel(booking.booking_id, alice.user_id)

    assert first == second
    assert bookings.get_booking(booking.booking_id).status == domain.CANCELLED


def test_cancel_does_not_free_a_rebooked_slot(coordinator, alice, bob, availability):
    old = _reserve(coordinator, alice, ["18:00"])
    coordinator.cancel(old.booking_id, alice.user_id)
    new = _reserve(coordinator, bob, ["18:00"])

    # a stale retry of the first cancel must not touch bob's slot
    availability.release(1, PLAY_DAY, ["18:00"], old.booking_id, 1.0)
    coordinator.cancel(old.booking_id, alice.user_id)

    assert availability.holder_of(1, PLAY_DAY, "18:00") == new.booking_id


def test_only_owner_or_admin_can_cancel(coordinator, alice, bob):
    booking = _reserve(coordinator, alice, ["18:00"])

    with pytest.raises(UnauthorizedError):
        coordinator.cancel(booking.booking_id, bob.user_id)
    assert coordinator.get_booking(booking.booking_id).status == domain.CONFIRMED

    assert coordinator.cancel(booking.booking_id, 999, roles={"ADMIN"}).status == domain.CANCELLED


def test_cancel_unknown_booking(coordinator, alice):
    with pytest.raises(BookingNotFoundError):
        coordinator.cancel("QC999999", alice.user_id)


def test_completed_booking_is_terminal(coordinator, alice):
    booking = _reserve(coordinator, alice, ["08:00"])

    done = coordinator.complete(booking.booking_id)
    assert done.status == domain.COMPLETED

    # cancelling a completed booking is a no-op success and keeps the slot taken
    assert coordinator.cancel(booking.booking_id, alice.user_id).status == domain.COMPLETED
    assert coordinator.check_availability(1, PLAY_DAY)["08:00"] == domain.TAKEN

    with pytest.raises(InvalidTransitionError):
        coordinator.complete(booking.booking_id)


def test_cancelled_booking_cannot_complete(coordinator, alice):
    booking = _reserve(coordinator, alice, ["08:00"])
    coordinator.cancel(booking.booking_id, alice.user_id)
    with pytest.raises(InvalidTransitionError):
        coordinator.complete(booking.booking_id)


def test_user_bookings_grouped(coordinator, alice, bookings):
    upcoming = _reserve(coordinator, alice, ["10:00"])
    played = _reserve(coordinator, alice, ["11:00"])
    dropped = _reserve(coordinator, alice, ["12:00"])
    coordinator.complete(played.booking_id)
    coordinator.cancel(dropped.booking_id, alice.user_id)

    grouped = coordinator.list_user_bookings(alice.user_id)

    assert [b.booking_id for b in grouped["upcoming"]] == [upcoming.booking_id]
    assert [b.booking_id for b in grouped["past"]] == [played.booking_id]
    assert [b.booking_id for b in grouped["cancelled"]] == [dropped.booking_id]
