from flask import Blueprint, current_app, g, jsonify, request

from models.booking import Booking
from security.rbac import current_roles, require_roles
from services.domain import Requester
from services.errors import BookingNotFoundError, SlotConflictError
from utils.audit import log_event
from utils.auth_context import login_required

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _reservations():
    return current_app.extensions["reservations"]


def _text(value):
    if not isinstance(value, str):
        return None
    return value.strip() or None


# ---------- PLAYERS: book slots (conflict-safe) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    venue_id = data.get("venue_id")
    date_str = data.get("date")
    slots = data.get("time_slots")

    if not venue_id or not date_str:
        return jsonify(error="venue_id and date are required"), 400
    if slots is not None and not isinstance(slots, list):
        return jsonify(error="time_slots must be a list"), 400

    player_count = data.get("player_count", 1)
    if not isinstance(player_count, int):
        return jsonify(error="player_count must be a whole number"), 400

    requester = Requester(
        user_id=g.user.id,
        name=_text(data.get("name")) or g.user.full_name,
        phone=_text(data.get("phone")) or g.user.phone,
        email=_text(data.get("email")) or g.user.email,
        notes=_text(data.get("notes")),
    )

    try:
        booking = _reservations().reserve(
            venue_id,
            date_str,
            slots or [],
            _text(data.get("sport")) or "",
            player_count,
            requester,
        )
    except SlotConflictError as exc:
        log_event(
            "BOOKING_FAIL_SLOT_TAKEN", user_id=g.user.id, entity="venue", entity_id=venue_id,
            metadata={"date": date_str, "conflicting_slots": exc.conflicting_slots},
        )
        raise

    log_event(
        "BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.booking_id,
        metadata={"venue_id": booking.venue_id, "slots": booking.time_slots},
    )
    return jsonify(booking.to_dict()), 201


# ---------- PLAYERS: my bookings, grouped ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    grouped = _reservations().list_user_bookings(g.user.id)
    return jsonify({k: [b.to_dict() for b in rows] for k, rows in grouped.items()}), 200


@booking_bp.get("/<booking_id>")
@login_required
def get_booking(booking_id: str):
    booking = _reservations().get_booking(booking_id)
    if booking.user_id != g.user.id and not current_roles().intersection({"ADMIN", "SUPER_ADMIN"}):
        # not theirs: answer like an unknown id
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return jsonify(booking.to_dict()), 200


# ---------- PLAYERS/ADMIN: cancel (idempotent) ----------
@booking_bp.post("/<booking_id>/cancel")
@login_required
def cancel_booking(booking_id: str):
    booking = _reservations().cancel(booking_id, g.user.id, current_roles())

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id)
    return jsonify(booking.to_dict()), 200


# ---------- ADMIN: mark played ----------
@booking_bp.post("/<booking_id>/complete")
@require_roles("ADMIN")
def complete_booking(booking_id: str):
    booking = _reservations().complete(booking_id)

    log_event("BOOKING_COMPLETE", user_id=g.user.id, entity="booking", entity_id=booking_id)
    return jsonify(booking.to_dict()), 200


# ---------- ADMIN: list all bookings ----------
@booking_bp.get("")
@require_roles("ADMIN")
def list_all_bookings():
    status = request.args.get("status")
    q = Booking.query
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    return jsonify([
        {
            "booking_id": b.booking_id,
            "user_id": b.user_id,
            "venue_id": b.venue_id,
            "booking_date": b.booking_date.isoformat(),
            "time_slots": b.time_slots,
            "status": b.status,
            "payment_status": b.payment_status,
            "final_amount": b.final_amount,
            "created_at": b.created_at.isoformat(),
        } for b in rows
    ]), 200
