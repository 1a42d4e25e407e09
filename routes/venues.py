from flask import Blueprint, current_app, g, jsonify, request

from models import db
from models.venue import Venue
from security.rbac import require_roles
from utils.audit import log_event

venues_bp = Blueprint("venues", __name__, url_prefix="/venues")


def _reservations():
    return current_app.extensions["reservations"]


def _venue_json(v) -> dict:
    return {
        "id": v.id,
        "name": v.name,
        "location": v.location,
        "description": v.description,
        "price_per_hour": v.price_per_hour,
        "sports": list(v.sports),
        "amenities": list(v.amenities),
        "rating": v.rating,
        "review_count": v.review_count,
        "contact_phone": v.contact_phone,
        "contact_email": v.contact_email,
    }


def _clean_list(value):
    if not isinstance(value, list):
        return []
    return [s.strip() for s in value if isinstance(s, str) and s.strip()]


@venues_bp.get("")
def search_venues():
    max_price = request.args.get("max_price", type=int)
    venues = _reservations().venues.search(
        sport=(request.args.get("sport") or "").strip() or None,
        location=(request.args.get("location") or "").strip() or None,
        max_price=max_price,
        query=(request.args.get("q") or "").strip() or None,
    )
    return jsonify([_venue_json(v) for v in venues]), 200


@venues_bp.get("/<int:venue_id>")
def get_venue(venue_id: int):
    venue = _reservations().venues.get_venue(venue_id)
    if venue is None:
        return jsonify(error="Venue not found"), 404
    return jsonify(_venue_json(venue)), 200


@venues_bp.get("/<int:venue_id>/availability")
def venue_availability(venue_id: int):
    date_str = (request.args.get("date") or "").strip()
    if not date_str:
        return jsonify(error="date is required (YYYY-MM-DD)"), 400

    slots = _reservations().check_availability(venue_id, date_str)
    return jsonify(venue_id=venue_id, date=date_str, slots=slots), 200


# ---------- OWNER/ADMIN: list a venue ----------
@venues_bp.post("")
@require_roles("OWNER", "ADMIN")
def create_venue():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    location = (data.get("location") or "").strip()
    sports = _clean_list(data.get("sports"))

    try:
        price = int(data.get("price_per_hour"))
    except (TypeError, ValueError):
        return jsonify(error="price_per_hour must be a whole number"), 400

    if not name or not location:
        return jsonify(error="name and location are required"), 400
    if price < 0:
        return jsonify(error="price_per_hour must not be negative"), 400
    if not sports:
        return jsonify(error="At least one sport is required"), 400

    venue = Venue(
        name=name,
        location=location,
        description=(data.get("description") or "").strip() or None,
        price_per_hour=price,
        sports=sports,
        amenities=_clean_list(data.get("amenities")),
        contact_phone=(data.get("contact_phone") or "").strip() or None,
        contact_email=(data.get("contact_email") or "").strip() or None,
        owner_user_id=g.user.id,
    )
    db.session.add(venue)
    db.session.commit()

    log_event("VENUE_CREATE", user_id=g.user.id, entity="venue", entity_id=venue.id)
    return jsonify(_venue_json(venue)), 201
