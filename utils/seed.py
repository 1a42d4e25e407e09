from models import db
from models.user import Role
from models.venue import Venue

DEFAULT_ROLES = ["USER", "OWNER", "ADMIN", "SUPER_ADMIN"]

DEMO_VENUES = [
    {"name": "SportZone Arena", "location": "Downtown", "price_per_hour": 200, "rating": 4.8,
     "sports": ["Badminton", "Tennis", "Table Tennis"], "amenities": ["Parking", "Changing Room"]},
    {"name": "Green Field Complex", "location": "Sector 21", "price_per_hour": 500, "rating": 4.6,
     "sports": ["Football", "Cricket", "Basketball"], "amenities": ["Floodlights", "Cafeteria"]},
    {"name": "AquaFit Center", "location": "Riverside", "price_per_hour": 800, "rating": 4.9,
     "sports": ["Swimming", "Tennis", "Badminton", "Basketball"], "amenities": ["Lockers", "Showers"]},
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_venues() -> int:
    """Adds the demo venues that are missing (matched by name). Returns how many were added."""
    existing = {v.name for v in Venue.query.all()}
    added = 0
    for data in DEMO_VENUES:
        if data["name"] not in existing:
            db.session.add(Venue(**data))
            added += 1
    db.session.commit()
    return added
