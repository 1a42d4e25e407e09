from datetime import datetime
from models.db import db

class Venue(db.Model):
    __tablename__ = "venues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(160), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    price_per_hour = db.Column(db.Integer, nullable=False)  # whole currency units
    sports = db.Column(db.JSON, nullable=False, default=list)  # e.g. ["Badminton", "Tennis"]
    amenities = db.Column(db.JSON, nullable=False, default=list)

    rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)

    contact_phone = db.Column(db.String(30), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("price_per_hour >= 0", name="ck_venue_price_non_negative"),
    )
