from datetime import datetime
from models.db import db

class VenueAvailability(db.Model):
    __tablename__ = "venue_availability"

    id = db.Column(db.Integer, primary_key=True)

    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(5), nullable=False)  # "HH:00"

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    # booking_id currently holding the slot; only that booking may release it
    held_by = db.Column(db.String(20), nullable=True)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        # One record per venue slot; concurrent first claims collide here
        db.UniqueConstraint("venue_id", "date", "time_slot", name="uq_venue_date_slot"),
    )
