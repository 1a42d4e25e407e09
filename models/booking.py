from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.String(20), nullable=False, unique=True, index=True)  # e.g. QC000042

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"), nullable=False, index=True)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    time_slots = db.Column(db.JSON, nullable=False)

    sport = db.Column(db.String(50), nullable=False)
    player_count = db.Column(db.Integer, nullable=False, default=1)

    total_amount = db.Column(db.Integer, nullable=False)
    platform_fee = db.Column(db.Integer, nullable=False)
    final_amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")
    # status values: pending, confirmed, completed, cancelled
    payment_status = db.Column(db.String(20), nullable=False, default="pending")
    # payment values: pending, completed, failed, refunded

    user_name = db.Column(db.String(120), nullable=True)
    user_phone = db.Column(db.String(30), nullable=True)
    user_email = db.Column(db.String(255), nullable=True)
    special_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint("player_count >= 1", name="ck_booking_player_count"),
        db.CheckConstraint("final_amount = total_amount + platform_fee", name="ck_booking_final_amount"),
    )


class BookingNumber(db.Model):
    """Sequence backing human-readable booking ids."""

    __tablename__ = "booking_numbers"

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
