from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import List, Optional

# Booking lifecycle
PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

TERMINAL_STATUSES = {COMPLETED, CANCELLED}

ALLOWED_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}

# Payment status
PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

FREE = "free"
TAKEN = "taken"


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class Venue:
    id: int
    name: str
    location: str
    price_per_hour: int
    sports: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    description: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    owner_user_id: Optional[int] = None

    def supports(self, sport: str) -> bool:
        wanted = (sport or "").strip().lower()
        return any(s.lower() == wanted for s in self.sports)


@dataclass(frozen=True)
class Requester:
    """Who is booking, plus the contact details stored on the booking."""

    user_id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    booking_id: str
    user_id: int
    venue_id: int
    booking_date: date
    time_slots: List[str]
    sport: str
    player_count: int
    total_amount: int
    platform_fee: int
    final_amount: int
    status: str = PENDING
    payment_status: str = PAYMENT_PENDING
    user_name: Optional[str] = None
    user_phone: Optional[str] = None
    user_email: Optional[str] = None
    special_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def with_status(self, status: str, payment_status: str = None, cancelled_at: datetime = None) -> "Booking":
        return replace(
            self,
            status=status,
            payment_status=payment_status or self.payment_status,
            cancelled_at=cancelled_at or self.cancelled_at,
        )

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "venue_id": self.venue_id,
            "booking_date": self.booking_date.isoformat(),
            "time_slots": list(self.time_slots),
            "sport": self.sport,
            "player_count": self.player_count,
            "total_amount": self.total_amount,
            "platform_fee": self.platform_fee,
            "final_amount": self.final_amount,
            "status": self.status,
            "payment_status": self.payment_status,
            "user_name": self.user_name,
            "user_phone": self.user_phone,
            "user_email": self.user_email,
            "special_notes": self.special_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a conditional multi-slot claim. Empty conflicts means every slot was claimed."""

    conflicts: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.conflicts
