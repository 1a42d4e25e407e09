class BookingError(Exception):
    """Base class for reservation failures. Routes render these as JSON."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidDateError(BookingError):
    """Booking date is in the past"""

    code = "INVALID_DATE"


class InvalidSlotError(BookingError):
    """Requested slots are not valid for this schedule"""

    code = "INVALID_SLOT"


class InvalidRequestError(BookingError):
    """Invalid booking request"""

    code = "INVALID_REQUEST"


class UnsupportedSportError(BookingError):
    """Sport is not offered at this venue"""

    code = "UNSUPPORTED_SPORT"


class VenueNotFoundError(BookingError):
    """Venue not found"""

    status_code = 404
    code = "VENUE_NOT_FOUND"


class BookingNotFoundError(BookingError):
    """Booking not found"""

    status_code = 404
    code = "BOOKING_NOT_FOUND"


class UnauthorizedError(BookingError):
    """Not allowed to modify this booking"""

    status_code = 403
    code = "UNAUTHORIZED"


class InvalidTransitionError(BookingError):
    """Booking status change not allowed"""

    status_code = 409
    code = "INVALID_TRANSITION"


class SlotConflictError(BookingError):
    """Some requested slots are already booked"""

    status_code = 409
    code = "SLOT_CONFLICT"

    def __init__(self, conflicting_slots, message: str = None):
        self.conflicting_slots = list(conflicting_slots)
        super().__init__(message or "Slots already booked: " + ", ".join(self.conflicting_slots))

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["conflicting_slots"] = self.conflicting_slots
        return out


class PaymentError(BookingError):
    """Payment was not accepted"""

    status_code = 402
    code = "PAYMENT_FAILED"


class PersistenceError(BookingError):
    """Booking storage unavailable, try again"""

    status_code = 503
    code = "STORE_UNAVAILABLE"

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["retryable"] = True
        return out
