from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .venue import Venue
from .venue_availability import VenueAvailability
from .booking import Booking, BookingNumber
