from .health import health_bp
from .auth import auth_bp
from .venues import venues_bp
from .booking import booking_bp
