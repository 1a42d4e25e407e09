import pytest

from app import create_app
from config import TestConfig
from models import db
from models.venue import Venue as VenueRow
from services.domain import Requester, Venue
from services.memory import InMemoryAvailabilityStore, InMemoryBookingStore, InMemoryVenueDirectory
from services.payments import StubPaymentGateway
from services.reservation import ReservationCoordinator
from tests.helpers import TODAY


@pytest.fixture
def venue():
    return Venue(
        id=1,
        name="SportZone Arena",
        location="Downtown",
        price_per_hour=200,
        sports=["Badminton", "Tennis", "Table Tennis"],
        amenities=["Parking"],
        rating=4.8,
    )


@pytest.fixture
def availability():
    return InMemoryAvailabilityStore()


@pytest.fixture
def bookings():
    return InMemoryBookingStore()


@pytest.fixture
def payments():
    return StubPaymentGateway()


@pytest.fixture
def coordinator(venue, availability, bookings, payments):
    return ReservationCoordinator(
        venues=InMemoryVenueDirectory([venue]),
        availability=availability,
        bookings=bookings,
        payments=payments,
        store_timeout=1.0,
        today=lambda: TODAY,
    )


@pytest.fixture
def alice():
    return Requester(user_id=1, name="Alice", phone="9800000001", email="alice@example.com")


@pytest.fixture
def bob():
    return Requester(user_id=2, name="Bob", email="bob@example.com")


# ---------- Flask app ----------
@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def venue_row(app):
    with app.app_context():
        row = VenueRow(
            name="Green Field Complex",
            location="Sector 21",
            price_per_hour=200,
            sports=["Football", "Badminton"],
            amenities=["Floodlights"],
            rating=4.6,
        )
        db.session.add(row)
        db.session.commit()
        return row.id
