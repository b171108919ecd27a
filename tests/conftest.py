import itertools
import os
import tempfile
from datetime import date, timedelta
from decimal import Decimal

# Settings are read when wanderlust is first imported
_settings_dir = tempfile.mkdtemp(prefix="wanderlust-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_settings_dir, 'app.db')}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["EMPLOYEE_SIGNUP_CODE"] = "staff-code"
os.environ["ENVIRONMENT"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from wanderlust.database import Base, get_db, make_engine  # noqa: E402
from wanderlust.main import app  # noqa: E402
from wanderlust.middleware import Principal  # noqa: E402
from wanderlust.models import Booking, Hotel, User  # noqa: E402
from wanderlust.security import create_access_token, hash_password  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory fixture creating verified users with a known password."""
    counter = itertools.count(1)

    def _factory(role: str = "customer", email: str = None, password: str = PASSWORD, **overrides) -> User:
        n = next(counter)
        user = User(
            email=email or f"user{n}@example.com",
            hashedPassword=hash_password(password),
            firstName=overrides.pop("firstName", "Test"),
            lastName=overrides.pop("lastName", f"User{n}"),
            role=role,
            isVerified=True,
            preferences={},
            **overrides,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _factory


@pytest.fixture
def make_hotel(db):
    counter = itertools.count(1)

    def _factory(**overrides) -> Hotel:
        n = next(counter)
        fields = {
            "name": f"Hotel {n}",
            "address": f"{n} Rua Augusta",
            "city": "Lisbon",
            "country": "Portugal",
            "starRating": 4,
            "pricePerNight": Decimal("100.00"),
            "currency": "EUR",
            "amenities": ["wifi", "pool"],
            "images": [],
            "totalRooms": 10,
            "availableRooms": 10,
            "isActive": True,
        }
        fields.update(overrides)
        hotel = Hotel(**fields)
        db.add(hotel)
        db.commit()
        db.refresh(hotel)
        return hotel

    return _factory


@pytest.fixture
def make_booking(db):
    """Insert a booking row directly, without touching inventory."""
    counter = itertools.count(1)

    def _factory(user: User, hotel: Hotel, **overrides) -> Booking:
        n = next(counter)
        check_in = overrides.pop("checkInDate", date.today() + timedelta(days=10))
        fields = {
            "userId": user.id,
            "hotelId": hotel.id,
            "checkInDate": check_in,
            "checkOutDate": check_in + timedelta(days=2),
            "numberOfGuests": 2,
            "numberOfRooms": 1,
            "totalPrice": Decimal("200.00"),
            "currency": hotel.currency,
            "status": "pending",
            "paymentStatus": "pending",
            "guestNames": [],
            "contactEmail": user.email,
            "bookingReference": f"WLTEST{n:06d}",
        }
        fields.update(overrides)
        booking = Booking(**fields)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _factory


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture
def principal_for():
    def _principal(user: User) -> Principal:
        return Principal(userId=user.id, email=user.email, role=user.role)

    return _principal


@pytest.fixture
def stay():
    """Future (checkIn, checkOut) dates ``nights`` apart."""
    def _stay(nights: int = 3, days_ahead: int = 10):
        check_in = date.today() + timedelta(days=days_ahead)
        return check_in, check_in + timedelta(days=nights)

    return _stay
