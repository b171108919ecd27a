import os
import sys
from decimal import Decimal

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wanderlust.database import Base, engine, init_db
from wanderlust.models import Hotel, User
from wanderlust.security import hash_password

SEED_ADMIN_EMAIL = "admin@wanderlust.com"

SAMPLE_HOTELS = [
    {
        "name": "Grand Wanderlust Hotel",
        "description": "A luxurious 5-star hotel in the heart of the city with world-class amenities and exceptional service.",
        "address": "123 Main Street",
        "city": "New York",
        "country": "United States",
        "postalCode": "10001",
        "latitude": Decimal("40.7589"),
        "longitude": Decimal("-73.9851"),
        "starRating": 5,
        "pricePerNight": Decimal("299.99"),
        "currency": "USD",
        "amenities": [
            "Free WiFi", "Swimming Pool", "Fitness Center", "Spa", "Restaurant",
            "Room Service", "Business Center", "Concierge Service", "Valet Parking", "Pet Friendly",
        ],
        "images": [
            "https://example.com/hotel1.jpg",
            "https://example.com/hotel2.jpg",
            "https://example.com/hotel3.jpg",
        ],
        "totalRooms": 150,
        "availableRooms": 120,
        "phoneNumber": "+1-555-123-4567",
        "email": "info@grandwanderlust.com",
        "website": "https://grandwanderlust.com",
    },
    {
        "name": "Seaside Resort & Spa",
        "description": "Beautiful beachfront resort with stunning ocean views and relaxing spa treatments.",
        "address": "456 Ocean Drive",
        "city": "Miami",
        "country": "United States",
        "postalCode": "33139",
        "latitude": Decimal("25.7617"),
        "longitude": Decimal("-80.1918"),
        "starRating": 4,
        "pricePerNight": Decimal("199.99"),
        "currency": "USD",
        "amenities": [
            "Free WiFi", "Beach Access", "Swimming Pool", "Spa", "Restaurant",
            "Bar", "Water Sports", "Beach Volleyball",
        ],
        "images": [
            "https://example.com/resort1.jpg",
            "https://example.com/resort2.jpg",
        ],
        "totalRooms": 85,
        "availableRooms": 65,
        "phoneNumber": "+1-555-987-6543",
        "email": "info@seasideresort.com",
        "website": "https://seasideresort.com",
    },
]


def check_connection(bind=engine) -> bool:
    """Run a trivial query and list the tables that exist."""
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        print(f"Database connection failed: {e}")
        return False

    existing_tables = inspect(bind).get_table_names()
    print(f"Database connection OK ({bind.url.get_backend_name()})")
    for table in Base.metadata.tables:
        state = "present" if table in existing_tables else "missing"
        print(f"  {table}: {state}")
    return True


def reset_model_tables(bind=engine):
    # drop_all orders by foreign keys and removes PostgreSQL enum types too
    existing_tables = set(inspect(bind).get_table_names())
    for table in reversed(Base.metadata.sorted_tables):
        if table.name in existing_tables:
            print(f"Dropping table: {table.name}")
    Base.metadata.drop_all(bind=bind)

    init_db(bind=bind)
    print("Database tables updated successfully!")



def seed_sample_data(bind=engine):
    """Create the admin account and the sample hotels unless they already exist."""
    with Session(bind=bind) as db:
        if db.query(User.id).filter(User.email == SEED_ADMIN_EMAIL).first() is None:
            db.add(User(
                email=SEED_ADMIN_EMAIL,
                hashedPassword=hash_password(os.getenv("SEED_ADMIN_PASSWORD", "password123")),
                firstName="Admin",
                lastName="User",
                role="admin",
                isVerified=True,
                preferences={},
            ))
            print(f"Admin user created: {SEED_ADMIN_EMAIL}")

        for fields in SAMPLE_HOTELS:
            if db.query(Hotel.id).filter(Hotel.name == fields["name"]).first() is not None:
                continue
            db.add(Hotel(checkInTime="15:00", checkOutTime="11:00", isActive=True, **fields))
            print(f"Sample hotel created: {fields['name']}")

        db.commit()
    print("Sample data setup completed")


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "reset"
    if command == "check":
        sys.exit(0 if check_connection() else 1)
    elif command == "create":
        init_db()
        print("Database tables created")
    elif command == "reset":
        reset_model_tables()
    elif command == "seed":
        init_db()
        seed_sample_data()
    else:
        print("Usage: python db_init.py [check|create|reset|seed]")
        sys.exit(2)
