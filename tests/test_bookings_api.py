from datetime import date, timedelta

import pytest

from wanderlust.models import Hotel


@pytest.fixture
def booking_payload(stay):
    def _payload(hotel, **overrides):
        check_in, check_out = stay(3)
        payload = {
            "hotelId": hotel.id,
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
            "numberOfGuests": 2,
            "numberOfRooms": 2,
            "contactEmail": "guest@example.com",
            "guestNames": ["Ada Lovelace", "Charles Babbage"],
        }
        payload.update(overrides)
        return payload

    return _payload


def rooms_left(db, hotel) -> int:
    db.expire_all()
    return db.get(Hotel, hotel.id).availableRooms


class TestCreateBooking:
    def test_create(self, client, db, make_user, make_hotel, auth_headers, booking_payload):
        hotel = make_hotel(availableRooms=5)
        user = make_user()

        response = client.post("/api/bookings", json=booking_payload(hotel), headers=auth_headers(user))

        assert response.status_code == 201
        booking = response.json()["data"]["booking"]
        assert booking["status"] == "pending"
        assert booking["userId"] == user.id
        assert booking["totalPrice"] == 600.0
        assert booking["numberOfNights"] == 3
        assert booking["isUpcoming"] is True
        assert booking["canBeCancelled"] is True
        assert booking["isPaid"] is False
        assert booking["hotel"]["id"] == hotel.id
        assert rooms_left(db, hotel) == 3

    def test_requires_authentication(self, client, make_hotel, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(make_hotel()))
        assert response.status_code == 401

    def test_insufficient_rooms(self, client, db, make_user, make_hotel, auth_headers, booking_payload):
        hotel = make_hotel(availableRooms=1)
        response = client.post("/api/bookings", json=booking_payload(hotel), headers=auth_headers(make_user()))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INSUFFICIENT_ROOMS"
        assert body["data"] == {"requestedRooms": 2, "availableRooms": 1}
        assert rooms_left(db, hotel) == 1

    def test_unknown_hotel(self, client, make_user, make_hotel, auth_headers, booking_payload):
        payload = booking_payload(make_hotel(), hotelId=999)
        response = client.post("/api/bookings", json=payload, headers=auth_headers(make_user()))
        assert response.status_code == 404

    @pytest.mark.parametrize("overrides", [
        {"checkOutDate": (date.today() + timedelta(days=10)).isoformat()},
        {"checkInDate": (date.today() - timedelta(days=1)).isoformat()},
        {"numberOfGuests": 21},
        {"numberOfRooms": 11},
        {"contactEmail": "nope"},
        {"guestNames": ["Guest"] * 21},
    ])
    def test_validation(self, client, db, make_user, make_hotel, auth_headers, booking_payload, overrides):
        hotel = make_hotel()
        response = client.post("/api/bookings", json=booking_payload(hotel, **overrides), headers=auth_headers(make_user()))
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert rooms_left(db, hotel) == 10


class TestBookingAccess:
    def test_owner_and_staff_can_read_others_get_404(self, client, make_user, make_hotel, make_booking, auth_headers):
        owner, stranger = make_user(), make_user()
        booking = make_booking(owner, make_hotel())

        assert client.get(f"/api/bookings/{booking.id}", headers=auth_headers(owner)).status_code == 200
        assert client.get(f"/api/bookings/{booking.id}", headers=auth_headers(stranger)).status_code == 404
        assert client.put(
            f"/api/bookings/{booking.id}", json={"numberOfGuests": 1}, headers=auth_headers(stranger),
        ).status_code == 404
        assert client.delete(f"/api/bookings/{booking.id}", headers=auth_headers(stranger)).status_code == 404

        employee = make_user(role="employee")
        assert client.get(f"/api/bookings/{booking.id}", headers=auth_headers(employee)).status_code == 200

    def test_my_bookings(self, client, make_user, make_hotel, make_booking, auth_headers):
        user, other = make_user(), make_user()
        hotel = make_hotel()
        make_booking(user, hotel)
        make_booking(user, hotel, status="cancelled")
        make_booking(other, hotel)

        response = client.get("/api/bookings/my", headers=auth_headers(user))
        assert response.json()["data"]["pagination"]["totalItems"] == 2

        response = client.get("/api/bookings/my", params={"status": "cancelled"}, headers=auth_headers(user))
        bookings = response.json()["data"]["bookings"]
        assert [booking["status"] for booking in bookings] == ["cancelled"]

    def test_staff_listing(self, client, make_user, make_hotel, make_booking, auth_headers):
        customer = make_user()
        hotel = make_hotel()
        make_booking(customer, hotel)
        make_booking(make_user(), hotel, status="confirmed")

        assert client.get("/api/bookings", headers=auth_headers(customer)).status_code == 403

        response = client.get(
            "/api/bookings", params={"status": "confirmed", "sortBy": "checkin"},
            headers=auth_headers(make_user(role="admin")),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pagination"]["totalItems"] == 1
        assert data["filters"]["status"] == "confirmed"

    def test_staff_listing_rejects_bad_limit(self, client, make_user, auth_headers):
        response = client.get("/api/bookings", params={"limit": 101}, headers=auth_headers(make_user(role="admin")))
        assert response.status_code == 400


class TestUpdateAndCancel:
    def test_update_rooms(self, client, db, make_user, make_hotel, auth_headers, booking_payload):
        hotel = make_hotel(availableRooms=5)
        user = make_user()
        created = client.post("/api/bookings", json=booking_payload(hotel), headers=auth_headers(user)).json()

        booking_id = created["data"]["booking"]["id"]
        response = client.put(f"/api/bookings/{booking_id}", json={"numberOfRooms": 3}, headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json()["data"]["booking"]["totalPrice"] == 900.0
        assert rooms_left(db, hotel) == 2

    def test_update_beyond_capacity(self, client, db, make_user, make_hotel, auth_headers, booking_payload):
        hotel = make_hotel(totalRooms=3, availableRooms=3)
        user = make_user()
        created = client.post("/api/bookings", json=booking_payload(hotel), headers=auth_headers(user)).json()

        booking_id = created["data"]["booking"]["id"]
        response = client.put(f"/api/bookings/{booking_id}", json={"numberOfRooms": 4}, headers=auth_headers(user))

        assert response.status_code == 400
        assert rooms_left(db, hotel) == 1
        booking = client.get(f"/api/bookings/{booking_id}", headers=auth_headers(user)).json()["data"]["booking"]
        assert booking["numberOfRooms"] == 2

    def test_current_stay_can_be_extended_with_both_dates(self, client, make_user, make_hotel, make_booking, auth_headers):
        user = make_user()
        check_in = date.today() - timedelta(days=1)
        booking = make_booking(user, make_hotel(), status="confirmed", checkInDate=check_in)
        new_check_out = (date.today() + timedelta(days=4)).isoformat()

        response = client.put(
            f"/api/bookings/{booking.id}",
            json={"checkInDate": check_in.isoformat(), "checkOutDate": new_check_out},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        data = response.json()["data"]["booking"]
        assert data["checkOutDate"] == new_check_out
        assert data["numberOfNights"] == 5
        assert data["totalPrice"] == 500.0

    def test_moving_check_in_into_the_past_is_rejected(self, client, make_user, make_hotel, make_booking, auth_headers):
        user = make_user()
        booking = make_booking(user, make_hotel())

        response = client.put(
            f"/api/bookings/{booking.id}",
            json={
                "checkInDate": (date.today() - timedelta(days=2)).isoformat(),
                "checkOutDate": (date.today() + timedelta(days=2)).isoformat(),
            },
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Check-in date cannot be in the past"

    def test_cancel_and_repeat(self, client, db, make_user, make_hotel, auth_headers, booking_payload):
        hotel = make_hotel(availableRooms=5)
        user = make_user()
        created = client.post("/api/bookings", json=booking_payload(hotel), headers=auth_headers(user)).json()
        booking_id = created["data"]["booking"]["id"]

        response = client.request(
            "DELETE", f"/api/bookings/{booking_id}",
            json={"cancellationReason": "Change of plans"}, headers=auth_headers(user),
        )
        assert response.status_code == 200
        booking = response.json()["data"]["booking"]
        assert booking["status"] == "cancelled"
        assert booking["cancellationReason"] == "Change of plans"
        assert rooms_left(db, hotel) == 5

        response = client.delete(f"/api/bookings/{booking_id}", headers=auth_headers(user))
        assert response.status_code == 400
        assert rooms_left(db, hotel) == 5


class TestStatusEndpoints:
    def test_confirm_then_complete(self, client, make_user, make_hotel, make_booking, auth_headers):
        booking = make_booking(make_user(), make_hotel())
        headers = auth_headers(make_user(role="employee"))

        response = client.patch(f"/api/bookings/{booking.id}/status", json={"status": "confirmed"}, headers=headers)
        assert response.json()["data"]["booking"]["status"] == "confirmed"

        response = client.patch(f"/api/bookings/{booking.id}/status", json={"status": "completed"}, headers=headers)
        assert response.json()["data"]["booking"]["status"] == "completed"

        response = client.patch(f"/api/bookings/{booking.id}/status", json={"status": "pending"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TRANSITION"

    def test_customers_cannot_change_status(self, client, make_user, make_hotel, make_booking, auth_headers):
        user = make_user()
        booking = make_booking(user, make_hotel())
        response = client.patch(f"/api/bookings/{booking.id}/status", json={"status": "confirmed"}, headers=auth_headers(user))
        assert response.status_code == 403

    def test_payment_status(self, client, make_user, make_hotel, make_booking, auth_headers):
        booking = make_booking(make_user(), make_hotel())
        response = client.patch(
            f"/api/bookings/{booking.id}/payment",
            json={"paymentStatus": "paid", "paymentMethod": "card"},
            headers=auth_headers(make_user(role="admin")),
        )
        assert response.status_code == 200
        assert response.json()["data"]["booking"]["paymentStatus"] == "paid"
        assert response.json()["data"]["booking"]["isPaid"] is True

        response = client.patch(
            f"/api/bookings/{booking.id}/payment",
            json={"paymentStatus": "lost"},
            headers=auth_headers(make_user(role="admin")),
        )
        assert response.status_code == 400
