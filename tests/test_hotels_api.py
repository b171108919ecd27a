from datetime import date, timedelta

import pytest

from wanderlust.models import Favorite, Hotel, Review


def hotel_payload(**overrides):
    payload = {
        "name": "Casa do Rio",
        "address": "Rua do Ouro 10",
        "city": "Lisbon",
        "country": "Portugal",
        "starRating": 4,
        "pricePerNight": 120.0,
        "currency": "EUR",
        "amenities": ["wifi"],
        "checkInTime": "14:00",
        "totalRooms": 8,
        "availableRooms": 8,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_review(db):
    def _factory(user, hotel, rating: float, **overrides) -> Review:
        fields = {"isVisible": True, **overrides}
        review = Review(userId=user.id, hotelId=hotel.id, rating=rating, **fields)
        db.add(review)
        db.commit()
        db.refresh(review)
        return review

    return _factory


class TestSearchHotels:
    def test_only_active_hotels_with_enough_rooms(self, client, make_hotel):
        visible = make_hotel(name="Open")
        make_hotel(name="Closed", isActive=False)
        make_hotel(name="Full", availableRooms=0)

        response = client.get("/api/hotels")

        assert response.status_code == 200
        hotels = response.json()["data"]["hotels"]
        assert [hotel["id"] for hotel in hotels] == [visible.id]

    def test_filters(self, client, make_hotel):
        make_hotel(name="A", city="Lisbon", pricePerNight=80, starRating=3, amenities=["wifi"])
        make_hotel(name="B", city="Lisbon", pricePerNight=200, starRating=5, amenities=["wifi", "spa"])
        make_hotel(name="C", city="Porto", country="Portugal", pricePerNight=150, starRating=4, amenities=["spa"])

        def names(**params):
            response = client.get("/api/hotels", params=params)
            assert response.status_code == 200
            return [hotel["name"] for hotel in response.json()["data"]["hotels"]]

        assert names(city="LISB") == ["A", "B"]
        assert names(minPrice=100, maxPrice=180) == ["C"]
        assert names(minStarRating=4) == ["B", "C"]
        assert names(amenities=["wifi", "spa"]) == ["B"]
        assert names(amenities="spa,wifi") == ["B"]
        assert names(rooms=11) == []

    def test_amenities_match_whole_elements(self, client, make_hotel):
        make_hotel(name="Bairro", amenities=["Café", "Free WiFi"])
        make_hotel(name="Plain", amenities=["wifi"])

        def names(amenity):
            response = client.get("/api/hotels", params={"amenities": amenity})
            return [hotel["name"] for hotel in response.json()["data"]["hotels"]]

        assert names("Café") == ["Bairro"]
        assert names("Free WiFi") == ["Bairro"]
        assert names("%") == []
        assert names("wi_i") == []
        assert names("Caf") == []

    def test_sorting_and_pagination(self, client, make_hotel):
        for name, price in (("A", 300), ("B", 100), ("C", 200)):
            make_hotel(name=name, pricePerNight=price)

        response = client.get("/api/hotels", params={"sortBy": "price", "sortOrder": "desc", "page": 2, "limit": 2})

        data = response.json()["data"]
        assert [hotel["name"] for hotel in data["hotels"]] == ["B"]
        assert data["pagination"] == {"currentPage": 2, "totalPages": 2, "totalItems": 3, "itemsPerPage": 2}
        assert data["filters"]["sortBy"] == "price"

    def test_limit_is_capped(self, client, make_hotel):
        make_hotel()
        response = client.get("/api/hotels", params={"limit": 500})
        assert response.json()["data"]["pagination"]["itemsPerPage"] == 100

    def test_average_rating_uses_visible_reviews(self, client, make_hotel, make_user, make_review):
        hotel = make_hotel()
        user = make_user()
        make_review(user, hotel, 5)
        make_review(user, hotel, 4)
        make_review(user, hotel, 4)
        make_review(user, hotel, 1, isVisible=False)

        hotel_data = client.get("/api/hotels").json()["data"]["hotels"][0]
        assert hotel_data["averageRating"] == 4.3
        assert hotel_data["reviewCount"] == 3

    def test_invalid_sort(self, client):
        response = client.get("/api/hotels", params={"sortBy": "distance"})
        assert response.status_code == 400


class TestHotelDetail:
    def test_detail_with_rating_distribution(self, client, make_hotel, make_user, make_review):
        hotel = make_hotel()
        user = make_user(firstName="Rita")
        make_review(user, hotel, 5, title="Lovely")
        make_review(user, hotel, 3.5)
        make_review(user, hotel, 1)

        response = client.get(f"/api/hotels/{hotel.id}")

        assert response.status_code == 200
        data = response.json()["data"]["hotel"]
        assert data["reviewCount"] == 3
        assert data["ratingDistribution"] == {"5": 1, "4": 1, "3": 0, "2": 0, "1": 1}
        assert len(data["reviews"]) == 3
        assert data["reviews"][0]["user"]["firstName"] == "Rita"
        assert data["fullAddress"] == f"{hotel.address}, Lisbon, Portugal"
        assert data["isFavorite"] is False

    def test_favorite_flag_follows_the_caller(self, client, db, make_hotel, make_user, auth_headers):
        hotel = make_hotel()
        fan, other = make_user(), make_user()
        db.add(Favorite(userId=fan.id, hotelId=hotel.id))
        db.commit()

        def is_favorite(headers=None):
            response = client.get(f"/api/hotels/{hotel.id}", headers=headers)
            assert response.status_code == 200
            return response.json()["data"]["hotel"]["isFavorite"]

        assert is_favorite(auth_headers(fan)) is True
        assert is_favorite(auth_headers(other)) is False
        assert is_favorite() is False
        assert is_favorite({"Authorization": "Bearer not-a-token"}) is False

    def test_inactive_hotel_is_hidden(self, client, make_hotel):
        hotel = make_hotel(isActive=False)
        response = client.get(f"/api/hotels/{hotel.id}")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_reviews_are_paginated(self, client, make_hotel, make_user, make_review):
        hotel = make_hotel()
        user = make_user()
        for rating in (5, 4, 3):
            make_review(user, hotel, rating)

        response = client.get(f"/api/hotels/{hotel.id}/reviews", params={"limit": 2})

        data = response.json()["data"]
        assert len(data["reviews"]) == 2
        assert data["pagination"]["totalItems"] == 3


class TestAvailability:
    def test_quote(self, client, make_hotel):
        hotel = make_hotel(pricePerNight=100, availableRooms=3)
        check_in = date.today() + timedelta(days=5)
        response = client.get(f"/api/hotels/{hotel.id}/availability", params={
            "checkInDate": check_in.isoformat(),
            "checkOutDate": (check_in + timedelta(days=3)).isoformat(),
            "rooms": 2,
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["isAvailable"] is True
        assert data["numberOfNights"] == 3
        assert data["totalPrice"] == 600.0

    def test_not_enough_rooms(self, client, make_hotel):
        hotel = make_hotel(availableRooms=1)
        check_in = date.today() + timedelta(days=5)
        response = client.get(f"/api/hotels/{hotel.id}/availability", params={
            "checkInDate": check_in.isoformat(),
            "checkOutDate": (check_in + timedelta(days=1)).isoformat(),
            "rooms": 2,
        })
        assert response.json()["data"]["isAvailable"] is False

    def test_bad_dates(self, client, make_hotel):
        hotel = make_hotel()
        response = client.get(f"/api/hotels/{hotel.id}/availability", params={
            "checkInDate": "2030-05-03",
            "checkOutDate": "2030-05-01",
        })
        assert response.status_code == 400


class TestManageHotels:
    def test_customers_cannot_create(self, client, make_user, auth_headers):
        response = client.post("/api/hotels", json=hotel_payload(), headers=auth_headers(make_user()))
        assert response.status_code == 403
        assert response.json()["error"] == "INSUFFICIENT_PERMISSIONS"
        assert response.json()["data"]["current"] == "customer"

    def test_employee_creates_hotel(self, client, make_user, auth_headers):
        response = client.post("/api/hotels", json=hotel_payload(), headers=auth_headers(make_user(role="employee")))
        assert response.status_code == 201
        hotel = response.json()["data"]["hotel"]
        assert hotel["name"] == "Casa do Rio"
        assert hotel["checkInTime"] == "14:00"
        assert hotel["isActive"] is True

    def test_duplicate_name_in_same_city(self, client, make_user, make_hotel, auth_headers):
        make_hotel(name="Casa do Rio", city="Lisbon", country="Portugal")
        response = client.post("/api/hotels", json=hotel_payload(), headers=auth_headers(make_user(role="admin")))
        assert response.status_code == 409

    @pytest.mark.parametrize("overrides", [
        {"starRating": 6},
        {"checkInTime": "25:00"},
        {"website": "not a url"},
        {"currency": "EURO"},
        {"availableRooms": 9, "totalRooms": 8},
    ])
    def test_field_validation(self, client, make_user, auth_headers, overrides):
        response = client.post(
            "/api/hotels", json=hotel_payload(**overrides), headers=auth_headers(make_user(role="admin")),
        )
        assert response.status_code == 400

    def test_update_keeps_room_bounds(self, client, db, make_user, make_hotel, auth_headers):
        hotel = make_hotel(totalRooms=10, availableRooms=10)
        headers = auth_headers(make_user(role="employee"))

        response = client.put(f"/api/hotels/{hotel.id}", json={"totalRooms": 5}, headers=headers)
        assert response.status_code == 400

        response = client.put(
            f"/api/hotels/{hotel.id}", json={"totalRooms": 5, "availableRooms": 5, "starRating": 5}, headers=headers,
        )
        assert response.status_code == 200
        db.refresh(hotel)
        assert (hotel.totalRooms, hotel.availableRooms, hotel.starRating) == (5, 5, 5)

    def test_update_missing_hotel(self, client, make_user, auth_headers):
        response = client.put("/api/hotels/999", json={"name": "X"}, headers=auth_headers(make_user(role="admin")))
        assert response.status_code == 404

    def test_only_admin_soft_deletes(self, client, db, make_user, make_hotel, auth_headers):
        hotel = make_hotel()
        response = client.delete(f"/api/hotels/{hotel.id}", headers=auth_headers(make_user(role="employee")))
        assert response.status_code == 403

        response = client.delete(f"/api/hotels/{hotel.id}", headers=auth_headers(make_user(role="admin")))
        assert response.status_code == 200
        db.refresh(hotel)
        assert hotel.isActive is False
        assert db.get(Hotel, hotel.id) is not None
        assert client.get(f"/api/hotels/{hotel.id}").status_code == 404
