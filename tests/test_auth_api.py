from datetime import timedelta

import pytest

from wanderlust.models import User
from wanderlust.security import create_access_token

PASSWORD = "secret123"


def register(client, **overrides):
    payload = {
        "email": "traveler@example.com",
        "password": "secret123",
        "firstName": "Ada",
        "lastName": "Lovelace",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


class TestRegister:
    def test_customer_registration(self, client, db):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["role"] == "customer"
        assert body["data"]["user"]["isVerified"] is False
        assert body["data"]["needsVerification"] is True
        assert body["data"]["token"]
        assert "hashedPassword" not in body["data"]["user"]

        user = db.query(User).filter(User.email == "traveler@example.com").one()
        assert user.hashedPassword != "secret123"
        assert user.verificationToken

    def test_duplicate_email(self, client):
        register(client)
        response = register(client)
        assert response.status_code == 409
        assert response.json()["error"] == "USER_EXISTS"

    def test_staff_roles_need_the_signup_code(self, client):
        response = register(client, role="employee", employeeSignupCode="wrong")
        assert response.status_code == 403
        assert response.json()["error"] == "INVALID_SIGNUP_CODE"

        response = register(client, role="employee", employeeSignupCode="staff-code")
        assert response.status_code == 201
        assert response.json()["data"]["user"]["role"] == "employee"

    def test_admins_are_auto_verified(self, client):
        response = register(client, role="admin", employeeSignupCode="staff-code")
        assert response.json()["data"]["user"]["isVerified"] is True
        assert response.json()["data"]["needsVerification"] is False

    @pytest.mark.parametrize("overrides,field", [
        ({"email": "not-an-email"}, "email"),
        ({"password": "short"}, "password"),
        ({"firstName": ""}, "firstName"),
    ])
    def test_validation_errors(self, client, overrides, field):
        response = register(client, **overrides)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert field in [error["field"] for error in body["errors"]]


class TestLogin:
    def test_login_returns_token(self, client, make_user):
        user = make_user(email="guest@example.com")
        response = client.post("/api/auth/login", json={"email": "guest@example.com", "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == user.id

        token = response.json()["data"]["token"]
        profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.status_code == 200
        assert profile.json()["data"]["user"]["email"] == "guest@example.com"
        assert profile.json()["data"]["user"]["fullName"] == f"Test {user.lastName}"

    def test_wrong_password(self, client, make_user):
        make_user(email="guest@example.com")
        response = client.post("/api/auth/login", json={"email": "guest@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_CREDENTIALS"

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert response.status_code == 401


class TestProfile:
    def test_requires_token(self, client):
        response = client.get("/api/auth/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "MISSING_TOKEN"

    def test_rejects_malformed_header(self, client):
        response = client.get("/api/auth/profile", headers={"Authorization": "Token abc"})
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_AUTH_HEADER"

    def test_rejects_expired_token(self, client, make_user):
        token = create_access_token(make_user(), expires_delta=timedelta(minutes=-1))
        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"

    def test_update_profile(self, client, make_user, auth_headers):
        user = make_user()
        response = client.put(
            "/api/auth/profile",
            json={"firstName": "Grace", "phone": "+351900000000", "preferences": {"currency": "EUR"}},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        data = response.json()["data"]["user"]
        assert data["firstName"] == "Grace"
        assert data["phone"] == "+351900000000"
        assert data["preferences"] == {"currency": "EUR"}

    def test_profile_image_must_be_a_url(self, client, make_user, auth_headers):
        response = client.put("/api/auth/profile", json={"profileImage": "avatar.png"}, headers=auth_headers(make_user()))
        assert response.status_code == 400

    def test_logout(self, client, make_user, auth_headers):
        response = client.post("/api/auth/logout", headers=auth_headers(make_user()))
        assert response.status_code == 200
        assert response.json()["success"] is True
