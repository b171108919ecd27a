import json
import logging

from fastapi.testclient import TestClient

from wanderlust.database import get_db
from wanderlust.main import app
from wanderlust.request_logger import json_formatter


class TestHealth:
    def test_health_endpoints(self, client):
        for path in ("/health", "/api/health"):
            body = client.get(path).json()
            assert body["success"] is True
            assert body["status"] == "healthy"
            assert body["version"] == "1.0.0"
            assert body["environment"] == "test"

    def test_api_index(self, client):
        body = client.get("/api").json()
        assert body["endpoints"]["bookings"] == "/api/bookings"


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found", "error": "HTTP_404"}

    def test_validation_errors_list_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        assert [error["field"] for error in response.json()["errors"]] == ["password"]

    def test_unhandled_errors_become_500(self):
        def broken_db():
            raise RuntimeError("database exploded")

        app.dependency_overrides[get_db] = broken_db
        try:
            with TestClient(app, raise_server_exceptions=False) as test_client:
                response = test_client.get("/api/hotels")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert body["message"] == "Something went wrong on our end"
        assert "database exploded" in "".join(body["stack"])


class TestRequestLogging:
    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client):
        assert len(client.get("/health").headers["X-Request-ID"]) == 36

    def test_access_log_records_user(self, client, make_user, auth_headers, caplog):
        user = make_user()
        with caplog.at_level(logging.INFO, logger="wanderlust.access"):
            client.get("/api/auth/profile", headers=auth_headers(user))

        record = [r for r in caplog.records if r.name == "wanderlust.access"][-1]
        assert record.path == "/api/auth/profile"
        assert record.status == 200
        assert record.userId == user.id

    def test_failed_requests_log_warnings(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="wanderlust.access"):
            client.get("/api/favorites")

        record = [r for r in caplog.records if r.name == "wanderlust.access"][-1]
        assert record.levelno == logging.WARNING
        assert record.status == 401

    def test_json_formatter(self):
        record = logging.LogRecord("wanderlust.access", logging.INFO, __file__, 1, "GET / 200", None, None)
        record.requestId = "abc"
        record.status = 200
        record.userId = None

        entry = json.loads(json_formatter().format(record))

        assert entry["message"] == "GET / 200"
        assert entry["level"] == "INFO"
        assert entry["requestId"] == "abc"
        assert entry["status"] == 200
        assert "userId" not in entry
        assert entry["service"] == "wanderlust-api"
