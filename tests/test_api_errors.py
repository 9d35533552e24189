"""Error envelope, client IP detection and the health endpoints."""
from fastapi.testclient import TestClient
from starlette.requests import Request

from salesbooking.dependencies import get_client_ip, get_user_agent
from salesbooking.main import app
from salesbooking.services import booking as booking_service


def _request(headers: dict, client=("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "ok"


def test_unknown_route(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json() == {"ok": False, "error": "not_found"}
    assert r.headers["Cache-Control"] == "no-store"
    assert r.headers["Content-Type"].startswith("application/json")


def test_wrong_method(client):
    r = client.get("/booking/book-slot")
    assert r.status_code == 405
    assert r.json() == {"ok": False, "error": "method_not_allowed"}


def test_malformed_json(client):
    r = client.post("/booking/book-slot", content=b"{", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "invalid_json"}


def test_json_array_body(client):
    r = client.post("/booking/book-slot", json=[1, 2])
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_json"


def test_oversized_slot_id(client):
    r = client.post("/booking/book-slot", json={"slotId": "9" * 65, "token": "t"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_input"


def test_declared_content_length_too_large(client):
    r = client.post(
        "/booking/book-slot",
        content=b"{}",
        headers={"Content-Type": "application/json", "Content-Length": "999999"},
    )
    assert r.status_code == 413


def test_ip_rate_limit_headers(client, scenario):
    params = {"token": "T1-booking-token", "property_code": "077-NP1"}
    for i in range(60):
        r = client.get("/booking/resolve-token", params=params)
        assert r.status_code == 200
        assert r.headers["X-RateLimit-Remaining"] == str(119 - i)
    r = client.get("/booking/resolve-token", params=params)
    assert r.status_code == 429
    assert r.json() == {"ok": False, "error": "rate_limited"}
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert 0 < int(r.headers["Retry-After"]) <= 600
    assert r.headers["Cache-Control"] == "no-store"


def test_error_after_ip_check_carries_rate_limit_headers(client, scenario):
    r = client.get("/booking/resolve-token", params={"token": "forged", "property_code": "077-NP1"})
    assert r.status_code == 401
    assert r.headers["X-RateLimit-Remaining"] == "119"


def test_unhandled_error_is_opaque(session_factory, limiter, scenario, monkeypatch):
    from salesbooking.database import get_db
    from salesbooking.services.rate_limit import get_rate_limiter

    def explode(*args, **kwargs):
        raise RuntimeError("database exploded: password=hunter2")

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr("salesbooking.routers.booking.book_slot", explode)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        client = TestClient(app, raise_server_exceptions=False)
        r = client.post("/booking/book-slot", json={"slotId": scenario.s1.id, "token": "T1-booking-token"})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"ok": False, "error": "internal_error"}
    assert "hunter2" not in r.text


def test_client_ip_header_precedence():
    assert get_client_ip(_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "X-Real-IP": "3.3.3.3"})) == "1.1.1.1"
    assert get_client_ip(_request({"X-Nf-Client-Connection-Ip": "4.4.4.4", "X-Forwarded-For": "1.1.1.1"})) == "4.4.4.4"
    assert get_client_ip(_request({"CF-Connecting-IP": "5.5.5.5"})) == "5.5.5.5"
    assert get_client_ip(_request({})) == "10.0.0.9"
    assert get_client_ip(_request({}, client=None)) == "unknown"


def test_user_agent_truncated():
    assert len(get_user_agent(_request({"User-Agent": "a" * 500}))) == 300
    assert get_user_agent(_request({})) is None


def test_confirmation_task_not_scheduled_on_failure(client, scenario, monkeypatch):
    calls = []
    monkeypatch.setattr(booking_service, "request_finance_link", lambda *a: calls.append(a))
    r = client.post("/booking/book-slot", json={"slotId": 999999, "token": "T1-booking-token"})
    assert r.status_code == 404
    assert r.json()["error"] == "slot_not_found"
    assert calls == []
