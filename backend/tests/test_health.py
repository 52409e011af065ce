from fastapi.testclient import TestClient

from barscript.main import app


client = TestClient(app)


def test_health_endpoint_returns_ok_status() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()

    assert payload["status"] == "ok"
    assert payload["service"] == "BarScript API"
    assert payload["environment"] in {"dev", "prod", "test"}


def test_root_endpoint_returns_message() -> None:
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()

    assert "message" in payload
    assert "BarScript API" in payload["message"]


def test_responses_carry_request_id() -> None:
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"

    generated = client.get("/health").headers["X-Request-ID"]
    assert generated
