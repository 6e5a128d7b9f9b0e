import logging

from fastapi.testclient import TestClient

from common.auth import AUTH_HEADER
from service_a.main import create_app

SECRET = "service-a-secret-key"


def test_greet_with_valid_key(client_a):
    response = client_a.get("/greet", headers={AUTH_HEADER: SECRET})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    data = response.json()
    assert data["message"] == "Hello from Service A!"
    assert data["request_id"] == response.headers["X-Request-ID"]
    assert data["timestamp"]


def test_greet_without_key_is_rejected(client_a):
    response = client_a.get("/greet")

    assert response.status_code == 401
    assert response.text == "Unauthorized"
    assert response.headers["X-Request-ID"]


def test_rejected_request_never_builds_greeting(client_a, monkeypatch):
    built = []
    monkeypatch.setattr("service_a.main.GreetingResponse", lambda **kwargs: built.append(kwargs))

    response = client_a.get("/greet", headers={AUTH_HEADER: "service-a-secret-kez"})

    assert response.status_code == 401
    assert built == []


def test_key_prefix_is_not_enough(client_a):
    response = client_a.get("/greet", headers={AUTH_HEADER: SECRET[:-1]})
    assert response.status_code == 401


def test_failed_authentication_logs_masked_key(client_a, caplog):
    caplog.set_level(logging.INFO)
    client_a.get("/greet", headers={AUTH_HEADER: "guess-the-secret"})

    failed = [r for r in caplog.records if r.getMessage() == "Authentication failed"]
    assert len(failed) == 1
    record = failed[0]
    assert record.levelno == logging.WARNING
    assert record.auth_key_provided == "gu****et"
    assert record.status_code == 401
    assert record.method == "GET"
    assert record.path == "/greet"
    assert record.request_id
    assert all("guess-the-secret" not in str(r.__dict__) for r in caplog.records)


def test_authentication_attempts_are_logged(client_a, caplog):
    caplog.set_level(logging.INFO)
    response = client_a.get("/greet", headers={AUTH_HEADER: SECRET})

    messages = [r.getMessage() for r in caplog.records if r.name == "service_a"]
    assert "Authentication attempt" in messages
    assert "Authentication successful" in messages
    assert "Greeting request processed successfully" in messages
    ids = {r.request_id for r in caplog.records if r.name == "service_a"}
    assert ids == {response.headers["X-Request-ID"]}


def test_request_ids_are_unique(client_a):
    first = client_a.get("/greet", headers={AUTH_HEADER: SECRET})
    second = client_a.get("/greet", headers={AUTH_HEADER: SECRET})
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


def test_health_needs_no_key(client_a):
    response = client_a.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["server_port"] == "8080"
    assert data["request_id"] == response.headers["X-Request-ID"]
    assert data["timestamp"].endswith("Z")


def test_unexpected_error_keeps_request_id(settings_a, caplog):
    app = create_app(settings_a)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    with TestClient(app) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    assert response.headers["X-Request-ID"]
    assert [r.request_id for r in caplog.records if r.getMessage() == "Unhandled error"] == [
        response.headers["X-Request-ID"]
    ]
