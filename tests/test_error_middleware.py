from fastapi.testclient import TestClient


def test_unhandled_exception_returns_request_id(dispatcher):
    from gomanage_relay.api_main import create_app

    app = create_app(dispatcher)

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    c = TestClient(app)
    r = c.get("/boom")
    assert r.status_code == 500
    assert "X-Request-Id" in r.headers
    body = r.json()
    assert body.get("request_id") == r.headers["X-Request-Id"]
    assert body["error"]["code"] == "internal_error"


def test_validation_error_uses_error_envelope(dispatcher):
    from gomanage_relay.api_main import create_app

    c = TestClient(create_app(dispatcher))
    r = c.get("/api/gomanage", params={"action": "proxy", "entity": "customers", "first": 0})
    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"
    assert body["request_id"] == r.headers["X-Request-Id"]


def test_request_id_is_echoed_on_relay_responses(dispatcher):
    from gomanage_relay.api_main import create_app

    c = TestClient(create_app(dispatcher))
    r = c.get("/api/gomanage", params={"action": "nope"}, headers={"X-Request-Id": "demo-123"})
    assert r.status_code == 400
    assert r.headers.get("X-Request-Id") == "demo-123"
