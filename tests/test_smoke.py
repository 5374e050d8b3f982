from kesimarket.app.config import TestConfig
from kesimarket.app.factory import create_app


def test_health():
    app = create_app(TestConfig)
    with app.test_client() as c:
        r = c.get("/health")
        assert r.status_code == 200
        assert r.json["status"] == "ok"


def test_api_index(client):
    r = client.get("/api")
    assert r.status_code == 200
    assert "endpoints" in r.json


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_not_found_json_and_html(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["error"]["code"] == "http_error"

    r = client.get("/nope")
    assert r.status_code == 404
    assert b"Page not found" in r.data


def test_request_id_forwarded_to_api(client, fake_api):
    fake_api.on("GET", "/opened/categories", {"data": []})

    client.get("/categories", headers={"X-Request-ID": "rid-9"})

    assert fake_api.calls[0].headers["X-Request-ID"] == "rid-9"
