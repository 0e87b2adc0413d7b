"""Tests for the middleware pipeline and the informational endpoints"""
import mongomock
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from taskflow.database import Database
from taskflow.main import create_app
from taskflow.middleware import MAX_BODY_BYTES, RATE_LIMIT_MESSAGE, BodySizeLimitMiddleware


def test_security_headers_on_every_response(client):
    for path in ("/", "/health", "/missing"):
        response = client.get(path)
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "Referrer-Policy" in response.headers
        assert "Strict-Transport-Security" not in response.headers


def test_hsts_in_production(settings, database):
    settings.ENVIRONMENT = "production"
    client = TestClient(create_app(settings, database))
    response = client.get("/health")
    assert response.headers["Strict-Transport-Security"].startswith("max-age=")


def test_cors_allows_configured_origin(client, settings):
    response = client.options(
        "/api/items",
        headers={
            "Origin": settings.CORS_ORIGIN,
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == settings.CORS_ORIGIN
    assert response.headers["access-control-allow-credentials"] == "true"


def test_body_limit_is_ten_megabytes():
    assert MAX_BODY_BYTES == 10 * 1024 * 1024


def test_oversized_body_rejected_before_handler():
    """The handler must never run for an oversized body"""
    calls = []
    app = FastAPI()
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=16)

    @app.post("/echo")
    async def echo():
        calls.append(1)
        return {"ok": True}

    client = TestClient(app)
    response = client.post("/echo", content=b"x" * 17)

    assert response.status_code == 413
    assert response.json()["success"] is False
    assert calls == []

    assert client.post("/echo", content=b"x" * 16).status_code == 200
    assert calls == [1]


def test_oversized_json_rejected_by_app(client):
    response = client.post(
        "/api/auth/register",
        content=b"{" + b" " * MAX_BODY_BYTES + b"}",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413


def test_chunked_body_without_content_length_is_limited():
    calls = []
    app = FastAPI()
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=16)

    @app.post("/echo")
    async def echo(request: Request):
        calls.append(await request.body())
        return {"ok": True}

    def chunks(count):
        for _ in range(count):
            yield b"x" * 8

    client = TestClient(app)
    response = client.post("/echo", content=chunks(3))

    assert response.status_code == 413
    assert calls == []

    assert client.post("/echo", content=chunks(2)).status_code == 200
    assert calls == [b"x" * 16]


def test_oversized_chunked_login_rejected_by_app(client):
    def chunks():
        chunk = b" " * (1024 * 1024)
        for _ in range(11):
            yield chunk

    response = client.post(
        "/api/auth/login",
        content=chunks(),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["success"] is False


def test_unhandled_errors_keep_security_and_cors_headers(settings, database):
    app = create_app(settings, database)

    @app.get("/crash")
    async def crash():
        raise RuntimeError("boom")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/crash", headers={"Origin": settings.CORS_ORIGIN})

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert response.headers["access-control-allow-origin"] == settings.CORS_ORIGIN
    assert app.state.metrics.get_metrics()["error_responses"] == 1


def test_rate_limit_rejects_over_ceiling(settings, database):
    settings.RATE_LIMIT_MAX = 3
    client = TestClient(create_app(settings, database))

    for _ in range(3):
        assert client.get("/health").status_code == 200

    response = client.get("/health")
    assert response.status_code == 429
    assert response.json() == {"success": False, "message": RATE_LIMIT_MESSAGE}


def test_rate_limit_window_is_shared_across_routes(settings, database):
    settings.RATE_LIMIT_MAX = 2
    client = TestClient(create_app(settings, database))

    assert client.get("/").status_code == 200
    assert client.get("/health").status_code == 200
    assert client.post("/api/auth/login", json={}).status_code == 429


def test_root_overview(client):
    response = client.get("/")
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert set(body["endpoints"]) == {"auth", "items", "reminders", "notifications"}
    assert body["features"]
    assert body["technologies"]


def test_api_redirects_to_root(client):
    response = client.get("/api", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/"


def test_health_reports_connected(client):
    response = client.get("/health")
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["uptime"] >= 0
    assert "max_rss_kb" in body["memory"]


def test_health_reports_disconnected(settings):
    database = Database(settings.MONGODB_URI, client_factory=mongomock.MongoClient)
    client = TestClient(create_app(settings, database))

    body = client.get("/health").json()
    assert body["success"] is True
    assert body["database"] == "disconnected"


def test_unknown_route_catalog(client):
    response = client.get("/api/unknown")
    assert response.status_code == 404
    assert "POST /api/auth/register" in response.json()["availableEndpoints"]


def test_static_files_served_when_directory_exists(settings, database, tmp_path):
    (tmp_path / "hello.txt").write_text("hi")
    settings.STATIC_DIR = str(tmp_path)
    client = TestClient(create_app(settings, database))

    response = client.get("/static/hello.txt")
    assert response.status_code == 200
    assert response.text == "hi"
