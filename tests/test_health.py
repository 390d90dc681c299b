from __future__ import annotations


def test_health_ok(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "ok"
    assert data["db"] == "ok"
    assert "time" in data
    assert "version" in data


def test_version(app_client):
    _app, client = app_client
    res = client.get("/version")
    assert res.status_code == 200
    data = res.get_json()
    assert "version" in data
    assert data["env"] == "development"
    assert "time" in data


def test_metrics_collects_per_endpoint_latency(app_client):
    app, client = app_client
    client.get("/health")
    client.get("/api/securecare/employee/1")
    client.get("/api/securecare/employee/2")

    endpoints = client.get("/metrics").get_json()["data"]["endpoints"]
    assert endpoints["GET /health"]["count"] == 1
    assert endpoints["GET /api/securecare/employee/<int:employee_id>"]["count"] == 2
    assert app.extensions["metrics"].snapshot()["GET /metrics"]["count"] == 1


def test_request_id_and_security_headers(app_client):
    _app, client = app_client

    res = client.get("/api/securecare/filters", headers={"X-Request-ID": "req-123"})
    assert res.headers["X-Request-ID"] == "req-123"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["Cache-Control"] == "no-store"

    res = client.get("/health", headers={"X-Request-ID": "<script>alert(1)</script>"})
    rid = res.headers["X-Request-ID"]
    assert len(rid) == 16
    assert "<" not in rid


def test_error_envelope_for_unknown_route(app_client):
    _app, client = app_client
    res = client.get("/api/securecare/nope", headers={"X-Request-ID": "abc"})
    assert res.status_code == 404
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_404"
    assert body["request_id"] == "abc"


def test_mutation_rate_limit(app_client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MUTATION", "2 per hour")
    from app import create_app

    app = create_app()
    client = app.test_client()
    headers = {"X-User-Email": "a@example.com"}

    for _ in range(2):
        assert client.post("/api/securecare/approve", headers=headers, json={"employeeId": 1}).status_code == 404
    res = client.post("/api/securecare/approve", headers=headers, json={"employeeId": 1})
    assert res.status_code == 429
    assert res.get_json()["error"]["code"] == "RATE_LIMITED"

    # Reads use their own budget.
    assert client.get("/api/securecare/filters").status_code == 200
