"""Root, health and HTTP middleware."""


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["environment"] == "development"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "operational"
    assert data["database"] == "healthy"
    assert data["redis"] == "skipped (eager tasks)"
    assert data["payment_gateway"] == "healthy"
    assert data["notification_service"] == "healthy"


def test_security_headers(client):
    response = client.get("/")

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


def test_large_body_rejected(client):
    response = client.post(
        "/api/orders/guest",
        content=b"x" * (11 * 1024),
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 413
    assert response.json() == {"success": False, "message": "Request body too large"}


def test_cors_allows_local_frontend(client):
    response = client.options(
        "/api/menu",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Idempotency-Key",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json()["success"] is False
