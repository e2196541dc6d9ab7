"""
Shared fixtures.

The environment is configured before the app is imported: a throwaway
SQLite database, development mode (mock gateway and mock email) and
Celery tasks run inline into a temporary data directory.
"""

import os
import tempfile
from pathlib import Path

import pytest

TEST_DIR = Path(tempfile.mkdtemp(prefix="pos-tests-"))
TEST_DB = TEST_DIR / "pos-test.db"

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB}"
os.environ["ENV_MODE"] = "development"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["DATA_DIRECTORY"] = str(TEST_DIR / "data")
os.environ["MOCK_GATEWAY_FAILURE_RATE"] = "0"
os.environ["MOCK_GATEWAY_LATENCY"] = "0"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("MIDTRANS_SERVER_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from app.core.middleware import global_limiter, payment_limiter  # noqa: E402
from app.core.replay import idempotency_cache, nonce_cache  # noqa: E402
from app.main import app  # noqa: E402
from app.services.excel_manager import ExcelManager  # noqa: E402
from app.services.notifications import get_notification_service  # noqa: E402
from app.services.payment import reset_payment_gateway  # noqa: E402

MOCK_SERVER_KEY = "SB-Mid-server-mock"
OWNER = {"name": "Owner", "email": "owner@example.com", "password": "owner-pass"}
STAFF = {"name": "Kasir", "email": "staff@example.com", "password": "staff-pass"}


@pytest.fixture(autouse=True)
def reset_state():
    global_limiter.reset()
    payment_limiter.reset()
    nonce_cache.clear()
    idempotency_cache.clear()
    reset_payment_gateway()
    get_notification_service().outbox.clear()
    ExcelManager.clear_all()
    yield


@pytest.fixture
def client():
    # The previous client's lifespan disposed the engine, so the file is free
    if TEST_DB.exists():
        TEST_DB.unlink()
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_token(client) -> str:
    response = client.post("/api/auth/register", json=OWNER)
    assert response.status_code == 201, response.text
    return response.json()["data"]["token"]


@pytest.fixture
def owner_headers(owner_token) -> dict[str, str]:
    return auth_header(owner_token)


@pytest.fixture
def staff_token(client, owner_headers) -> str:
    response = client.post("/api/auth/users", json=STAFF, headers=owner_headers)
    assert response.status_code == 201, response.text

    response = client.post(
        "/api/auth/login",
        json={"email": STAFF["email"], "password": STAFF["password"]},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]


@pytest.fixture
def staff_headers(staff_token) -> dict[str, str]:
    return auth_header(staff_token)


@pytest.fixture
def menu(client, owner_headers) -> list[dict]:
    """Two available dishes and one sold-out drink."""
    items = [
        {"name": "Nasi Goreng", "price": 25000, "category": "makanan"},
        {"name": "Mie Ayam", "price": 20000, "category": "makanan", "description": "Mie ayam jamur"},
        {
            "name": "Es Kopi",
            "price": 18000,
            "category": "minuman",
            "subcategory": "kafein",
            "isAvailable": False,
        },
    ]
    created = []
    for item in items:
        response = client.post("/api/menu", json=item, headers=owner_headers)
        assert response.status_code == 201, response.text
        created.append(response.json()["data"])
    return created


@pytest.fixture
def guest_order(client, menu) -> dict:
    """Table 5: 2x Nasi Goreng + 1x Mie Ayam = 70000."""
    response = client.post(
        "/api/orders/guest",
        json={
            "tableNumber": 5,
            "customerName": "Budi",
            "items": [
                {"menuId": menu[0]["id"], "quantity": 2},
                {"menuId": menu[1]["id"], "quantity": 1},
            ],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
