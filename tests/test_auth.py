"""Accounts, login and password reset."""

from app.services.notifications import get_notification_service
from tests.conftest import OWNER, STAFF, auth_header


def test_register_first_owner(client):
    response = client.post("/api/auth/register", json=OWNER)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"]
    assert body["data"]["user"]["role"] == "owner"
    assert body["data"]["user"]["email"] == OWNER["email"]
    assert "passwordHash" not in body["data"]["user"]


def test_registration_closed_once_owner_exists(client, owner_token):
    response = client.post(
        "/api/auth/register",
        json={"name": "Intruder", "email": "other@example.com", "password": "secret123"},
    )

    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "message": "Registration is closed",
        "code": "registration_closed",
    }


def test_login_is_case_insensitive_on_email(client, owner_token):
    response = client.post(
        "/api/auth/login",
        json={"email": OWNER["email"].upper(), "password": OWNER["password"]},
    )

    assert response.status_code == 200
    assert response.json()["data"]["user"]["name"] == OWNER["name"]


def test_login_wrong_password(client, owner_token):
    response = client.post(
        "/api/auth/login",
        json={"email": OWNER["email"], "password": "nope-nope"},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_inactive_account_cannot_login(client, owner_headers):
    response = client.post(
        "/api/auth/users",
        json={**STAFF, "status": "inactive"},
        headers=owner_headers,
    )
    assert response.status_code == 201

    response = client.post(
        "/api/auth/login",
        json={"email": STAFF["email"], "password": STAFF["password"]},
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Account is inactive"


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers=auth_header("garbage")).status_code == 401


def test_me_returns_current_user(client, staff_headers):
    response = client.get("/api/auth/me", headers=staff_headers)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == STAFF["email"]
    assert response.json()["data"]["role"] == "staff"


def test_owner_created_users_are_always_staff(client, owner_headers):
    response = client.post(
        "/api/auth/users",
        json={**STAFF, "role": "owner"},
        headers=owner_headers,
    )

    assert response.status_code == 201
    assert response.json()["data"]["role"] == "staff"


def test_duplicate_email_conflicts(client, owner_headers):
    client.post("/api/auth/users", json=STAFF, headers=owner_headers)
    response = client.post("/api/auth/users", json=STAFF, headers=owner_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Email already registered"


def test_staff_cannot_manage_users(client, staff_headers):
    response = client.get("/api/auth/users", headers=staff_headers)
    assert response.status_code == 403


def test_change_role_and_delete(client, owner_headers, staff_token):
    users = client.get("/api/auth/users", headers=owner_headers).json()["data"]
    staff = next(u for u in users if u["email"] == STAFF["email"])

    response = client.put(
        f"/api/auth/users/{staff['id']}/role",
        json={"role": "owner"},
        headers=owner_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "owner"

    response = client.delete(f"/api/auth/users/{staff['id']}", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": True}

    # The deleted account's token no longer resolves
    assert client.get("/api/auth/me", headers=auth_header(staff_token)).status_code == 401


def test_owner_cannot_delete_self(client, owner_headers):
    me = client.get("/api/auth/me", headers=owner_headers).json()["data"]

    response = client.delete(f"/api/auth/users/{me['id']}", headers=owner_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "You cannot delete your own account"


def test_forgot_password_does_not_reveal_accounts(client, owner_token):
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    known = client.post("/api/auth/forgot-password", json={"email": OWNER["email"]})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()

    outbox = get_notification_service().outbox
    assert len(outbox) == 1
    assert outbox[0]["to"] == OWNER["email"]


def test_reset_password_flow(client, owner_token):
    client.post("/api/auth/forgot-password", json={"email": OWNER["email"]})
    reset_url = get_notification_service().messages_to(OWNER["email"])[-1]["reset_url"]
    assert reset_url.startswith("http://localhost:5173/reset-password?token=")
    token = reset_url.split("token=")[1]

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
    assert response.status_code == 200

    # Tokens are single use
    response = client.post("/api/auth/reset-password", json={"token": token, "password": "again-new"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"

    old = client.post("/api/auth/login", json={"email": OWNER["email"], "password": OWNER["password"]})
    new = client.post("/api/auth/login", json={"email": OWNER["email"], "password": "brand-new"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_short_password_rejected(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Owner", "email": "owner@example.com", "password": "123"},
    )

    assert response.status_code == 422
    assert response.json()["success"] is False


def test_last_owner_cannot_be_demoted(client, owner_headers):
    me = client.get("/api/auth/me", headers=owner_headers).json()["data"]

    response = client.put(f"/api/auth/users/{me['id']}/role", json={"role": "staff"}, headers=owner_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "At least one active owner is required"
    assert client.get("/api/auth/me", headers=owner_headers).json()["data"]["role"] == "owner"

    # Registration stays closed
    response = client.post(
        "/api/auth/register",
        json={"name": "Intruder", "email": "intruder@example.com", "password": "intruder-pass"},
    )
    assert response.status_code == 403


def test_owner_can_step_down_once_another_owner_exists(client, owner_headers, staff_token):
    users = client.get("/api/auth/users", headers=owner_headers).json()["data"]
    staff = next(u for u in users if u["email"] == STAFF["email"])
    me = next(u for u in users if u["email"] == OWNER["email"])

    client.put(f"/api/auth/users/{staff['id']}/role", json={"role": "owner"}, headers=owner_headers)
    response = client.put(f"/api/auth/users/{me['id']}/role", json={"role": "staff"}, headers=owner_headers)

    assert response.status_code == 200
    assert response.json()["data"]["role"] == "staff"
