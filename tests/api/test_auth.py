import pytest
from fastapi.testclient import TestClient

from app.tutorcenter.main import app
from app.tutorcenter.db.seed import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, DEMO_TUTOR_EMAIL, DEMO_TUTOR_PASSWORD

TUTOR_LOGIN = {"email": DEMO_TUTOR_EMAIL, "password": DEMO_TUTOR_PASSWORD, "role": "tutor"}
ADMIN_LOGIN = {"email": DEMO_ADMIN_EMAIL, "password": DEMO_ADMIN_PASSWORD, "role": "admin"}

# --- Test Scenarios ---

def test_tutor_login_success():
    """
    Scenario: the seeded tutor logs in.
    Expected: 200, a bearer token, and the user without its password.
    """
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json=TUTOR_LOGIN)

    assert response.status_code == 200
    data = response.json()
    assert data["token"]["token_type"] == "bearer"
    assert data["token"]["access_token"]
    assert data["user"]["role"] == "tutor"
    assert data["user"]["name"] == "Sarah Johnson"
    assert data["user"]["last_login"] is not None
    assert "password" not in data["user"]

def test_login_wrong_password_fails():
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json={**TUTOR_LOGIN, "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email, password or role."

def test_login_with_wrong_role_fails():
    """Scenario: correct credentials, but the tutor asks to sign in as an admin."""
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json={**TUTOR_LOGIN, "role": "admin"})

    assert response.status_code == 401

def test_login_invalid_payload_is_rejected():
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json={"email": "not-an-email", "password": "x", "role": "tutor"})

    assert response.status_code == 422

def test_oauth2_token_endpoint():
    """Scenario: the Swagger form login uses the email as username."""
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/token", data={"username": DEMO_ADMIN_EMAIL, "password": DEMO_ADMIN_PASSWORD})

    assert response.status_code == 200
    assert response.json()["access_token"]

def test_me_returns_current_user():
    with TestClient(app) as client:
        token = client.post("/api/v1/auth/login", json=ADMIN_LOGIN).json()["token"]["access_token"]
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["email"] == DEMO_ADMIN_EMAIL

def test_me_invalid_token_fails():
    with TestClient(app) as client:
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer thisisafaketoken"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"

def test_deactivated_user_loses_access():
    """
    Scenario: an admin deactivates the tutor after the tutor has logged in.
    Expected: the tutor's existing token stops working and new logins are refused.
    """
    with TestClient(app) as client:
        admin_token = client.post("/api/v1/auth/login", json=ADMIN_LOGIN).json()["token"]["access_token"]
        tutor_login = client.post("/api/v1/auth/login", json=TUTOR_LOGIN).json()
        tutor_headers = {"Authorization": f"Bearer {tutor_login['token']['access_token']}"}

        response = client.put(
            f"/api/v1/admin/users/{tutor_login['user']['id']}/status",
            json={"is_active": False},
            headers={"Authorization": f"Bearer {admin_token}"}
        )
        assert response.status_code == 200

        assert client.get("/api/v1/auth/me", headers=tutor_headers).status_code == 401
        assert client.post("/api/v1/auth/login", json=TUTOR_LOGIN).status_code == 403

def test_health():
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.json()["status"] == "ok"
