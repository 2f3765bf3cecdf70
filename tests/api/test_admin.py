import pytest
from fastapi.testclient import TestClient

from app.tutorcenter.main import app
from app.tutorcenter.db.seed import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, DEMO_TUTOR_EMAIL, DEMO_TUTOR_PASSWORD

BASE = "/api/v1/admin"

# --- Fixtures ---

@pytest.fixture
def admin_client():
    """A TestClient (fresh seeded store) already authorised as the demo admin."""
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json={"email": DEMO_ADMIN_EMAIL, "password": DEMO_ADMIN_PASSWORD, "role": "admin"})
        response.raise_for_status()
        client.headers["Authorization"] = f"Bearer {response.json()['token']['access_token']}"
        yield client

# --- Test Scenarios ---

def test_tutor_cannot_use_admin_routes():
    with TestClient(app) as client:
        token = client.post("/api/v1/auth/login", json={"email": DEMO_TUTOR_EMAIL, "password": DEMO_TUTOR_PASSWORD, "role": "tutor"}).json()["token"]["access_token"]
        response = client.get(f"{BASE}/users", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403

def test_dashboard_stats_reflect_seed_data(admin_client):
    response = admin_client.get(f"{BASE}/dashboard/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total_users"] == 2
    assert data["total_tutors"] == 1
    assert data["total_students"] == 2
    assert data["total_classes"] == 1
    assert data["total_revenue"] == "250.00"
    assert data["avg_attendance"] == 0.0

def test_create_user_and_audit_trail(admin_client):
    response = admin_client.post(
        f"{BASE}/users",
        json={"email": "parent@example.com", "password": "pw", "name": "Pat Parent", "role": "parent"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    )
    assert response.status_code == 201
    user = response.json()
    assert "password" not in user

    logs = admin_client.get(f"{BASE}/logs", params={"action": "user_created"}).json()
    assert len(logs) == 1
    assert logs[0]["target_id"] == user["id"]
    assert logs[0]["ip_address"] == "203.0.113.7"
    assert logs[0]["details"] == {"kind": "user_created", "user_name": "Pat Parent", "user_role": "parent"}

def test_create_user_duplicate_email(admin_client):
    response = admin_client.post(f"{BASE}/users", json={"email": DEMO_TUTOR_EMAIL, "password": "pw", "name": "Twin", "role": "tutor"})
    assert response.status_code == 409

def test_filter_users_by_role(admin_client):
    tutors = admin_client.get(f"{BASE}/users", params={"role": "tutor"}).json()
    assert [u["email"] for u in tutors] == [DEMO_TUTOR_EMAIL]

def test_delete_user_and_logs_newest_first(admin_client):
    created = admin_client.post(f"{BASE}/users", json={"email": "temp@example.com", "password": "pw", "name": "Temp", "role": "student"}).json()

    assert admin_client.delete(f"{BASE}/users/{created['id']}").status_code == 204
    assert admin_client.delete(f"{BASE}/users/{created['id']}").status_code == 404

    actions = [log["action"] for log in admin_client.get(f"{BASE}/logs").json()]
    assert actions == ["user_deleted", "user_created"]

def test_settings_lifecycle(admin_client):
    created = admin_client.post(f"{BASE}/settings", json={"key": "currency", "value": "USD", "category": "billing"})
    assert created.status_code == 201
    setting = created.json()

    assert admin_client.post(f"{BASE}/settings", json={"key": "currency", "value": "EUR"}).status_code == 409

    updated = admin_client.put(f"{BASE}/settings/{setting['id']}", json={"value": "GBP"})
    assert updated.json()["value"] == "GBP"
    assert admin_client.get(f"{BASE}/settings", params={"category": "billing"}).json()[0]["value"] == "GBP"

    assert admin_client.delete(f"{BASE}/settings/{setting['id']}").status_code == 204
    assert admin_client.get(f"{BASE}/settings").json() == []

def test_manual_log_entry_uses_the_caller_as_admin(admin_client):
    me = admin_client.get("/api/v1/auth/me").json()
    response = admin_client.post(f"{BASE}/logs", json={
        "admin_id": "someone-else", "action": "backup_taken", "target_type": "system", "target_id": "nightly",
        "details": {"kind": "generic", "data": {"size_mb": 12}}
    })
    assert response.status_code == 201
    assert response.json()["admin_id"] == me["id"]
    assert response.json()["details"]["data"] == {"size_mb": 12}

def test_fee_status_override_is_audited(admin_client):
    [fee] = admin_client.get("/api/v1/tutor/fees").json()
    response = admin_client.put(f"{BASE}/fees/{fee['id']}/status", json={"status": "overdue"})
    assert response.status_code == 200
    assert response.json()["status"] == "overdue"

    [log] = admin_client.get(f"{BASE}/logs", params={"action": "fee_updated"}).json()
    assert log["details"]["old_status"] == "paid"
    assert log["details"]["new_status"] == "overdue"

def test_reports(admin_client):
    users = admin_client.get(f"{BASE}/reports/users").json()
    assert users["by_role"]["admin"] == 1
    assert users["recent_registrations"] == 2

    financial = admin_client.get(f"{BASE}/reports/financial").json()
    assert financial["paid_fees"] == 1
    assert financial["total_revenue"] == "250.00"

def test_integrity_report_after_deleting_a_student(admin_client):
    assert admin_client.get(f"{BASE}/reports/integrity").json()["dangling_count"] == 0

    alex = next(s for s in admin_client.get("/api/v1/tutor/students").json() if s["roll_number"] == "101")
    assert admin_client.delete(f"/api/v1/tutor/students/{alex['id']}").status_code == 204

    report = admin_client.get(f"{BASE}/reports/integrity").json()
    fields = sorted((ref["entity_type"], ref["field"]) for ref in report["dangling"])
    assert fields == [("class", "student_ids"), ("fee", "student_id")]
