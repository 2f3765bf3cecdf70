import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from app.tutorcenter.main import app
from app.tutorcenter.db.seed import DEMO_TUTOR_EMAIL, DEMO_TUTOR_PASSWORD

BASE = "/api/v1/tutor"

# --- Fixtures ---

@pytest.fixture
def tutor_client():
    """A TestClient (fresh seeded store) already authorised as the demo tutor."""
    with TestClient(app) as client:
        response = client.post("/api/v1/auth/login", json={"email": DEMO_TUTOR_EMAIL, "password": DEMO_TUTOR_PASSWORD, "role": "tutor"})
        response.raise_for_status()
        client.headers["Authorization"] = f"Bearer {response.json()['token']['access_token']}"
        yield client

def _seeded_class(client: TestClient) -> dict:
    [class_] = client.get(f"{BASE}/classes").json()
    return class_

def _student_by_roll(client: TestClient, roll_number: str) -> dict:
    return next(s for s in client.get(f"{BASE}/students").json() if s["roll_number"] == roll_number)

# --- Test Scenarios ---

def test_requires_authentication():
    with TestClient(app) as client:
        assert client.get(f"{BASE}/students").status_code == 401

def test_list_seeded_students(tutor_client):
    response = tutor_client.get(f"{BASE}/students")
    assert response.status_code == 200
    assert sorted(s["name"] for s in response.json()) == ["Alex Chen", "Emma Wilson"]

def test_create_update_delete_student(tutor_client):
    payload = {"name": "Liam Park", "email": "liam@example.com", "roll_number": "103", "grade": "Grade 9"}
    created = tutor_client.post(f"{BASE}/students", json=payload)
    assert created.status_code == 201
    student_id = created.json()["id"]

    updated = tutor_client.put(f"{BASE}/students/{student_id}", json={"grade": "Grade 10"})
    assert updated.status_code == 200
    assert updated.json()["grade"] == "Grade 10"
    assert updated.json()["email"] == "liam@example.com"

    assert tutor_client.delete(f"{BASE}/students/{student_id}").status_code == 204
    assert tutor_client.get(f"{BASE}/students/{student_id}").status_code == 404

def test_duplicate_roll_number_is_a_conflict(tutor_client):
    payload = {"name": "Copy", "email": "copy@example.com", "roll_number": "101", "grade": "Grade 9"}
    response = tutor_client.post(f"{BASE}/students", json=payload)
    assert response.status_code == 409

def test_patch_with_unknown_field_is_rejected(tutor_client):
    student = _student_by_roll(tutor_client, "101")
    response = tutor_client.put(f"{BASE}/students/{student['id']}", json={"nickname": "Al"})
    assert response.status_code == 422

def test_enroll_and_unenroll(tutor_client):
    class_ = _seeded_class(tutor_client)
    emma = _student_by_roll(tutor_client, "102")

    enrolled = tutor_client.post(f"{BASE}/classes/{class_['id']}/students/{emma['id']}")
    assert enrolled.status_code == 200
    assert emma["id"] in enrolled.json()["student_ids"]

    removed = tutor_client.delete(f"{BASE}/classes/{class_['id']}/students/{emma['id']}")
    assert emma["id"] not in removed.json()["student_ids"]

def test_bulk_attendance_then_read_by_day(tutor_client):
    class_ = _seeded_class(tutor_client)
    alex = _student_by_roll(tutor_client, "101")
    emma = _student_by_roll(tutor_client, "102")
    day = "2024-11-04T14:00:00Z"

    response = tutor_client.post(f"{BASE}/attendance/bulk", json=[
        {"class_id": class_["id"], "student_id": alex["id"], "date": day, "status": "present"},
        {"class_id": class_["id"], "student_id": emma["id"], "date": day, "status": "absent"},
    ])
    assert response.status_code == 201
    assert len(response.json()) == 2

    same_day = tutor_client.get(f"{BASE}/attendance/class/{class_['id']}", params={"date": "2024-11-04"})
    other_day = tutor_client.get(f"{BASE}/attendance/class/{class_['id']}", params={"date": "2024-11-05"})
    assert len(same_day.json()) == 2
    assert other_day.json() == []

    record_id = response.json()[1]["id"]
    corrected = tutor_client.put(f"{BASE}/attendance/{record_id}", json={"status": "late"})
    assert corrected.json()["status"] == "late"

def test_bulk_attendance_with_unknown_student_writes_nothing(tutor_client):
    class_ = _seeded_class(tutor_client)
    alex = _student_by_roll(tutor_client, "101")
    day = "2024-11-04T14:00:00Z"

    response = tutor_client.post(f"{BASE}/attendance/bulk", json=[
        {"class_id": class_["id"], "student_id": alex["id"], "date": day, "status": "present"},
        {"class_id": class_["id"], "student_id": "ghost", "date": day, "status": "present"},
    ])
    assert response.status_code == 404
    assert tutor_client.get(f"{BASE}/attendance/student/{alex['id']}").json() == []

def test_generate_and_pay_fees(tutor_client):
    class_ = _seeded_class(tutor_client)
    due = (datetime.now(timezone.utc) + timedelta(days=10)).isoformat()

    generated = tutor_client.post(f"{BASE}/fees/generate", json={"class_id": class_["id"], "month": "2025-01", "due_date": due})
    assert generated.status_code == 201
    [fee] = generated.json()
    assert fee["status"] == "pending"
    assert fee["amount"] == "250.00"

    again = tutor_client.post(f"{BASE}/fees/generate", json={"class_id": class_["id"], "month": "2025-01", "due_date": due})
    assert again.json() == []

    paid = tutor_client.post(f"{BASE}/fees/{fee['id']}/pay")
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["paid_date"] is not None

    assert len(tutor_client.get(f"{BASE}/fees", params={"month": "2025-01"}).json()) == 1

def test_invalid_month_filter_is_rejected(tutor_client):
    assert tutor_client.get(f"{BASE}/fees", params={"month": "January"}).status_code == 422

def test_homework_submission_flow(tutor_client):
    class_ = _seeded_class(tutor_client)
    alex = _student_by_roll(tutor_client, "101")

    created = tutor_client.post(f"{BASE}/homework", json={
        "title": "Chapter 6", "description": "Exercises 6.1-6.3", "class_id": class_["id"],
        "tutor_id": class_["tutor_id"], "due_date": "2030-01-01T00:00:00Z"
    })
    assert created.status_code == 201
    homework = created.json()
    assert homework["total_students"] == 1

    submission = tutor_client.post(f"{BASE}/homework/{homework['id']}/submissions", json={"student_id": alex["id"], "submission_text": "x = 2"})
    assert submission.status_code == 201
    assert tutor_client.get(f"{BASE}/homework/{homework['id']}").json()["submitted_count"] == 1

    graded = tutor_client.put(f"{BASE}/submissions/{submission.json()['id']}/grade", json={"grade": 88, "feedback": "Good"})
    assert graded.json()["status"] == "graded"

    out_of_range = tutor_client.put(f"{BASE}/submissions/{submission.json()['id']}/grade", json={"grade": 101})
    assert out_of_range.status_code == 422

def test_announcements_crud(tutor_client):
    class_ = _seeded_class(tutor_client)
    created = tutor_client.post(f"{BASE}/announcements", json={
        "title": "Holiday", "message": "No class on Monday", "tutor_id": class_["tutor_id"],
        "target_audience": "all", "class_ids": [class_["id"]]
    })
    assert created.status_code == 201
    announcement_id = created.json()["id"]

    updated = tutor_client.put(f"{BASE}/announcements/{announcement_id}", json={"is_important": True})
    assert updated.json()["is_important"] is True
    assert tutor_client.delete(f"{BASE}/announcements/{announcement_id}").status_code == 204
    assert tutor_client.get(f"{BASE}/announcements").json() == []

def test_dashboard_stats(tutor_client):
    response = tutor_client.get(f"{BASE}/dashboard/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total_students"] == 2
    assert data["total_classes"] == 1
    assert data["avg_attendance"] == 0.0
