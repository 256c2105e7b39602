"""
Admin employee management: CRUD, approval of registrations, shift history
and documents.
"""

from datetime import datetime, timedelta, timezone

from sqlmodel import select

from models.audit_log import AuditAction, AuditLog
from models.notification import Notification
from models.shift import Shift
from models.user import User


def test_create_and_list_employee(admin_client):
    response = admin_client.post(
        "/api/admin/employees",
        json={"name": "Chris", "employee_code": "CHRIS", "pin": "5678", "hourly_rate": 22.5},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["employee_code"] == "CHRIS"
    assert body["has_pin"] is True
    assert "pin_hash" not in body
    assert body["created_at"].endswith("Z")

    listed = admin_client.get("/api/admin/employees").json()
    assert [e["employee_code"] for e in listed] == ["CHRIS"]


def test_duplicate_employee_code_conflicts(admin_client, make_user):
    make_user(employee_code="CHRIS")
    response = admin_client.post("/api/admin/employees", json={"name": "Other", "employee_code": "CHRIS"})
    assert response.status_code == 409


def test_patch_employee_and_change_pin(admin_client, make_user, session):
    user = make_user()
    response = admin_client.patch(f"/api/admin/employees/{user.id}", json={"hourly_rate": 30, "pin": "9999"})
    assert response.status_code == 200
    assert response.json()["hourly_rate"] == 30

    assert admin_client.post("/api/clock", json={"employee_code": "KYLE", "pin": "9999", "lat": 0, "lng": 0}).status_code == 200

    log = session.exec(select(AuditLog).where(AuditLog.action == AuditAction.UPDATE)).first()
    assert log is not None
    assert log.entity == "employee"


def test_get_missing_employee(admin_client):
    response = admin_client.get("/api/admin/employees/999")
    assert response.status_code == 404


def test_delete_refused_when_shifts_exist(admin_client, make_user, session):
    user = make_user()
    session.add(Shift(user_id=user.id, clock_in=datetime.now(timezone.utc)))
    session.commit()

    response = admin_client.delete(f"/api/admin/employees/{user.id}")
    assert response.status_code == 400


def test_delete_employee_without_shifts(admin_client, make_user, session):
    user = make_user()
    assert admin_client.delete(f"/api/admin/employees/{user.id}").status_code == 200
    assert session.get(User, user.id) is None


def test_approve_and_reject_registrations(admin_client, make_user, session):
    pending = make_user(employee_code="PEND1", active=False)
    other = make_user(employee_code="PEND2", active=False)

    approved = admin_client.post(f"/api/admin/employees/{pending.id}/approve")
    assert approved.status_code == 200
    assert approved.json()["active"] is True

    # Active accounts cannot be rejected
    assert admin_client.post(f"/api/admin/employees/{pending.id}/reject").status_code == 400

    assert admin_client.post(f"/api/admin/employees/{other.id}/reject").status_code == 200
    assert session.get(User, other.id) is None


def test_employee_shift_history(admin_client, make_user, session):
    user = make_user()
    now = datetime.now(timezone.utc)
    session.add(Shift(user_id=user.id, clock_in=now - timedelta(hours=3), clock_out=now - timedelta(hours=1)))
    session.add(Shift(user_id=user.id, clock_in=now - timedelta(days=60), clock_out=now - timedelta(days=60) + timedelta(hours=2)))
    session.commit()

    shifts = admin_client.get(f"/api/admin/employees/{user.id}/shifts").json()
    assert len(shifts) == 1
    assert shifts[0]["hours"] == 2.0


def test_documents_visible_to_worker(admin_client, make_user, session, worker_login):
    user = make_user()
    visible = admin_client.post(
        f"/api/admin/employees/{user.id}/documents",
        json={"title": "W-4", "url": "https://files.example.com/w4.pdf"},
    )
    assert visible.status_code == 201
    admin_client.post(
        f"/api/admin/employees/{user.id}/documents",
        json={"title": "Review", "url": "https://files.example.com/review.pdf", "visible_to_worker": False},
    )

    assert len(admin_client.get(f"/api/admin/employees/{user.id}/documents").json()) == 2

    notes = session.exec(select(Notification).where(Notification.user_id == user.id)).all()
    assert len(notes) == 1
    assert notes[0].type == "document_added"

    worker_login()
    titles = [d["title"] for d in admin_client.get("/api/worker/documents").json()]
    assert titles == ["W-4"]


def test_patch_rejects_null_for_required_fields(admin_client, make_user):
    user = make_user()
    for field in ("name", "role", "active", "pto_balance", "notify_email"):
        response = admin_client.patch(f"/api/admin/employees/{user.id}", json={field: None})
        assert response.status_code == 400, field
        assert response.json()["error"] == f"{field} cannot be null."

    assert admin_client.get(f"/api/admin/employees/{user.id}").json()["name"] == "Kyle"


def test_employee_code_length_checked_after_trimming(admin_client, make_user):
    response = admin_client.post("/api/admin/employees", json={"name": "Al", "employee_code": " ab "})
    assert response.status_code == 400
    assert response.json()["error"] == "Employee code must be at least 3 characters."

    user = make_user()
    assert admin_client.patch(f"/api/admin/employees/{user.id}", json={"employee_code": " ab "}).status_code == 400
    renamed = admin_client.patch(f"/api/admin/employees/{user.id}", json={"employee_code": "  KYLE2 "})
    assert renamed.json()["employee_code"] == "KYLE2"


def test_negative_pto_balance_is_rejected(admin_client, make_user):
    assert admin_client.post("/api/admin/employees", json={"name": "Al", "pto_balance": -1}).status_code == 400
    user = make_user()
    assert admin_client.patch(f"/api/admin/employees/{user.id}", json={"pto_balance": -0.5}).status_code == 400


def test_document_update_rejects_blank_title_and_url(admin_client, make_user):
    user = make_user()
    doc_id = admin_client.post(
        f"/api/admin/employees/{user.id}/documents",
        json={"title": "W-4", "url": "https://files.example.com/w4.pdf"},
    ).json()["id"]
    url = f"/api/admin/employees/{user.id}/documents/{doc_id}"

    response = admin_client.patch(url, json={"title": "   "})
    assert response.status_code == 400
    assert response.json()["error"] == "title cannot be blank."
    assert admin_client.patch(url, json={"url": ""}).status_code == 400

    renamed = admin_client.patch(url, json={"title": " W-4 (2025) ", "description": " "})
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "W-4 (2025)"
    assert renamed.json()["description"] is None

    assert admin_client.delete(url).json() == {"ok": True}
    assert admin_client.patch(url, json={"title": "Gone"}).status_code == 404


def test_delete_refused_when_time_off_on_file(admin_client, make_user, session):
    user = make_user(pto_balance=5.0)
    created = admin_client.post(
        "/api/admin/time-off",
        json={"user_id": user.id, "type": "PTO", "start_date": "2025-04-07", "end_date": "2025-04-07", "days_requested": 1},
    )
    assert created.status_code == 201

    response = admin_client.delete(f"/api/admin/employees/{user.id}")
    assert response.status_code == 400
    assert session.get(User, user.id) is not None

    # The request can still be reviewed afterwards
    reviewed = admin_client.patch(f"/api/admin/time-off/{created.json()['id']}", json={"status": "APPROVED"})
    assert reviewed.status_code == 200


def test_delete_employee_removes_their_notifications(admin_client, make_user, session):
    user = make_user()
    admin_client.post(
        f"/api/admin/employees/{user.id}/documents",
        json={"title": "W-4", "url": "https://files.example.com/w4.pdf"},
    )
    assert len(session.exec(select(Notification).where(Notification.user_id == user.id)).all()) == 1

    assert admin_client.delete(f"/api/admin/employees/{user.id}").status_code == 200
    assert session.exec(select(Notification).where(Notification.user_id == user.id)).all() == []
