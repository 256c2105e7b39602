"""
Time-off requests: worker submission, admin review and PTO balance handling.
"""

from datetime import date

from sqlmodel import select

from models.audit_log import AuditAction, AuditLog
from models.notification import Notification
from models.time_off import TimeOffRequest, TimeOffStatus, TimeOffType
from models.user import Role


def request_pto(client, days=2, type="PTO"):
    return client.post(
        "/api/worker/time-off",
        json={"type": type, "start_date": "2025-04-07", "end_date": "2025-04-08", "days_requested": days},
    )


def test_worker_request_checks_balance(worker_login, make_user):
    make_user(pto_balance=1.0)
    client = worker_login()

    response = request_pto(client, days=2)
    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient PTO balance"

    # Non-PTO types do not touch the balance
    assert request_pto(client, days=2, type="SICK").status_code == 201


def test_worker_request_notifies_admins(worker_login, make_user, session):
    make_user(pto_balance=5.0)
    boss = make_user(employee_code="ADMIN1", role=Role.ADMIN)
    client = worker_login()

    response = request_pto(client)
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"

    notes = session.exec(select(Notification).where(Notification.user_id == boss.id)).all()
    assert [n.type for n in notes] == ["pto_request"]

    mine = client.get("/api/worker/time-off").json()
    assert len(mine) == 1


def test_end_before_start_is_rejected(worker_login, make_user):
    make_user(pto_balance=5.0)
    client = worker_login()
    response = client.post(
        "/api/worker/time-off",
        json={"type": "PTO", "start_date": "2025-04-08", "end_date": "2025-04-07", "days_requested": 1},
    )
    assert response.status_code == 400


def test_approving_pto_deducts_balance(admin_client, worker_login, make_user, session):
    user = make_user(pto_balance=5.0)
    worker_login()
    request_id = request_pto(admin_client, days=2).json()["id"]

    response = admin_client.patch(f"/api/admin/time-off/{request_id}", json={"status": "APPROVED", "review_notes": "Enjoy"})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "APPROVED"
    assert body["reviewed_by"] == "Admin"
    assert session.get(type(user), user.id).pto_balance == 3.0

    reviewed = session.exec(select(Notification).where(Notification.type == "pto_reviewed")).one()
    assert "Enjoy" in reviewed.message

    audit = session.exec(select(AuditLog).where(AuditLog.entity == "time-off")).one()
    assert audit.action == AuditAction.APPROVE


def test_reviewing_twice_fails(admin_client, worker_login, make_user):
    make_user(pto_balance=5.0)
    worker_login()
    request_id = request_pto(admin_client).json()["id"]

    assert admin_client.patch(f"/api/admin/time-off/{request_id}", json={"status": "REJECTED"}).status_code == 200
    again = admin_client.patch(f"/api/admin/time-off/{request_id}", json={"status": "APPROVED"})
    assert again.status_code == 400
    assert again.json()["error"] == "Request already reviewed"


def test_approval_rechecks_balance(admin_client, make_user, session):
    user = make_user(pto_balance=0.5)
    created = admin_client.post(
        "/api/admin/time-off",
        json={"user_id": user.id, "type": "PTO", "start_date": "2025-04-07", "end_date": "2025-04-07", "days_requested": 1},
    )
    assert created.status_code == 201

    response = admin_client.patch(f"/api/admin/time-off/{created.json()['id']}", json={"status": "APPROVED"})
    assert response.status_code == 400
    assert response.json()["error"] == "Insufficient PTO balance"
    assert session.get(TimeOffRequest, created.json()["id"]).status == TimeOffStatus.PENDING


def test_pending_is_not_a_review_outcome(admin_client, make_user):
    user = make_user(pto_balance=5.0)
    created = admin_client.post(
        "/api/admin/time-off",
        json={"user_id": user.id, "type": "PTO", "start_date": "2025-04-07", "end_date": "2025-04-07", "days_requested": 1},
    ).json()
    response = admin_client.patch(f"/api/admin/time-off/{created['id']}", json={"status": "PENDING"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status"


def test_list_filter_and_delete(admin_client, make_user):
    user = make_user(pto_balance=5.0)
    created = admin_client.post(
        "/api/admin/time-off",
        json={"user_id": user.id, "type": "VACATION", "start_date": "2025-04-07", "end_date": "2025-04-09", "days_requested": 3},
    ).json()

    pending = admin_client.get("/api/admin/time-off", params={"status": "PENDING"}).json()
    assert [r["id"] for r in pending] == [created["id"]]
    assert pending[0]["user"]["employee_code"] == "KYLE"
    assert admin_client.get("/api/admin/time-off", params={"status": "APPROVED"}).json() == []

    assert admin_client.delete(f"/api/admin/time-off/{created['id']}").status_code == 200
    assert admin_client.delete(f"/api/admin/time-off/{created['id']}").status_code == 404


def test_review_of_request_for_missing_employee(admin_client, make_user, session):
    user = make_user(pto_balance=5.0)
    request = TimeOffRequest(
        user_id=user.id, type=TimeOffType.PTO, start_date=date(2025, 4, 7), end_date=date(2025, 4, 7), days_requested=1
    )
    session.add(request)
    session.commit()
    session.refresh(request)

    # Row left behind by a removed account
    session.delete(user)
    session.commit()

    response = admin_client.patch(f"/api/admin/time-off/{request.id}", json={"status": "APPROVED"})
    assert response.status_code == 404
    assert response.json()["error"] == "Employee not found"
    assert session.get(TimeOffRequest, request.id).status == TimeOffStatus.PENDING
