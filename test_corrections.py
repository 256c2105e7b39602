"""
Worker shift correction requests and their admin review.
"""

from datetime import datetime, timedelta, timezone

from sqlmodel import select

from models.notification import Notification
from models.shift import Shift
from models.user import Role


def make_open_shift(session, user, hours_ago=9):
    shift = Shift(user_id=user.id, clock_in=datetime.now(timezone.utc) - timedelta(hours=hours_ago))
    session.add(shift)
    session.commit()
    session.refresh(shift)
    return shift


def submit(client, **payload):
    return client.post("/api/clock/corrections", json=payload)


def test_corrections_require_worker_session(client):
    assert submit(client, type="NEW_SHIFT", requested_clock_in="2025-03-03T14:00:00Z").status_code == 401


def test_missing_out_needs_a_clock_out_time(worker_login, make_user, session):
    user = make_user()
    shift = make_open_shift(session, user)
    client = worker_login()

    response = submit(client, type="MISSING_OUT", shift_id=shift.id)
    assert response.status_code == 400
    assert response.json()["error"] == "Requested clock-out time is required for this correction type."


def test_cannot_correct_someone_elses_shift(worker_login, make_user, session):
    make_user()
    other = make_user(employee_code="CHRIS")
    shift = make_open_shift(session, other)
    client = worker_login()

    response = submit(client, type="MISSING_OUT", shift_id=shift.id, requested_clock_out="2025-03-03T22:00:00Z")
    assert response.status_code == 400


def test_approve_missing_out_closes_the_shift(admin_client, worker_login, make_user, session):
    user = make_user()
    boss = make_user(employee_code="ADMIN1", role=Role.ADMIN)
    shift = make_open_shift(session, user)
    worker_login()

    clock_out = (datetime.now(timezone.utc) - timedelta(hours=1)).replace(microsecond=0)
    created = submit(
        admin_client,
        type="MISSING_OUT",
        shift_id=shift.id,
        requested_clock_out=clock_out.isoformat(),
        reason="Forgot to clock out",
    )
    assert created.status_code == 201, created.text
    assert created.json()["status"] == "PENDING"

    alerts = session.exec(select(Notification).where(Notification.user_id == boss.id)).all()
    assert [n.type for n in alerts] == ["correction_request"]

    pending = admin_client.get("/api/admin/corrections").json()
    assert len(pending) == 1
    assert pending[0]["user"]["employee_code"] == "KYLE"
    assert pending[0]["shift"]["id"] == shift.id

    reviewed = admin_client.patch("/api/admin/corrections", json={"id": created.json()["id"], "action": "approve"})
    assert reviewed.status_code == 200
    body = reviewed.json()
    assert body["status"] == "APPROVED"
    assert body["shift"]["clock_out"] is not None
    assert "Adjusted via approved correction request." in body["shift"]["notes"]
    assert "Reason: Forgot to clock out" in body["shift"]["notes"]

    assert admin_client.get("/api/admin/corrections").json() == []


def test_approve_new_shift_creates_it(admin_client, worker_login, make_user, session):
    user = make_user()
    worker_login()

    created = submit(
        admin_client,
        type="NEW_SHIFT",
        requested_clock_in="2025-03-03T14:00:00Z",
        requested_clock_out="2025-03-03T22:00:00Z",
    ).json()
    body = admin_client.patch("/api/admin/corrections", json={"id": created["id"], "action": "approve"}).json()

    assert body["shift"]["hours"] == 8.0
    assert body["shift"]["notes"] == "Created via approved shift correction request."
    assert len(session.exec(select(Shift).where(Shift.user_id == user.id)).all()) == 1


def test_reject_leaves_shift_alone_and_cannot_repeat(admin_client, worker_login, make_user, session):
    user = make_user()
    shift = make_open_shift(session, user)
    worker_login()

    created = submit(
        admin_client, type="ADJUST_IN", shift_id=shift.id, requested_clock_in="2025-03-03T13:00:00Z"
    ).json()
    rejected = admin_client.patch("/api/admin/corrections", json={"id": created["id"], "action": "reject"})
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["shift"] is None
    assert session.get(Shift, shift.id).notes is None

    again = admin_client.patch("/api/admin/corrections", json={"id": created["id"], "action": "approve"})
    assert again.status_code == 400
    assert again.json()["error"] == "Request already reviewed"

    history = admin_client.get("/api/admin/corrections", params={"status": "REJECTED"}).json()
    assert len(history) == 1
