"""
Admin and worker session cookies, PIN hashing and self registration.
"""

from sqlmodel import select

from core.security import (
    ADMIN_COOKIE,
    WORKER_COOKIE,
    create_session_token,
    decode_session_token,
    hash_pin,
    verify_pin,
)
from models.audit_log import AuditAction, AuditLog
from models.notification import Notification
from models.user import User


def test_pin_hash_round_trip():
    hashed = hash_pin("1234")
    assert hashed != "1234"
    assert verify_pin("1234", hashed)
    assert not verify_pin("4321", hashed)
    assert not verify_pin("1234", "not-a-bcrypt-hash")
    assert not verify_pin("1234", None)


def test_session_token_kind_is_checked():
    token = create_session_token("admin", "admin", 1)
    assert decode_session_token(token, "admin")["sub"] == "admin"
    assert decode_session_token(token, "worker") is None
    assert decode_session_token("garbage", "admin") is None
    assert decode_session_token(None, "admin") is None


def test_expired_token_is_rejected():
    token = create_session_token("admin", "admin", -1)
    assert decode_session_token(token, "admin") is None


def test_admin_routes_require_session(client):
    response = client.get("/api/admin/employees")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_plain_ok_cookie_is_not_accepted(client):
    client.cookies.set(ADMIN_COOKIE, "ok")
    assert client.get("/api/admin/session").status_code == 401


def test_admin_login_and_logout(client, session):
    bad = client.post("/api/admin/login", json={"password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "Invalid password"

    good = client.post("/api/admin/login", json={"password": "test-admin-password"})
    assert good.status_code == 200
    assert ADMIN_COOKIE in good.cookies
    assert client.get("/api/admin/session").status_code == 200

    client.post("/api/admin/logout")
    client.cookies.clear()
    assert client.get("/api/admin/session").status_code == 401

    actions = [log.action for log in session.exec(select(AuditLog)).all()]
    assert AuditAction.LOGIN in actions
    assert AuditAction.LOGOUT in actions


def test_worker_login_sets_cookie_and_me_works(client, make_user):
    make_user()
    response = client.post("/api/worker/login", json={"employee_code": "KYLE", "pin": "1234"})
    assert response.status_code == 200
    assert WORKER_COOKIE in response.cookies

    me = client.get("/api/worker/me")
    assert me.status_code == 200
    body = me.json()
    assert body["worker"]["employee_code"] == "KYLE"
    assert body["shifts"] == []
    assert body["documents"] == []


def test_worker_login_rejects_bad_pin_and_inactive(client, make_user):
    make_user()
    make_user(employee_code="PENDING", active=False)
    assert client.post("/api/worker/login", json={"employee_code": "KYLE", "pin": "0000"}).status_code == 401
    assert client.post("/api/worker/login", json={"employee_code": "PENDING", "pin": "1234"}).status_code == 401


def test_worker_logout_clears_session(worker_login, make_user):
    make_user()
    client = worker_login()
    client.post("/api/worker/logout")
    client.cookies.clear()
    assert client.get("/api/worker/me").status_code == 401


def test_register_creates_inactive_worker(client, session):
    response = client.post(
        "/api/clock/register",
        json={"name": "New Hire", "email": "new@example.com", "employee_code": "NEWB", "pin": "2468"},
    )
    assert response.status_code == 201
    assert response.json()["active"] is False

    user = session.exec(select(User).where(User.employee_code == "NEWB")).one()
    assert user.active is False
    assert verify_pin("2468", user.pin_hash)


def test_register_duplicate_code_and_email(client, make_user):
    make_user(email="kyle@example.com")
    dup_code = client.post("/api/clock/register", json={"name": "X", "employee_code": "KYLE", "pin": "2468"})
    assert dup_code.status_code == 409

    dup_email = client.post(
        "/api/clock/register",
        json={"name": "X", "email": "kyle@example.com", "employee_code": "OTHER", "pin": "2468"},
    )
    assert dup_email.status_code == 409


def test_register_validation(client):
    assert client.post("/api/clock/register", json={"name": "X", "employee_code": "AB", "pin": "2468"}).status_code == 400
    assert client.post("/api/clock/register", json={"name": "X", "employee_code": "ABC", "pin": "12"}).status_code == 400
    assert client.post("/api/clock/register", json={"employee_code": "ABC", "pin": "1234"}).status_code == 400


def test_worker_updates_own_profile(worker_login, make_user, session):
    user = make_user(phone="555-0100")
    client = worker_login()

    response = client.put("/api/worker/profile", json={"email": " kyle@example.com ", "phone": "", "city": "Denison"})
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "kyle@example.com"
    assert body["phone"] is None
    assert body["city"] == "Denison"
    assert session.get(User, user.id).city == "Denison"


def test_worker_marks_only_own_notifications_read(worker_login, make_user, session):
    kyle = make_user()
    chris = make_user(employee_code="CHRIS")
    mine = Notification(user_id=kyle.id, type="document_added", title="New Document", message="W-4")
    theirs = Notification(user_id=chris.id, type="document_added", title="New Document", message="W-4")
    session.add(mine)
    session.add(theirs)
    session.commit()
    client = worker_login()

    assert client.post(f"/api/worker/notifications/{theirs.id}/read").status_code == 404
    assert session.get(Notification, theirs.id).read is False

    response = client.post(f"/api/worker/notifications/{mine.id}/read")
    assert response.status_code == 200
    assert response.json()["read"] is True
    assert client.get("/api/worker/notifications", params={"unread_only": True}).json() == []
