"""
Shared fixtures: an in-memory SQLite database rebuilt for every test and a
TestClient wired to it.
"""

import os

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_PASSWORD"] = "test-admin-password"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["APP_TIMEZONE"] = "America/Chicago"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

import models  # noqa: F401
from core.security import hash_pin
from db.session import engine, get_session
from main import app
from models.location import Location
from models.user import Role, User

ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]


@pytest.fixture(autouse=True)
def database():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def client(session):
    # Requests share the test session so assertions see committed rows
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def make_user(session):
    def _make_user(
        employee_code="KYLE",
        pin="1234",
        name=None,
        active=True,
        role=Role.WORKER,
        hourly_rate=20.0,
        **fields,
    ) -> User:
        user = User(
            name=name or employee_code.title(),
            employee_code=employee_code,
            pin_hash=hash_pin(pin) if pin else None,
            active=active,
            role=role,
            hourly_rate=hourly_rate,
            **fields,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_location(session):
    def _make_location(code="LAKESHOP", lat=33.8223, lng=-96.6662, radius_meters=75.0, name=None, active=True) -> Location:
        location = Location(
            name=name or code.title(),
            code=code,
            lat=lat,
            lng=lng,
            radius_meters=radius_meters,
            active=active,
        )
        session.add(location)
        session.commit()
        session.refresh(location)
        return location

    return _make_location


@pytest.fixture
def worker_login(client):
    def _login(employee_code="KYLE", pin="1234"):
        response = client.post("/api/worker/login", json={"employee_code": employee_code, "pin": pin})
        assert response.status_code == 200, response.text
        return client

    return _login
