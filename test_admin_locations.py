"""
Admin location management, the public location list and the distance check.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from main import app
from models.shift import Shift
from utils.geocoding import GeocodingError


def test_create_location_and_public_list(admin_client):
    response = admin_client.post(
        "/api/admin/locations",
        json={"name": "Lake Shop", "code": "LAKESHOP", "lat": 33.8223, "lng": -96.6662, "radius_meters": 75},
    )
    assert response.status_code == 201, response.text
    assert response.json()["adhoc"] is False

    admin_client.post(
        "/api/admin/locations",
        json={"name": "Ad Hoc", "code": "ADHOC", "lat": 0, "lng": 0, "radius_meters": 0},
    )
    admin_client.post(
        "/api/admin/locations",
        json={"name": "Closed Yard", "code": "YARD", "lat": 1, "lng": 1, "radius_meters": 50, "active": False},
    )

    public = admin_client.get("/api/locations").json()
    assert [loc["code"] for loc in public] == ["ADHOC", "LAKESHOP"]
    assert set(public[0]) == {"id", "name", "code"}


def test_duplicate_code_conflicts(admin_client, make_location):
    make_location()
    response = admin_client.post(
        "/api/admin/locations",
        json={"name": "Again", "code": "LAKESHOP", "lat": 1, "lng": 1, "radius_meters": 10},
    )
    assert response.status_code == 409


def test_negative_radius_is_rejected(admin_client):
    response = admin_client.post(
        "/api/admin/locations",
        json={"name": "Bad", "code": "BAD", "lat": 1, "lng": 1, "radius_meters": -5},
    )
    assert response.status_code == 400
    assert "radius_meters" in response.json()["error"]


def test_update_location(admin_client, make_location):
    shop = make_location()
    response = admin_client.patch(f"/api/admin/locations/{shop.id}", json={"radius_meters": 0})
    assert response.status_code == 200
    assert response.json()["adhoc"] is True


def test_delete_refused_when_shifts_exist(admin_client, make_location, make_user, session):
    shop = make_location()
    user = make_user()
    session.add(Shift(user_id=user.id, location_id=shop.id, clock_in=datetime.now(timezone.utc)))
    session.commit()

    assert admin_client.delete(f"/api/admin/locations/{shop.id}").status_code == 400


def test_delete_unused_location(admin_client, make_location):
    shop = make_location()
    assert admin_client.delete(f"/api/admin/locations/{shop.id}").status_code == 200
    assert admin_client.get(f"/api/admin/locations/{shop.id}").status_code == 404


def test_distance_check(admin_client, make_location):
    shop = make_location()
    inside = admin_client.post("/api/admin/locations/check", json={"location_id": shop.id, "lat": 33.8224, "lng": -96.6662}).json()
    assert inside["allowed"] is True
    assert inside["tolerance_meters"] == 75
    assert inside["provided_invalid"] is False

    outside = admin_client.post("/api/admin/locations/check", json={"location_id": shop.id, "lat": 34.0, "lng": -96.6662}).json()
    assert outside["allowed"] is False
    assert outside["distance"] > 150

    swapped = admin_client.post("/api/admin/locations/check", json={"location_id": shop.id, "lat": -96.6662, "lng": 33.8223}).json()
    assert swapped["maybe_swapped"] is True
    assert swapped["provided_invalid"] is True


def test_geocode_requires_address(admin_client):
    assert admin_client.get("/api/admin/locations/geocode").status_code == 400


def test_geocode_found(admin_client, monkeypatch):
    async def fake_geocode(query):
        return {"lat": 33.8, "lng": -96.6, "formatted_address": query, "provider": "nominatim"}

    monkeypatch.setattr("api.admin_location_routes.geocode_address", fake_geocode)
    response = admin_client.get("/api/admin/locations/geocode", params={"address": "1 Main St"})
    assert response.status_code == 200
    assert response.json()["provider"] == "nominatim"


@pytest.mark.parametrize("outcome,expected", [(None, 404), (GeocodingError("down"), 502)])
def test_geocode_not_found_or_failed(admin_client, monkeypatch, outcome, expected):
    async def fake_geocode(query):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr("api.admin_location_routes.geocode_address", fake_geocode)
    response = admin_client.get("/api/admin/locations/geocode", params={"address": "nowhere"})
    assert response.status_code == expected


def test_unexpected_error_is_json(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr("api.location_routes.select", boom)
    response = TestClient(app, raise_server_exceptions=False).get("/api/locations")
    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "Internal server error"}
